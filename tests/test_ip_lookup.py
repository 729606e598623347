"""
test_ip_lookup.py — Tests for the ip-api.com geolocation client.

Every failure must come back as None, never as an exception.
"""

import httpx

from stacc.services.ip_lookup import IP_API_FIELDS, IPLookup

SUCCESS = {
    "status": "success",
    "as": "AS7922 Comcast Cable Communications, LLC",
    "city": "Chicago",
    "country": "United States",
    "countryCode": "US",
    "lat": 41.8781,
    "lon": -87.6298,
    "mobile": False,
    "proxy": False,
    "hosting": False,
    "query": "73.1.2.3",
    "timezone": "America/Chicago",
    "zip": "60602",
}


def _lookup(handler) -> IPLookup:
    lookup = IPLookup(transport=httpx.MockTransport(handler))
    lookup.enabled = True
    return lookup


async def test_successful_lookup():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json=SUCCESS)

    ip_data = await _lookup(handler).lookup("73.1.2.3")

    assert ip_data is not None
    assert ip_data.city == "Chicago"
    assert ip_data.as_ == SUCCESS["as"]
    assert ip_data.to_document()["as"] == SUCCESS["as"]

    [request] = seen
    assert request.url.path.endswith("/73.1.2.3")
    assert request.url.params["fields"] == ",".join(IP_API_FIELDS)


async def test_fail_status_is_none():
    def handler(request):
        return httpx.Response(200, json={"status": "fail", "message": "private range", "query": "10.0.0.1"})

    assert await _lookup(handler).lookup("10.0.0.1") is None


async def test_http_error_is_none():
    assert await _lookup(lambda r: httpx.Response(429, text="slow down")).lookup("73.1.2.3") is None


async def test_transport_error_is_none():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    assert await _lookup(handler).lookup("73.1.2.3") is None


async def test_invalid_json_is_none():
    assert await _lookup(lambda r: httpx.Response(200, text="not json")).lookup("73.1.2.3") is None


async def test_unexpected_shape_is_none():
    assert await _lookup(lambda r: httpx.Response(200, json={"city": "Chicago"})).lookup("73.1.2.3") is None


async def test_disabled_makes_no_request():
    seen = []
    lookup = IPLookup(transport=httpx.MockTransport(lambda r: seen.append(r) or httpx.Response(200, json=SUCCESS)))
    lookup.enabled = False

    assert await lookup.lookup("73.1.2.3") is None
    assert seen == []
