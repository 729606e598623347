"""
ip_lookup.py — Visitor geolocation via ip-api.com.

Best effort by contract: every failure (timeout, HTTP error, bad JSON,
unexpected shape) is logged and returns None. The visitor is stored without
ip_data in that case.

ip-api.com's free endpoint is plain HTTP and allows 45 requests/minute; only
first-time visitors trigger a lookup, which keeps well under that.
"""

import logging
from typing import Optional

import httpx
from pydantic import ValidationError

from stacc.core.config import settings
from stacc.models.visitor import IPData

logger = logging.getLogger(__name__)

# Every field requested from ip-api.com; "reverse" noticeably slows responses.
IP_API_FIELDS = (
    "as",
    "city",
    "continent",
    "country",
    "countryCode",
    "currency",
    "hosting",
    "isp",
    "lat",
    "lon",
    "message",
    "mobile",
    "org",
    "proxy",
    "query",
    "region",
    "regionName",
    "reverse",
    "status",
    "timezone",
    "zip",
)


class IPLookup:
    """Thin async wrapper around the ip-api.com JSON endpoint."""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.base_url = settings.ip_api_base_url.rstrip("/")
        self.transport = transport
        self.timeout = settings.http_timeout_seconds
        self.enabled = settings.ip_lookup_enabled

        if not self.enabled:
            logger.warning("IP_LOOKUP_ENABLED is false; new visitors are stored without geolocation")

    def endpoint(self, ip: str) -> str:
        return f"{self.base_url}/{ip}"

    async def lookup(self, ip: str) -> Optional[IPData]:
        """
        Fetch geolocation metadata for *ip*.

        Returns None when disabled, on any error, or when ip-api answers
        status == "fail" (private and reserved ranges).
        """
        if not self.enabled:
            return None

        logger.info("Looking up new visitor %s", ip)
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                response = await client.get(
                    self.endpoint(ip),
                    params={"fields": ",".join(IP_API_FIELDS)},
                )
                response.raise_for_status()
                ip_data = IPData.model_validate(response.json())
            except httpx.HTTPStatusError as exc:
                logger.error(
                    "ip-api error for %s: %s: %s",
                    ip,
                    exc.response.status_code,
                    exc.response.text[:200],
                )
                return None
            except (httpx.HTTPError, ValueError, ValidationError) as exc:
                logger.error("ip-api request failed for %s: %s", ip, exc)
                return None

        if ip_data.status != "success":
            logger.info("ip-api could not locate %s: %s", ip, ip_data.message)
            return None

        logger.info("IP data received for %s (%s, %s)", ip, ip_data.city, ip_data.country)
        return ip_data


# Module-level singleton
ip_lookup = IPLookup()
