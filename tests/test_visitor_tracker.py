"""
test_visitor_tracker.py — Tests for visitor identity and per-post view tracking.

Runs record_visit / record_resource_view directly against the in-memory
FakeDB; geolocation is patched per test.
"""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest
from pymongo.errors import PyMongoError
from starlette.requests import Request

from stacc.core.config import settings
from stacc.models.visitor import IPData
from stacc.services import visitor_tracker
from stacc.services.visitor_tracker import (
    get_real_ip,
    normalize_address,
    record_resource_view,
    record_visit,
    run_detached,
)

CHICAGO = IPData(status="success", city="Chicago", country="United States", query="1.2.3.4")


def _visitors(db):
    return db[settings.visitors_collection]


def _posts(db):
    return db[settings.posts_collection]


def _request(headers=None, client=("10.0.0.1", 5000)):
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": client,
    }
    return Request(scope)


class TestAddresses:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("1.2.3.4", "1.2.3.4"),
            ("1.2.3.4:5000", "1.2.3.4"),
            ("[2001:db8::1]:443", "2001:db8::1"),
            ("2001:db8::1", "2001:db8::1"),
            ("  1.2.3.4 ", "1.2.3.4"),
            ("", None),
            (None, None),
        ],
    )
    def test_normalize_address(self, raw, expected):
        assert normalize_address(raw) == expected

    def test_forwarded_for_first_hop_wins(self):
        request = _request({"X-Forwarded-For": "8.8.8.8, 10.0.0.2", "X-Real-IP": "9.9.9.9"})
        assert get_real_ip(request) == "8.8.8.8"

    def test_real_ip_header(self):
        assert get_real_ip(_request({"X-Real-IP": "9.9.9.9"})) == "9.9.9.9"

    def test_falls_back_to_socket_peer(self):
        assert get_real_ip(_request()) == "10.0.0.1"

    def test_no_client_at_all(self):
        assert get_real_ip(_request(client=None)) is None


class TestRecordVisit:
    async def test_first_visit_creates_visitor_with_geolocation(self, fake_db):
        with patch.object(visitor_tracker.ip_lookup, "lookup", AsyncMock(return_value=CHICAGO)):
            await record_visit(fake_db, "1.2.3.4:5000")

        [doc] = _visitors(fake_db).docs
        assert doc["ip_address"] == "1.2.3.4"
        assert doc["refresh_count"] == 1
        assert doc["last_visit_date"] is None
        assert doc["visited_posts"] == {}
        assert doc["ip_data"]["city"] == "Chicago"
        # "as" is stored under its real name
        assert "as" in doc["ip_data"]

    async def test_failed_lookup_stores_visitor_without_ip_data(self, fake_db):
        with patch.object(visitor_tracker.ip_lookup, "lookup", AsyncMock(return_value=None)):
            await record_visit(fake_db, "1.2.3.4")

        [doc] = _visitors(fake_db).docs
        assert doc["refresh_count"] == 1
        assert doc["ip_data"] is None

    async def test_return_visit_increments_without_lookup(self, fake_db):
        _visitors(fake_db).seed(
            {
                "ip_address": "1.2.3.4",
                "first_visit_date": "2024-01-01 12:00:00",
                "last_visit_date": None,
                "refresh_count": 1,
                "ip_data": CHICAGO.to_document(),
                "visited_posts": {},
            }
        )
        lookup = AsyncMock(return_value=IPData(status="success", city="Elsewhere"))

        with patch.object(visitor_tracker.ip_lookup, "lookup", lookup):
            await record_visit(fake_db, "1.2.3.4")
            await record_visit(fake_db, "1.2.3.4")

        lookup.assert_not_awaited()
        [doc] = _visitors(fake_db).docs
        assert doc["refresh_count"] == 3
        assert doc["first_visit_date"] == "2024-01-01 12:00:00"
        assert doc["last_visit_date"] is not None
        assert doc["ip_data"]["city"] == "Chicago"

    async def test_concurrent_first_visits_create_one_visitor(self, fake_db):
        cities = iter(["First", "Second"])

        async def slow_lookup(ip):
            city = next(cities)
            # Let the other request reach its lookup before either inserts
            await asyncio.sleep(0)
            return IPData(status="success", city=city, query=ip)

        with patch.object(visitor_tracker.ip_lookup, "lookup", slow_lookup):
            await asyncio.gather(
                record_visit(fake_db, "5.6.7.8"),
                record_visit(fake_db, "5.6.7.8"),
            )

        [doc] = _visitors(fake_db).docs
        assert doc["refresh_count"] == 2
        assert doc["ip_data"]["city"] == "First"
        assert doc["last_visit_date"] is not None

    async def test_duplicate_key_is_retried_as_return_visit(self, fake_db):
        _visitors(fake_db).simulate_duplicate_key(
            {
                "ip_address": "1.2.3.4",
                "first_visit_date": "2024-01-01 12:00:00",
                "last_visit_date": None,
                "refresh_count": 1,
                "ip_data": None,
                "visited_posts": {},
            }
        )

        with patch.object(visitor_tracker.ip_lookup, "lookup", AsyncMock(return_value=CHICAGO)):
            await record_visit(fake_db, "1.2.3.4")

        [doc] = _visitors(fake_db).docs
        assert doc["refresh_count"] == 2
        assert doc["ip_data"] is None

    async def test_unresolvable_address_records_nothing(self, fake_db):
        await record_visit(fake_db, "")
        await record_visit(fake_db, None)
        assert _visitors(fake_db).docs == []

    async def test_store_failure_is_swallowed(self, fake_db):
        _visitors(fake_db).fail_with = PyMongoError("connection reset")
        await record_visit(fake_db, "1.2.3.4")

    async def test_disconnected_store_is_swallowed(self):
        await record_visit(None, "1.2.3.4")


class TestRecordResourceView:
    async def test_increments_post_and_visitor(self, fake_db):
        _posts(fake_db).seed({"post_id": "hello-world", "view_count": 4})
        _visitors(fake_db).seed({"ip_address": "1.2.3.4", "refresh_count": 1, "visited_posts": {}})

        await record_resource_view(fake_db, "hello-world", "1.2.3.4")
        await record_resource_view(fake_db, "hello-world", "1.2.3.4:8080")

        assert _posts(fake_db).docs[0]["view_count"] == 6
        assert _visitors(fake_db).docs[0]["visited_posts"] == {"hello-world": 2}

    async def test_count_view_false_only_touches_visitor(self, fake_db):
        _posts(fake_db).seed({"post_id": "hello-world", "view_count": 4})
        _visitors(fake_db).seed({"ip_address": "1.2.3.4", "refresh_count": 1, "visited_posts": {}})

        await record_resource_view(fake_db, "hello-world", "1.2.3.4", count_view=False)

        assert _posts(fake_db).docs[0]["view_count"] == 4
        assert _visitors(fake_db).docs[0]["visited_posts"] == {"hello-world": 1}

    async def test_unknown_visitor_still_counts_the_view(self, fake_db):
        _posts(fake_db).seed({"post_id": "hello-world", "view_count": 0})

        await record_resource_view(fake_db, "hello-world", "1.2.3.4")

        assert _posts(fake_db).docs[0]["view_count"] == 1
        assert _visitors(fake_db).docs == []

    async def test_unresolvable_address_still_counts_the_view(self, fake_db):
        _posts(fake_db).seed({"post_id": "hello-world", "view_count": 0})

        await record_resource_view(fake_db, "hello-world", None)

        assert _posts(fake_db).docs[0]["view_count"] == 1

    async def test_dotted_post_id_is_not_used_as_key_path(self, fake_db):
        _visitors(fake_db).seed({"ip_address": "1.2.3.4", "refresh_count": 1, "visited_posts": {}})

        await record_resource_view(fake_db, "a.b", "1.2.3.4", count_view=False)

        assert _visitors(fake_db).docs[0]["visited_posts"] == {}

    async def test_post_counter_failure_does_not_block_visitor_update(self, fake_db):
        _posts(fake_db).fail_with = PyMongoError("timeout")
        _visitors(fake_db).seed({"ip_address": "1.2.3.4", "refresh_count": 1, "visited_posts": {}})

        await record_resource_view(fake_db, "hello-world", "1.2.3.4")

        assert _visitors(fake_db).docs[0]["visited_posts"] == {"hello-world": 1}


class TestRunDetached:
    async def test_failures_are_logged_not_raised(self, caplog):
        async def boom():
            raise RuntimeError("kaboom")

        await run_detached(boom)
        assert "boom failed" in caplog.text

    async def test_timeout_is_logged(self, caplog):
        async def hang():
            await asyncio.sleep(10)

        with patch.object(settings, "side_task_timeout_seconds", 0.01):
            await run_detached(hang)
        assert "hang timed out" in caplog.text
