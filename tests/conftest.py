"""
pytest configuration and shared fixtures for the stacc API tests.

Tests must not require a live MongoDB, ip-api.com or Socrata. We achieve this by:
  1. Patching connect_to_mongo / close_mongo_connection to no-ops so
     FastAPI's lifespan doesn't try to reach a real database.
  2. Setting db_client.client = None (disconnected) by default; tests that
     need a store override get_db with the in-memory FakeDB (tests/fakes.py).
  3. Disabling geolocation lookups (IP_LOOKUP_ENABLED=false) unless a test
     builds its own IPLookup with an httpx.MockTransport.
"""

import os
from unittest.mock import AsyncMock, patch

import pytest
from httpx import ASGITransport, AsyncClient

# Set env vars BEFORE importing the app so Settings picks them up correctly
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("IP_LOOKUP_ENABLED", "false")

from fakes import FakeDB  # noqa: E402


@pytest.fixture(autouse=True)
async def mock_db():
    """
    Patch the MongoDB lifecycle for every test.

    - connect_to_mongo → no-op AsyncMock
    - close_mongo_connection → no-op AsyncMock
    - db_client.client / db_client.db → None
    """
    with (
        patch("stacc.core.database.connect_to_mongo", new_callable=AsyncMock),
        patch("stacc.core.database.close_mongo_connection", new_callable=AsyncMock),
    ):
        import stacc.core.database as db_module

        original_client = db_module.db_client.client
        original_db = db_module.db_client.db

        db_module.db_client.client = None
        db_module.db_client.db = None

        yield

        db_module.db_client.client = original_client
        db_module.db_client.db = original_db


@pytest.fixture(autouse=True)
def reset_rate_limits():
    """Rate-limit counters are in memory; keep tests independent."""
    from stacc.core.rate_limit import limiter

    limiter.reset()
    yield


@pytest.fixture()
def fake_db():
    return FakeDB()


@pytest.fixture()
async def client(mock_db):  # noqa: ARG001  mock_db must run first
    """HTTPX async client against the app with MongoDB disconnected."""
    from stacc.main import app

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture()
async def db_client(fake_db):
    """HTTPX async client against the app backed by the in-memory FakeDB."""
    from stacc.core.database import get_db
    from stacc.main import app

    app.dependency_overrides[get_db] = lambda: fake_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
