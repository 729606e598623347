"""
chicago_data.py — Proxy for the City of Chicago Socrata datasets.

Both datasets are fetched concurrently. Unlike visitor geolocation this is
on the primary request path, so failures are raised:

  - transport error, timeout, non-2xx  → UpstreamUnavailableError
  - body not JSON, or not a JSON array → MalformedUpstreamPayloadError

Either aborts the whole request. Malformed individual rows are left alone
here; the aggregator skips them.
"""

import asyncio
import logging
from typing import Any, Optional

import httpx

from stacc.core.config import settings
from stacc.core.errors import MalformedUpstreamPayloadError, UpstreamUnavailableError
from stacc.models.chicago import ChicagoMapData

logger = logging.getLogger(__name__)

SHOTSPOTTER_ENDPOINT = "https://data.cityofchicago.org/resource/3h7q-7mdb.json"
VIOLENCE_ENDPOINT = "https://data.cityofchicago.org/resource/gumc-mgzr.json"


class ChicagoDataClient:
    """Fetches the raw ShotSpotter and victims-of-violence arrays."""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.app_token = settings.socrata_app_token
        self.transport = transport
        self.timeout = settings.http_timeout_seconds

    def _headers(self) -> dict[str, str]:
        return {"X-App-Token": self.app_token} if self.app_token else {}

    async def _fetch(self, client: httpx.AsyncClient, url: str) -> list[Any]:
        try:
            response = await client.get(url, headers=self._headers())
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise UpstreamUnavailableError(
                f"Chicago API error: {url} answered {exc.response.status_code}", cause=exc
            ) from exc
        except httpx.HTTPError as exc:
            raise UpstreamUnavailableError(f"Chicago API error: {url}: {exc!r}", cause=exc) from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise MalformedUpstreamPayloadError(
                f"Chicago API error: {url} returned invalid JSON", cause=exc
            ) from exc

        if not isinstance(payload, list):
            raise MalformedUpstreamPayloadError(
                f"Chicago API error: {url} returned {type(payload).__name__}, expected an array"
            )
        return payload

    async def fetch_map_data(self) -> ChicagoMapData:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            shotspotter_data, violence_data = await asyncio.gather(
                self._fetch(client, SHOTSPOTTER_ENDPOINT),
                self._fetch(client, VIOLENCE_ENDPOINT),
            )

        logger.info(
            "Fetched Chicago data: %d shotspotter rows, %d violence rows",
            len(shotspotter_data),
            len(violence_data),
        )
        return ChicagoMapData(shotspotter_data=shotspotter_data, violence_data=violence_data)


# Module-level singleton
chicago_data_client = ChicagoDataClient()
