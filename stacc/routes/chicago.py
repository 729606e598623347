"""
chicago.py — Chicago violence map routes.

Routes:
  GET /chiraq          — raw ShotSpotter + victims arrays, as fetched
  GET /chiraq/summary  — the same data folded into ranked tables, a date
                         range and map points (services/incident_aggregator)

Each call makes two upstream Socrata requests, so both routes are rate
limited per client IP. Both record the visit, even when the upstream fails
and the request ends in a 500 envelope.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request

from stacc.core.config import settings
from stacc.core.rate_limit import limiter
from stacc.models.chicago import ChicagoMapData, ChicagoSummary
from stacc.services.chicago_data import chicago_data_client
from stacc.services.incident_aggregator import summarize
from stacc.services.visitor_tracker import track_visit

router = APIRouter(prefix="/chiraq", tags=["chicago"])


@router.get("", response_model=ChicagoMapData)
@limiter.limit(settings.chicago_rate_limit)
async def get_chicago_data(
    request: Request,
    _client_ip: Optional[str] = Depends(track_visit),
):
    """Return the unprocessed upstream arrays for client-side plotting."""
    return await chicago_data_client.fetch_map_data()


@router.get("/summary", response_model=ChicagoSummary)
@limiter.limit(settings.chicago_rate_limit)
async def get_chicago_summary(
    request: Request,
    _client_ip: Optional[str] = Depends(track_visit),
):
    """Return ranked frequency tables and map points for both datasets."""
    map_data = await chicago_data_client.fetch_map_data()
    return summarize(map_data)
