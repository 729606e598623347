"""
Health check endpoint.

Reports whether the document store answers a ping, plus which database and
collections this deployment is configured against, so a misconfigured
VISITORS_COLLECTION (say) is visible without shelling into the container.
Always HTTP 200 while the process is up.
"""

import logging

from fastapi import APIRouter
from pydantic import BaseModel
from pymongo.errors import PyMongoError

from stacc.core import database as db_module
from stacc.core.config import API_VERSION, settings

logger = logging.getLogger(__name__)
router = APIRouter()


class HealthResponse(BaseModel):
    status: str  # "ok" while the process is alive
    version: str
    environment: str
    database: str  # "connected" | "disconnected"
    database_name: str
    collections: dict[str, str]  # role → configured collection name


async def _ping() -> bool:
    # Read through the module so tests can swap db_module.db_client.client
    store = db_module.db_client
    if not store.connected:
        return False
    try:
        await store.client.admin.command("ping")
    except PyMongoError as exc:
        logger.warning("MongoDB ping failed: %s", exc)
        return False
    return True


@router.get("", response_model=HealthResponse, summary="API health check")
async def health_check() -> HealthResponse:
    return HealthResponse(
        status="ok",
        version=API_VERSION,
        environment=settings.environment,
        database="connected" if await _ping() else "disconnected",
        database_name=settings.mongo_db_name,
        collections=db_module.db_client.collection_names(),
    )
