"""
MongoDB connection management using Motor (async driver).

A single DatabaseClient instance is shared across all requests via a
module-level singleton; routes get the database through the get_db
dependency.

On startup the connection is pinged and the unique indexes the services
rely on are ensured:

  visitors.ip_address  makes two concurrent first-visit upserts collide
                       (DuplicateKeyError) instead of creating two visitors
  posts.post_id        one post per id, so view counts are never split
"""

import logging
import re

import certifi
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from stacc.core.config import settings

logger = logging.getLogger(__name__)

# (settings attribute holding the collection name, uniquely indexed field)
UNIQUE_INDEXES = (
    ("visitors_collection", "ip_address"),
    ("posts_collection", "post_id"),
)


class DatabaseClient:
    """Holds the Motor client and the stacc database."""

    client: AsyncIOMotorClient | None = None
    db: AsyncIOMotorDatabase | None = None

    @property
    def connected(self) -> bool:
        return self.client is not None and self.db is not None

    def collection_names(self) -> dict[str, str]:
        """Configured collection name per role, as reported by /health."""
        return {
            "backgrounds": settings.backgrounds_collection,
            "posts": settings.posts_collection,
            "stories": settings.stories_collection,
            "visitors": settings.visitors_collection,
        }


# Module-level singleton; all app code references this object
db_client = DatabaseClient()


async def ensure_indexes(db) -> None:
    """Create the unique indexes; existing ones are left as they are."""
    for setting, field in UNIQUE_INDEXES:
        name = getattr(settings, setting)
        await db[name].create_index(field, unique=True)
        logger.debug("Ensured unique index %s.%s", name, field)


async def connect_to_mongo() -> None:
    """
    Open the connection, ping it, and ensure indexes.

    If MongoDB is unreachable the API still starts: post routes answer with
    a 500 envelope, visit tracking is skipped, backgrounds and stories fall
    back, and /health reports "disconnected". A failed index build is only
    logged; the connection stays up.
    """
    logger.info("Connecting to MongoDB at %s", _redact_uri(settings.mongo_uri))
    try:
        client = AsyncIOMotorClient(
            settings.mongo_uri,
            serverSelectionTimeoutMS=5000,
            tlsCAFile=certifi.where(),
        )
        await client.admin.command("ping")
    except Exception as exc:
        logger.warning("MongoDB unavailable at startup: %s. Running without a document store.", exc)
        db_client.client = None
        db_client.db = None
        return

    db_client.client = client
    db_client.db = client[settings.mongo_db_name]
    logger.info("MongoDB connection established (db: %s)", settings.mongo_db_name)

    try:
        await ensure_indexes(db_client.db)
    except PyMongoError as exc:
        logger.error("Could not ensure unique indexes: %s", exc)


async def close_mongo_connection() -> None:
    if db_client.client is not None:
        db_client.client.close()
        logger.info("MongoDB connection closed")


def get_db() -> AsyncIOMotorDatabase | None:
    """
    FastAPI dependency: the stacc database, or None when disconnected.

    The post service turns None into a StoreUnavailableError; visit tracking
    and the decorative routes skip or fall back.
    """
    return db_client.db if db_client.connected else None


def _redact_uri(uri: str) -> str:
    """Strip credentials from URI before logging."""
    return re.sub(r"://[^:]+:[^@]+@", "://<redacted>@", uri)
