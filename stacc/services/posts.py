"""
posts.py — Blog post reads with view counting.

View counts only ever change through `$inc` inside a single
find_one_and_update, so concurrent readers never lose an increment.

Failure kinds are kept apart for the routes:
  PostNotFoundError      → 404, safe to show a "not found" page
  StoreUnavailableError  → 500, MongoDB down or the query failed
"""

import logging

from pydantic import ValidationError
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from stacc.core.config import settings
from stacc.core.errors import PostNotFoundError, StoreUnavailableError
from stacc.models.post import PostData

logger = logging.getLogger(__name__)


def _posts(db):
    if db is None:
        raise StoreUnavailableError("MongoDB error: database is not connected")
    return db[settings.posts_collection]


async def get_all_resources(db) -> list[PostData]:
    """Return every stored post, unfiltered and in store order."""
    collection = _posts(db)

    posts: list[PostData] = []
    try:
        async for doc in collection.find({}):
            try:
                posts.append(PostData.model_validate(doc))
            except ValidationError as exc:
                logger.warning("Skipping malformed post doc %s: %s", doc.get("post_id"), exc)
    except PyMongoError as exc:
        raise StoreUnavailableError(f"MongoDB error: {exc}", cause=exc) from exc

    return posts


async def get_resource(db, post_id: str) -> PostData:
    """
    Increment a post's view counter and return the post as updated.

    Raises PostNotFoundError when no post has this id; nothing is
    incremented in that case.
    """
    collection = _posts(db)

    try:
        doc = await collection.find_one_and_update(
            {"post_id": post_id},
            {"$inc": {"view_count": 1}},
            return_document=ReturnDocument.AFTER,
        )
    except PyMongoError as exc:
        raise StoreUnavailableError(f"MongoDB error: {exc}", cause=exc) from exc

    if doc is None:
        raise PostNotFoundError(post_id)

    try:
        return PostData.model_validate(doc)
    except ValidationError as exc:
        raise StoreUnavailableError(f"MongoDB error: malformed post document '{post_id}'", cause=exc) from exc
