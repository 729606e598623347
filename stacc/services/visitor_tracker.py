"""
visitor_tracker.py — Visitor identity and per-post engagement.

Everything here is a side path: nothing raises to the caller, failures are
logged and dropped, and routes run it as a background task after the
response has been sent (see `track_visit` / `schedule`).

New vs. returning visitor
─────────────────────────
The decision never uses a read followed by an insert. Instead:

  1. find_one_and_update({ip}, $inc refresh_count, $set last_visit_date)
     → a document back means a returning visitor; done.
  2. Nothing matched: look up geolocation (slow, best effort), then upsert
     with $setOnInsert for the new document and $inc refresh_count,
     asking for the document as it was BEFORE the update.
       - None back: this call inserted the visitor (refresh_count == 1).
       - A document back: a concurrent request inserted it first. Our $inc
         already counted this visit, so only last_visit_date is set, and
         the geolocation we fetched is discarded ($setOnInsert is a no-op).
  3. Two simultaneous upserts can still collide on the unique
     `ip_address` index; the loser retries step 1 once.

ip_data is only ever written by $setOnInsert, so it is never overwritten.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from fastapi import BackgroundTasks, Depends, Request
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from stacc.core.config import settings
from stacc.core.database import get_db
from stacc.models.visitor import IPData, Visitor, visit_timestamp
from stacc.services.ip_lookup import ip_lookup

logger = logging.getLogger(__name__)


# ── Address resolution ────────────────────────────────────────────────────────

def normalize_address(raw: Optional[str]) -> Optional[str]:
    """
    Strip a port suffix from a client address.

      "1.2.3.4:5000"        → "1.2.3.4"
      "[2001:db8::1]:443"   → "2001:db8::1"
      "2001:db8::1"         → unchanged (bare IPv6 has no port)
      "" / None             → None
    """
    if raw is None:
        return None
    address = raw.strip()
    if address.startswith("["):
        end = address.find("]")
        address = address[1:end] if end > 0 else ""
    elif address.count(":") == 1:
        address = address.split(":", 1)[0]
    return address or None


def get_real_ip(request: Request) -> Optional[str]:
    """Client address, preferring proxy headers over the socket peer."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()
    return request.client.host if request.client else None


# ── Visits ────────────────────────────────────────────────────────────────────

async def _increment_visit(visitors, ip_address: str) -> Optional[dict]:
    return await visitors.find_one_and_update(
        {"ip_address": ip_address},
        {
            "$inc": {"refresh_count": 1},
            "$set": {"last_visit_date": visit_timestamp()},
        },
        return_document=ReturnDocument.AFTER,
    )


async def _insert_visitor(visitors, ip_address: str, ip_data: Optional[IPData]) -> None:
    now = visit_timestamp()
    new_doc = Visitor(ip_address=ip_address, first_visit_date=now, ip_data=ip_data).to_document()
    # Both come from the filter and the $inc below
    new_doc.pop("ip_address")
    new_doc.pop("refresh_count")

    try:
        existing = await visitors.find_one_and_update(
            {"ip_address": ip_address},
            {"$setOnInsert": new_doc, "$inc": {"refresh_count": 1}},
            upsert=True,
            return_document=ReturnDocument.BEFORE,
        )
    except DuplicateKeyError:
        logger.info("Concurrent first visit from %s; counting as a return visit", ip_address)
        await _increment_visit(visitors, ip_address)
        return

    if existing is None:
        logger.info("New visitor recorded: %s", ip_address)
    else:
        await visitors.update_one(
            {"ip_address": ip_address},
            {"$set": {"last_visit_date": now}},
        )


async def record_visit(db, client_address: Optional[str]) -> None:
    """
    Count one page view from *client_address*, creating the visitor on first sight.

    Never raises.
    """
    ip_address = normalize_address(client_address)
    if ip_address is None:
        logger.warning("Failed to resolve visitor IP address; visit not recorded")
        return
    if db is None:
        logger.warning("MongoDB unavailable; visit from %s not recorded", ip_address)
        return

    visitors = db[settings.visitors_collection]
    try:
        if await _increment_visit(visitors, ip_address) is not None:
            return

        ip_data = await ip_lookup.lookup(ip_address)
        await _insert_visitor(visitors, ip_address, ip_data)
    except Exception:
        logger.exception("Failed to record visit from %s", ip_address)


async def record_resource_view(
    db,
    resource_id: str,
    client_address: Optional[str],
    *,
    count_view: bool = True,
) -> None:
    """
    Count one view of a post, globally and for the visiting address.

    The two updates are independent; either can fail without the other.
    count_view=False skips the global counter for callers that already
    incremented it (GET /blog/post/{id} does, via posts.get_resource).
    An unresolvable address drops the per-visitor count only.
    """
    if db is None:
        logger.warning("MongoDB unavailable; view of post %s not recorded", resource_id)
        return

    if count_view:
        try:
            await db[settings.posts_collection].update_one(
                {"post_id": resource_id},
                {"$inc": {"view_count": 1}},
            )
        except PyMongoError as exc:
            logger.error("Failed to increment view count of post %s: %s", resource_id, exc)

    ip_address = normalize_address(client_address)
    if ip_address is None:
        logger.warning("Failed to resolve post visitor's IP address (post %s)", resource_id)
        return

    # Mongo treats "." and a leading "$" in a key path as operators
    if "." in resource_id or resource_id.startswith("$"):
        logger.warning("Post id %r cannot be used as a visited_posts key", resource_id)
        return

    try:
        await db[settings.visitors_collection].update_one(
            {"ip_address": ip_address},
            {"$inc": {f"visited_posts.{resource_id}": 1}},
        )
    except PyMongoError as exc:
        logger.error("Failed to record view of post %s by %s: %s", resource_id, ip_address, exc)


# ── Detached scheduling ───────────────────────────────────────────────────────

async def run_detached(task: Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any) -> None:
    """Await *task* under the side-task timeout; log instead of raising."""
    try:
        await asyncio.wait_for(task(*args, **kwargs), timeout=settings.side_task_timeout_seconds)
    except asyncio.TimeoutError:
        logger.warning(
            "%s timed out after %.1fs", task.__name__, settings.side_task_timeout_seconds
        )
    except Exception:
        logger.exception("%s failed", task.__name__)


def schedule(
    background_tasks: BackgroundTasks,
    task: Callable[..., Awaitable[Any]],
    *args: Any,
    **kwargs: Any,
) -> None:
    """Run *task* after the response is sent."""
    background_tasks.add_task(run_detached, task, *args, **kwargs)


def track_visit(
    request: Request,
    background_tasks: BackgroundTasks,
    db=Depends(get_db),
) -> Optional[str]:
    """
    FastAPI dependency: schedule record_visit for this request.

    Returns the raw client address so routes can attribute post views.
    The tasks are also kept on request.state so an error response still
    carries them (see main._envelope): the visit is recorded whatever the
    route goes on to do.
    """
    client_address = get_real_ip(request)
    schedule(background_tasks, record_visit, db, client_address)
    request.state.background_tasks = background_tasks
    return client_address
