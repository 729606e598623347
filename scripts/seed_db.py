#!/usr/bin/env python3
"""
seed_db.py — Populate MongoDB with sample content for local development.

Inserts:
  - A few blog posts
  - Background GIF links and 404-page stories
  - The unique indexes the visitor tracker relies on

Usage:
    python scripts/seed_db.py

Requires:
    pip install -e .
    MongoDB running locally (or MONGO_URI set in the environment / .env)

Safe to re-run: posts are upserted by post_id; backgrounds and stories are
replaced wholesale.
"""

import asyncio

from motor.motor_asyncio import AsyncIOMotorClient

from stacc.core.config import settings
from stacc.core.database import ensure_indexes

SAMPLE_POSTS = [
    {
        "post_id": "hello-world",
        "title": "hello world",
        "body": "# hello world\n\nFirst post on the new site.",
        "created": "2023-01-14 18:02:11",
        "edited": None,
        "preview_image_link": "https://i.imgur.com/FgJDNsx.gif",
        "preview_summary": "First post on the new site.",
        "topic": "meta",
        "view_count": 0,
    },
    {
        "post_id": "mapping-chicago",
        "title": "mapping chicago",
        "body": "Plotting ShotSpotter alerts and shooting victims with Leaflet.",
        "created": "2023-03-02 09:41:57",
        "edited": "2023-03-05 22:10:03",
        "preview_image_link": "https://i.imgur.com/5TV33u5.png",
        "preview_summary": "Plotting open data from the City of Chicago.",
        "topic": "data",
        "view_count": 0,
    },
]

SAMPLE_BACKGROUNDS = [
    {"link": "https://imgur.com/FgJDNsx.gif"},
    {"link": "https://i.imgur.com/UalxwUV.gif"},
]

SAMPLE_STORIES = [
    {"story": "If you don’t like the road you’re walking, pave another one. Except for this one."},
    {"story": "You took a wrong turn somewhere. It happens to the best of us."},
]


async def seed() -> None:
    print("Connecting to MongoDB...")
    client = AsyncIOMotorClient(settings.mongo_uri)
    db = client[settings.mongo_db_name]

    try:
        await client.admin.command("ping")
        print("Connected.")

        # ─── Posts ────────────────────────────────────────────────────────────
        for post in SAMPLE_POSTS:
            fields = {k: v for k, v in post.items() if k != "view_count"}
            await db[settings.posts_collection].update_one(
                {"post_id": post["post_id"]},
                {"$set": fields, "$setOnInsert": {"view_count": 0}},
                upsert=True,
            )
        print(f"Upserted {len(SAMPLE_POSTS)} posts.")

        # ─── Backgrounds + stories ────────────────────────────────────────────
        for name, docs in (
            (settings.backgrounds_collection, SAMPLE_BACKGROUNDS),
            (settings.stories_collection, SAMPLE_STORIES),
        ):
            await db[name].delete_many({})
            result = await db[name].insert_many([dict(d) for d in docs])
            print(f"Inserted {len(result.inserted_ids)} documents into {name}.")

        # ─── Indexes ──────────────────────────────────────────────────────────
        await ensure_indexes(db)
        print("Indexes ensured.")

    finally:
        client.close()


if __name__ == "__main__":
    asyncio.run(seed())
