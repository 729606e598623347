"""
content.py — Random background GIFs and 404-page stories.

Both are decorative, so any miss (empty collection, MongoDB down, malformed
document) falls back to a fixed value instead of failing the page.
"""

import logging
import random
from typing import Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError
from pymongo.errors import PyMongoError

from stacc.core.config import settings
from stacc.models.misc import BackgroundGIF, Story

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


async def _random_document(db, collection_name: str, model: Type[ModelT]) -> Optional[ModelT]:
    if db is None:
        logger.warning("MongoDB unavailable; using fallback for %s", collection_name)
        return None

    collection = db[collection_name]
    try:
        count = await collection.count_documents({})
        if count == 0:
            logger.warning("Collection %s is empty; using fallback", collection_name)
            return None
        doc = await collection.find_one({}, skip=random.randrange(count))
    except PyMongoError as exc:
        logger.warning("Random %s lookup failed: %s", collection_name, exc)
        return None

    if doc is None:
        return None
    try:
        return model.model_validate(doc)
    except ValidationError as exc:
        logger.warning("Malformed document in %s: %s", collection_name, exc)
        return None


async def random_background(db) -> BackgroundGIF:
    background = await _random_document(db, settings.backgrounds_collection, BackgroundGIF)
    return background or BackgroundGIF(link=settings.fallback_background_link)


async def random_story(db) -> Story:
    story = await _random_document(db, settings.stories_collection, Story)
    return story or Story(story=settings.fallback_story)
