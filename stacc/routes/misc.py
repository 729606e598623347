"""
misc.py — Decorative content routes.

Routes:
  GET /background  — random background GIF link (also set as a cookie)
  GET /story       — random story for the 404 page

Neither ever fails: an empty or unreachable store yields the fallback.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from fastapi import Response as HTTPResponse

from stacc.core.database import get_db
from stacc.models.misc import BackgroundGIF, Story
from stacc.services.content import random_background, random_story
from stacc.services.visitor_tracker import track_visit

router = APIRouter(tags=["misc"])

BACKGROUND_COOKIE = "background"
BACKGROUND_COOKIE_MAX_AGE = 60 * 60 * 24


@router.get("/background", response_model=BackgroundGIF)
async def get_background_gif(
    response: HTTPResponse,
    db=Depends(get_db),
    _client_ip: Optional[str] = Depends(track_visit),
):
    """Pick a random background GIF from the backgrounds collection."""
    background = await random_background(db)
    response.set_cookie(
        BACKGROUND_COOKIE,
        background.link,
        max_age=BACKGROUND_COOKIE_MAX_AGE,
        samesite="lax",
    )
    return background


@router.get("/story", response_model=Story)
async def get_story(
    db=Depends(get_db),
    _client_ip: Optional[str] = Depends(track_visit),
):
    return await random_story(db)
