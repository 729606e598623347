"""
posts.py — Blog routes.

Routes:
  GET /blog/posts           — every post, newest first
  GET /blog/post/{post_id}  — a single post; counts one view

Both record the visit in the background. A single post additionally bumps
visited_posts[post_id] on the visitor, after the response is sent.
"""

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends

from stacc.core.database import get_db
from stacc.models.misc import Response
from stacc.models.post import AllPosts, PostData
from stacc.services import posts as post_service
from stacc.services.visitor_tracker import record_resource_view, schedule, track_visit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/blog", tags=["blog"])


@router.get("/posts", response_model=AllPosts)
async def get_all_posts(
    db=Depends(get_db),
    _client_ip: Optional[str] = Depends(track_visit),
):
    """Return all posts sorted newest first by their created timestamp."""
    posts = await post_service.get_all_resources(db)
    posts.sort(key=lambda post: post.created, reverse=True)
    return AllPosts(posts=posts)


@router.get(
    "/post/{post_id}",
    response_model=PostData,
    responses={404: {"model": Response}},
)
async def get_single_post(
    post_id: str,
    background_tasks: BackgroundTasks,
    db=Depends(get_db),
    client_ip: Optional[str] = Depends(track_visit),
):
    """Return one post with its view count already incremented."""
    post = await post_service.get_resource(db, post_id)

    # get_resource has already counted the view
    schedule(background_tasks, record_resource_view, db, post_id, client_ip, count_view=False)
    return post
