"""Pydantic models for blog posts."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class PostData(BaseModel):
    """A blog post as stored in the `posts` collection and returned by the API."""

    model_config = ConfigDict(extra="ignore")

    post_id: str
    title: str
    body: str
    created: str
    edited: Optional[str] = None
    preview_image_link: str = ""
    preview_summary: str = ""
    topic: Optional[str] = None
    view_count: int = Field(default=0, ge=0)


class AllPosts(BaseModel):
    """Every post, newest first."""

    posts: list[PostData]
