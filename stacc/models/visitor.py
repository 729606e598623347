"""
visitor.py — Pydantic models for visitor analytics.

Document shape in the `visitors` collection:

  {
    "ip_address": "1.2.3.4",               ← unique index
    "first_visit_date": "2024-01-01 12:00:00",
    "last_visit_date": "2024-01-02 08:30:00" | null,
    "refresh_count": 3,
    "ip_data": { ...ip-api.com fields... } | null,
    "visited_posts": { "<post_id>": 2 }
  }

refresh_count is only bumped by routes that record a visit: the background
GIF, the 404 story, the blog listing, a single post, and the Chicago map.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

VISIT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def visit_timestamp(now: Optional[datetime] = None) -> str:
    """UTC timestamp in the format stored on visitor documents."""
    return (now or datetime.now(tz=timezone.utc)).strftime(VISIT_DATE_FORMAT)


class IPData(BaseModel):
    """
    IP metadata returned by ip-api.com (https://ip-api.com/docs/api:json).

    Only `status` is guaranteed: failed lookups come back as
    {"status": "fail", "message": "...", "query": "..."}.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    # Autonomous System number + organisation; "as" is a Python keyword.
    as_: Optional[str] = Field(default=None, alias="as")
    city: Optional[str] = None
    continent: Optional[str] = None
    country: Optional[str] = None
    countryCode: Optional[str] = None
    currency: Optional[str] = None
    hosting: Optional[bool] = None   # hosting, colocated or data center
    isp: Optional[str] = None
    lat: Optional[float] = None
    lon: Optional[float] = None
    message: Optional[str] = None    # only present when status == "fail"
    mobile: Optional[bool] = None
    org: Optional[str] = None
    proxy: Optional[bool] = None     # proxy, VPN or Tor exit address
    query: Optional[str] = None      # the IP address itself
    region: Optional[str] = None
    regionName: Optional[str] = None
    reverse: Optional[str] = None    # reverse DNS; slows the lookup down
    status: str
    timezone: Optional[str] = None
    zip: Optional[str] = None

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True)


class Visitor(BaseModel):
    """A visitor keyed by normalised client IP address."""

    ip_address: str
    first_visit_date: str = Field(default_factory=visit_timestamp)
    last_visit_date: Optional[str] = None
    refresh_count: int = Field(default=1, ge=1)
    ip_data: Optional[IPData] = None
    visited_posts: dict[str, int] = Field(default_factory=dict)

    def to_document(self) -> dict:
        # by_alias carries through to ip_data, so "as" is stored under its real name
        return self.model_dump(by_alias=True)
