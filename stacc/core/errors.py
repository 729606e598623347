"""
errors.py — Error taxonomy shared by services and routes.

Every error that can reach a client derives from StaccError and carries the
HTTP status it maps to. main.py registers one exception handler that renders
all of them as the common envelope:

    {"message": "...", "status_code": 404}

with the same code on the status line.

Failures on the visitor-tracking side path never become StaccErrors; they
are logged and dropped in services/visitor_tracker.py.
"""

from typing import Optional


class StaccError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = 500
    # Message shown to clients for server-side failures; the detailed
    # message only goes to the log.
    public_message: Optional[str] = None

    def __init__(self, message: str, cause: Optional[Exception] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    @property
    def client_message(self) -> str:
        return self.public_message or self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(status_code={self.status_code}, message={self.message!r})"


class PostNotFoundError(StaccError):
    """The requested blog post does not exist."""

    status_code = 404

    def __init__(self, post_id: str):
        super().__init__(f"Post not found: '{post_id}'")
        self.post_id = post_id


class StoreUnavailableError(StaccError):
    """MongoDB is disconnected or a query against it failed."""

    public_message = "MongoDB error: the document store could not be reached"


class UpstreamUnavailableError(StaccError):
    """A third-party HTTP dependency was unreachable or answered with an error."""

    public_message = "Chicago API error: upstream data source unavailable"


class MalformedUpstreamPayloadError(UpstreamUnavailableError):
    """A third-party response could not be parsed at the envelope level."""

    public_message = "Chicago API error: upstream returned an unexpected payload"
