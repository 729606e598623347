"""
rate_limit.py — Global rate limiter instance.

Uses slowapi (a Starlette-compatible wrapper around the `limits` library).
Requests are keyed by the same client address the visitor tracker uses
(first X-Forwarded-For hop, then X-Real-IP, then the socket peer), so
clients behind the reverse proxy get their own buckets. Only the Chicago
proxy routes opt in, since every call there fans out to two upstream
Socrata requests.

Usage in routes:
    @router.get("/chiraq")
    @limiter.limit(settings.chicago_rate_limit)
    async def my_endpoint(request: Request):
        ...
"""

from fastapi import Request
from slowapi import Limiter

from stacc.services.visitor_tracker import get_real_ip, normalize_address


def client_key(request: Request) -> str:
    return normalize_address(get_real_ip(request)) or "unknown"


limiter = Limiter(key_func=client_key)
