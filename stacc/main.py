"""
stacc API — Application entry point.

Bootstraps FastAPI, wires up middleware and error handlers, registers route
groups, and manages the MongoDB connection lifecycle.

Every route group is mounted twice: at the root, and under /api (the path the
frontend uses behind the reverse proxy).

Every error leaves the API as the same envelope:
    {"message": "...", "status_code": 404}
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from stacc.core.config import API_VERSION, settings
from stacc.core.database import close_mongo_connection, connect_to_mongo
from stacc.core.errors import StaccError
from stacc.core.rate_limit import limiter
from stacc.models.misc import Response
from stacc.routes.chicago import router as chicago_router
from stacc.routes.health import router as health_router
from stacc.routes.misc import router as misc_router
from stacc.routes.posts import router as posts_router
from stacc.services.visitor_tracker import get_real_ip

# ─── Logging ───────────────────────────────────────────────────────────────────
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


# ─── Lifespan ──────────────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the MongoDB connection on startup; close it on shutdown."""
    logger.info("Starting stacc API (env: %s)", settings.environment)
    await connect_to_mongo()
    yield
    logger.info("Shutting down stacc API")
    await close_mongo_connection()


# ─── App ───────────────────────────────────────────────────────────────────────
app = FastAPI(
    title="stacc API",
    description="Blog posts, visitor analytics, and Chicago open-data summaries.",
    version=API_VERSION,
    lifespan=lifespan,
    docs_url="/docs" if settings.environment != "production" else None,
    redoc_url="/redoc" if settings.environment != "production" else None,
)


# ─── Error envelope ────────────────────────────────────────────────────────────
def _envelope(
    request: Request, message: str, status_code: int, headers: dict | None = None
) -> JSONResponse:
    # Visit tracking queued by track_visit still runs after an error response
    return JSONResponse(
        status_code=status_code,
        content=Response(message=message, status_code=status_code).model_dump(),
        headers=headers,
        background=getattr(request.state, "background_tasks", None),
    )


@app.exception_handler(StaccError)
async def stacc_error_handler(request: Request, exc: StaccError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message, exc_info=exc.cause)
    return _envelope(request, exc.client_message, exc.status_code)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _envelope(request, str(exc.detail), exc.status_code, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return _envelope(request, f"Invalid request: {exc.errors()}", 422)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    logger.info("Rate limit hit by %s on %s", get_real_ip(request) or "?", request.url.path)
    return _envelope(request, f"Rate limit exceeded: {exc.detail}", 429)


# ─── Rate limiting ─────────────────────────────────────────────────────────────
# Routes opt in with @limiter.limit(...) + a request: Request parameter.
app.state.limiter = limiter

# ─── Middleware ────────────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET"],
    allow_headers=["*"],
)


# ─── Routes ────────────────────────────────────────────────────────────────────
app.include_router(health_router, prefix="/health", tags=["health"])

for _prefix in ("", "/api"):
    app.include_router(misc_router, prefix=_prefix)
    app.include_router(posts_router, prefix=_prefix)
    app.include_router(chicago_router, prefix=_prefix)


@app.get("/", tags=["root"])
async def root():
    """API root — basic metadata."""
    return {
        "name": "stacc API",
        "version": API_VERSION,
        "status": "running",
        "environment": settings.environment,
        "docs": "/docs",
    }
