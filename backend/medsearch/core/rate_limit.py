"""
Request throttling for the search API.

One search request fans out to every enabled literature source, and a
fallback can repeat that fan-out across several tiers, so the search routes
carry much tighter slowapi limits than the cheap source listing. Counters
live in Redis when it answers at startup so several workers share them.
"""
import redis
from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from starlette.requests import Request
from starlette.responses import JSONResponse

from medsearch.core.config import settings
from medsearch.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_LIMIT = "100/minute"
RESEARCH_LIMIT = "20/minute"
RESEARCH_STREAM_LIMIT = "10/minute"
SOURCES_LIMIT = "60/minute"

DEFAULT_RETRY_AFTER_SECONDS = 60


def _get_identifier(request: Request) -> str:
    """Client key: the first X-Forwarded-For hop behind a proxy, else the peer address."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()

    return get_remote_address(request)


def _get_storage_uri() -> str:
    """
    Counter storage for the limiter.

    With throttling switched off (the test suite does this) Redis is not
    contacted at all. Otherwise a Redis that answers a ping at import time
    is used, and an unreachable one degrades to per-process memory.
    """
    if not settings.RATE_LIMIT_ENABLED:
        return "memory://"

    redis_uri = f"redis://{settings.REDIS_HOST}:{settings.REDIS_PORT}"

    try:
        client = redis.from_url(redis_uri, socket_connect_timeout=2)
        client.ping()
        logger.info(f"Search rate limits stored in Redis at {settings.REDIS_HOST}:{settings.REDIS_PORT}")
        return redis_uri
    except (redis.ConnectionError, redis.TimeoutError):
        logger.warning("Redis unreachable, search rate limits are per-process")
        return "memory://"


limiter = Limiter(
    key_func=_get_identifier,
    storage_uri=_get_storage_uri(),
    default_limits=[DEFAULT_LIMIT],
    strategy="fixed-window",
    enabled=settings.RATE_LIMIT_ENABLED,
)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """429 body telling the client which route limit it hit and when to retry a search."""
    retry_after = getattr(exc, "retry_after", DEFAULT_RETRY_AFTER_SECONDS)
    route_limit = getattr(request.state, "view_rate_limit", None)
    return JSONResponse(
        status_code=429,
        content={
            "error": "Rate limit exceeded",
            "detail": f"Too many search requests from this client. {exc.detail}",
            "path": request.url.path,
            "retry_after": retry_after,
        },
        headers={
            "Retry-After": str(retry_after),
            "X-RateLimit-Limit": str(route_limit) if route_limit is not None else "unknown",
        },
    )
