"""Rate limiting for the Rewards API.

Uses slowapi with the Redis backend when REDIS_URL is set so that every
service instance draws from the same counters.
"""

from functools import lru_cache
from typing import Callable

from fastapi import Request, Response
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.responses import JSONResponse

from libs.common.config import get_settings
from libs.common.error_handler import error_body
from libs.common.logging import get_logger

logger = get_logger(__name__)


def _get_client_ip(request: Request) -> str:
    """
    Get client IP from request, handling proxies.

    Checks X-Forwarded-For first (the gateway sits in front of us),
    then falls back to the direct connection IP.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        # First hop is the original client
        return forwarded.split(",")[0].strip()
    return get_remote_address(request)


def _ip_key(request: Request) -> str:
    return f"ip:{_get_client_ip(request)}"


def _user_or_ip_key(request: Request) -> str:
    """
    Rate limit by user ID if authenticated, otherwise by IP.

    ``get_current_user`` stores the caller on ``request.state.user`` before
    the endpoint (and so the limit check) runs.
    """
    user = getattr(request.state, "user", None)
    if user is not None:
        return f"user:{user.user_id}"
    return _ip_key(request)


@lru_cache
def get_limiter() -> Limiter:
    """Cached Limiter. In-memory counters when Redis is not configured."""
    settings = get_settings()
    return Limiter(
        key_func=_user_or_ip_key,
        storage_uri=settings.REDIS_URL or "memory://",
        strategy="fixed-window",
    )


limiter = get_limiter()


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> Response:
    """Render a 429 in the service's error shape with a Retry-After header."""
    logger.warning(
        "Rate limit %s exceeded on %s %s", exc.detail, request.method, request.url.path
    )
    return JSONResponse(
        status_code=429,
        content=error_body("RATE_LIMIT_EXCEEDED", f"Rate limit exceeded: {exc.detail}"),
        headers={
            "Retry-After": str(getattr(exc, "retry_after", 60)),
            "X-RateLimit-Limit": str(getattr(exc, "limit", "unknown")),
        },
    )


def vote_limit(func: Callable) -> Callable:
    """
    Throttle comment votes per voter and per client IP.

    Both buckets are shared by the member and moderator vote routes and
    across comments, so hopping between comments does not reset them.
    """
    rate = get_settings().VOTE_RATE_LIMIT
    func = limiter.shared_limit(rate, scope="vote:ip", key_func=_ip_key)(func)
    return limiter.shared_limit(rate, scope="vote:user", key_func=_user_or_ip_key)(func)
