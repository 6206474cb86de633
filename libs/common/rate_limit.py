"""Rate limiting for public endpoints.

Uses slowapi; state lives in ``RATE_LIMIT_STORAGE_URI`` (in-memory by default,
Redis when several instances run behind a load balancer).
"""

from functools import lru_cache
from typing import Callable

from fastapi import Request, Response
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.responses import JSONResponse

from libs.common.config import get_settings
from libs.common.responses import fail_response


def _get_client_ip(request: Request) -> str:
    """
    Client IP, honouring the first hop of X-Forwarded-For when proxied.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return get_remote_address(request)


@lru_cache
def get_limiter() -> Limiter:
    settings = get_settings()
    return Limiter(
        key_func=_get_client_ip,
        default_limits=["100/minute"],
        storage_uri=settings.RATE_LIMIT_STORAGE_URI,
        strategy="fixed-window",
        enabled=settings.RATE_LIMIT_ENABLED,
    )


limiter = get_limiter()


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> Response:
    """
    JSON envelope with a Retry-After header.
    """
    return JSONResponse(
        status_code=429,
        content=fail_response(
            f"Rate limit exceeded: {exc.detail}", code="RATE_LIMIT_EXCEEDED"
        ),
        headers={"Retry-After": str(getattr(exc, "retry_after", 60))},
    )


def geo_limit(func: Callable) -> Callable:
    """Public geo lookups (60/minute per client)."""
    return limiter.limit("60/minute")(func)
