"""
Request rate limiting (slowapi, in-process storage)

Limits are per client IP. RATE_LIMIT_DEFAULT applies to every route;
register/login use RATE_LIMIT_AUTH and payment processing RATE_LIMIT_PAYMENT
through @limiter.limit on the route.
"""
import logging

from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.requests import Request
from starlette.responses import JSONResponse

from app.core.config import settings

logger = logging.getLogger(__name__)

DEFAULT_RETRY_AFTER = 60


def get_client_ip(request: Request) -> str:
    """Left-most X-Forwarded-For address when behind a proxy, else the peer address."""
    forwarded = request.headers.get("X-Forwarded-For", "")
    client = forwarded.split(",")[0].strip()
    return client or get_remote_address(request)


limiter = Limiter(
    key_func=get_client_ip,
    default_limits=[settings.RATE_LIMIT_DEFAULT],
    enabled=settings.RATE_LIMIT_ENABLED,
)


def retry_after_seconds(exc: RateLimitExceeded) -> int:
    limit = getattr(exc, "limit", None)
    if limit is None:
        return DEFAULT_RETRY_AFTER
    return int(limit.limit.get_expiry())


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    retry_after = retry_after_seconds(exc)
    logger.warning(
        "rate_limited ip=%s path=%s limit=%s",
        get_client_ip(request), request.url.path, exc.detail,
    )
    return JSONResponse(
        status_code=429,
        content={
            "success": False,
            "message": "Too many requests, please slow down",
            "error": {"code": "RATE_LIMITED", "details": {"limit": exc.detail, "retry_after": retry_after}},
        },
        headers={"Retry-After": str(retry_after)},
    )
