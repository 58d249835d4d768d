"""
Rate Limiting Middleware

Prevents abuse and ensures fair resource usage using SlowAPI.

Every route gets the default limit from settings (RATE_LIMIT_DEFAULT),
applied by SlowAPIMiddleware and keyed by caller identity when the identity
header is present, otherwise by client address.

Usage:
    from hifz.middleware.rate_limit import setup_rate_limiting

    setup_rate_limiting(app, enabled=settings.RATE_LIMIT_ENABLED)
"""

import logging

from fastapi import FastAPI, Request
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from hifz.config import settings

logger = logging.getLogger(__name__)


def get_client_identifier(request: Request) -> str:
    """
    Get client identifier for rate limiting.

    Prefers the authenticated user id header, then X-Forwarded-For when
    behind a proxy, then the direct client address.

    Args:
        request: FastAPI request object

    Returns:
        Caller identifier
    """
    user_id = request.headers.get(settings.USER_ID_HEADER)
    if user_id:
        return f"user:{user_id}"

    # Check for forwarded header (behind proxy/load balancer)
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # Take the first IP in the chain (original client)
        return forwarded_for.split(",")[0].strip()

    # Fall back to direct client address
    return get_remote_address(request)


# Initialize limiter with default key function
limiter = Limiter(
    key_func=get_client_identifier,
    default_limits=[settings.RATE_LIMIT_DEFAULT],
)


def setup_rate_limiting(app: FastAPI, enabled: bool = True) -> None:
    """
    Configure rate limiting on the FastAPI app.

    Args:
        app: FastAPI application instance
        enabled: Whether to enable rate limiting
    """
    if not enabled:
        logger.info("Rate limiting disabled")
        return

    # Store limiter in app state
    app.state.limiter = limiter

    # Add exception handler for rate limit exceeded
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Add middleware
    app.add_middleware(SlowAPIMiddleware)

    logger.info(f"Rate limiting enabled (default {settings.RATE_LIMIT_DEFAULT})")
