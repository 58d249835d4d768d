"""
Middleware Package

Provides FastAPI middleware for:
- Rate limiting
- Error handling

Usage:
    from hifz.middleware import setup_error_handling, setup_rate_limiting
"""

from hifz.middleware.error_handling import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    ErrorHandlingMiddleware,
    NotFoundError,
    ServiceError,
    ValidationError,
    setup_error_handling,
)
from hifz.middleware.rate_limit import limiter, setup_rate_limiting

__all__ = [
    "setup_rate_limiting",
    "limiter",
    "setup_error_handling",
    "ErrorHandlingMiddleware",
    "ServiceError",
    "AuthenticationError",
    "AuthorizationError",
    "ConflictError",
    "NotFoundError",
    "ValidationError",
]
