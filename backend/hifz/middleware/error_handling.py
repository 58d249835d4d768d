"""
Error Handling Middleware

Provides consistent, informative error responses across the API.

Features:
- Standardized error response format
- Correlation IDs for log tracking
- Sanitized responses (hides internal details in production)
- Custom exception classes for the error taxonomy of the service:
  authentication, authorization, not found, validation, conflict

Usage:
    from hifz.middleware.error_handling import setup_error_handling, NotFoundError

    # Add middleware to app
    setup_error_handling(app, debug=settings.DEBUG)

    # Raise custom exceptions from services
    raise NotFoundError("Group not found", details={"group_id": group_id})

Exception handling hierarchy:
    - HTTPException: Re-raised for FastAPI's built-in handler
    - ServiceError: Custom exceptions → structured JSON response
    - Exception: Catch-all for unexpected errors → sanitized response
"""

import logging
import traceback
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


# =============================================================================
# Custom Exceptions
# =============================================================================


class ServiceError(Exception):
    """
    Base exception for service errors.

    Provides consistent error handling with:
    - HTTP status code
    - Error code for categorization
    - Optional details for debugging

    Example:
        raise ServiceError("Database connection failed", status_code=503)
    """

    status_code: int = 500
    error_code: str = "service_error"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message)
        self.message = message
        if status_code:
            self.status_code = status_code
        if error_code:
            self.error_code = error_code
        self.details = details


class AuthenticationError(ServiceError):
    """
    Authentication error.

    Raised when no caller identity can be resolved from the request.
    """

    status_code = 401
    error_code = "unauthenticated"


class AuthorizationError(ServiceError):
    """
    Authorization error.

    Raised when the caller lacks the required role or visibility grant.
    """

    status_code = 403
    error_code = "forbidden"


class NotFoundError(ServiceError):
    """
    Resource not found error.

    Raised when a referenced group, learner, chapter, comment or session
    doesn't exist.
    """

    status_code = 404
    error_code = "not_found"


class ValidationError(ServiceError):
    """
    Data validation error.

    Raised when input data fails validation (verse range, chapter number,
    status code, empty text).
    """

    status_code = 422
    error_code = "validation_error"


class ConflictError(ServiceError):
    """
    Concurrent write conflict.

    Internal: the weekly session resolver recovers from it by re-reading.
    """

    status_code = 409
    error_code = "conflict"


# =============================================================================
# Error Handling Middleware
# =============================================================================


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """
    Global error handling middleware.

    - Catches unhandled exceptions
    - Logs with correlation ID
    - Returns consistent error format
    - Hides internal details in production
    """

    def __init__(self, app, debug: bool = False):
        """
        Initialize middleware.

        Args:
            app: FastAPI/Starlette application
            debug: Whether to include stack traces in responses
        """
        super().__init__(app)
        self.debug = debug

    async def dispatch(self, request: Request, call_next):
        """Process request and handle any errors."""
        error_id = str(uuid4())[:8]

        try:
            response = await call_next(request)
            return response

        except HTTPException:
            # Let FastAPI handle HTTP exceptions
            raise

        except ServiceError as e:
            return await service_error_handler(request, e)

        except Exception as e:
            # Log full traceback for unexpected errors
            logger.error(
                f"[{error_id}] Unhandled error: {type(e).__name__}: {e}",
                extra={
                    "error_id": error_id,
                    "path": request.url.path,
                    "method": request.method,
                    "traceback": traceback.format_exc(),
                },
            )

            # Return sanitized response
            content = {
                "error": "internal_server_error",
                "message": "An unexpected error occurred",
                "error_id": error_id,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }

            # Include details in debug mode
            if self.debug:
                content["details"] = {
                    "exception": type(e).__name__,
                    "message": str(e),
                    "traceback": traceback.format_exc(),
                }

            return JSONResponse(status_code=500, content=content)


# =============================================================================
# Setup Function
# =============================================================================


def setup_error_handling(app: FastAPI, debug: bool = False) -> None:
    """
    Configure error handling on the FastAPI app.

    Args:
        app: FastAPI application instance
        debug: Whether to include stack traces in responses
    """
    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_middleware(ErrorHandlingMiddleware, debug=debug)
    logger.info(f"Error handling middleware enabled (debug={debug})")


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    """Exception handler rendering ServiceErrors raised in routes and dependencies."""
    error_id = str(uuid4())[:8]
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"[{error_id}] {exc.error_code}: {exc.message}",
        extra={
            "error_id": error_id,
            "error_code": exc.error_code,
            "path": request.url.path,
            "method": request.method,
            "details": exc.details,
        },
    )
    return service_error_response(exc, error_id, include_details=True)


# =============================================================================
# Helper Functions
# =============================================================================


def service_error_response(
    error: ServiceError,
    error_id: Optional[str] = None,
    include_details: bool = True,
) -> JSONResponse:
    """
    Create a standardized error response for a service error.

    Args:
        error: The raised service error
        error_id: Correlation id; generated when missing
        include_details: Whether to expose error.details to the client

    Returns:
        JSONResponse with standardized error format
    """
    return JSONResponse(
        status_code=error.status_code,
        content={
            "error": error.error_code,
            "message": error.message,
            "error_id": error_id or str(uuid4())[:8],
            "details": error.details if include_details else None,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )
