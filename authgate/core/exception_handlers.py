"""Global exception handlers for consistent error responses.

The auth passthrough converts its own failures at the adapter boundary; these
handlers cover everything else the app serves.

Design:
- AppError subclasses → mapped HTTP status (400, 413, 429, 500)
- Unexpected Exception → generic 500 (safety net)
- All responses include request_id for distributed tracing
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from authgate.core.errors import (
    AdapterTranslationError,
    AppError,
    AuthHandlerError,
    RateLimitExceededError,
    RequestTooLargeError,
)
from authgate.core.logging import get_request_id

logger = logging.getLogger(__name__)


def status_for_error(exc: AppError) -> int:
    """HTTP status code for a domain error."""
    if isinstance(exc, RateLimitExceededError):
        return 429
    if isinstance(exc, RequestTooLargeError):
        return 413
    if isinstance(exc, (AdapterTranslationError, AuthHandlerError)):
        return 500
    return 400


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render domain application errors as ``{"error": {...}}``.

    Server-side failures (500) keep their code but never their details, since
    those may name upstream hosts or internal exception types.
    """
    status_code = status_for_error(exc)

    logger.warning(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "has_details": bool(exc.details),
            "request_id": get_request_id(),
        },
    )

    error_content = {
        "code": exc.code,
        "message": exc.message,
        "request_id": get_request_id(),
    }
    if exc.details and status_code < 500:
        error_content["details"] = exc.details

    headers = None
    if isinstance(exc, RateLimitExceededError) and exc.details and "retry_after" in exc.details:
        headers = {"Retry-After": str(int(exc.details["retry_after"]))}

    return JSONResponse(
        status_code=status_code,
        content={"error": error_content},
        headers=headers,
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Logs the failure and returns a generic message; no exception text or
    stack trace reaches the client.
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
            "request_id": get_request_id(),
        },
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "internal_server_error",
                "message": "An unexpected error occurred. Please try again later.",
                "request_id": get_request_id(),
            }
        },
    )


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with the FastAPI app.

    Args:
        app: FastAPI application instance.
    """
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
