"""Global exception handlers for consistent error responses.

This module provides FastAPI exception handlers that intercept all errors
(domain and unexpected) and return consistent JSON responses with proper
HTTP status codes and traceability.

Design:
- AppError subclasses carry their own HTTP status (400, 401, 413, 429, 502)
- Unexpected Exception → generic 500 (safety net)
- All responses include request_id for distributed tracing
- A visitor cookie issued earlier in the request is sent with the error
"""

import logging
from fastapi import Request
from fastapi.responses import JSONResponse

from app.core.errors import AppError
from app.core.logging import get_request_id
from app.core.usage import reissue_identity_cookie

logger = logging.getLogger(__name__)


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors with consistent JSON format.

    The frontend wizard reads ``success``, ``code`` and ``message`` from the
    top level of every response body, so errors use the same flat shape:

    - success: Always false
    - code: Machine-readable error code (e.g. ``rate_limit``)
    - message: Human-readable message
    - request_id: For distributed tracing
    - details: Optional structured context

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with the status code declared by the error type.
    """
    status_code = exc.status_code

    # Relay and configuration failures are ours, not the visitor's
    log = logger.error if status_code >= 500 else logger.warning
    log(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "has_details": bool(exc.details),
            "request_path": request.url.path,
            "request_id": get_request_id(),
        }
    )

    content = {
        "success": False,
        "code": exc.code,
        "message": exc.message,
        "request_id": get_request_id(),
    }

    # Include details only if present (optional structured context)
    if exc.details:
        content["details"] = exc.details

    response = JSONResponse(status_code=status_code, content=content)
    reissue_identity_cookie(request, response)
    return response


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Logs detailed information for debugging while returning a generic
    message. No stack traces or exception text reach the client.

    Args:
        request: FastAPI request object.
        exc: Exception instance (unexpected).

    Returns:
        JSONResponse with generic error.
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
            "request_id": get_request_id(),
        }
    )

    response = JSONResponse(
        status_code=500,
        content={
            "success": False,
            "code": "internal_server_error",
            "message": "An unexpected error occurred. Please try again later.",
            "request_id": get_request_id(),
        },
    )
    reissue_identity_cookie(request, response)
    return response


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with FastAPI app.

    Args:
        app: FastAPI application instance.
    """
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
