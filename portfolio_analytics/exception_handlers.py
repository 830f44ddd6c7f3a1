"""
Global Exception Handlers

Every error leaves the API in the same shape, and every engine error is
logged with the visitor session and item it concerns.

Error Response Format:
{
    "error": {
        "status_code": 404,
        "error_code": "RESOURCE_ITEM_NOT_FOUND",
        "message": "Item with id 'project-1' not found",
        "type": "Not Found",
        "details": {"resource_type": "Item", "resource_id": "project-1"},
        "path": "/api/interactions/items/project-1"
    }
}
"""

import logging
from http import HTTPStatus
from typing import Any

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from portfolio_analytics.exceptions import EngagementError, ErrorCode

logger = logging.getLogger(__name__)

# Error details worth a log field of their own
LOGGED_DETAILS = ("session_id", "item_id", "resource_type", "resource_id", "field", "operation")

# Not-found resources whose id doubles as a request context field
RESOURCE_CONTEXT = {"Session": "session_id", "Item": "item_id"}


def create_error_response(
    status_code: int,
    message: str,
    error_code: str | ErrorCode | None = None,
    details: dict[str, Any] | None = None,
    path: str | None = None,
) -> JSONResponse:
    """Build the error envelope, leaving out empty members."""
    if isinstance(error_code, ErrorCode):
        error_code = error_code.value

    error = {
        "status_code": status_code,
        "error_code": error_code,
        "message": message,
        "type": get_error_type(status_code),
        "details": details,
        "path": path,
    }
    return JSONResponse(status_code=status_code, content={"error": {k: v for k, v in error.items() if v}})


def get_error_type(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Error"


def error_code_for_status(status_code: int) -> ErrorCode:
    """Error code for framework raised HTTP errors (unknown routes, bad methods)."""
    if status_code == status.HTTP_404_NOT_FOUND:
        return ErrorCode.RESOURCE_NOT_FOUND
    if status_code < 500:
        return ErrorCode.VALIDATION_FAILED
    return ErrorCode.INTERNAL_ERROR


def log_context(exc: EngagementError) -> dict[str, Any]:
    """
    Pick the session, item and resource ids out of an engine error.

    ``SessionNotFoundError("s-1")`` logs ``session_id="s-1"`` alongside its
    resource fields, so lookups by visitor find the failure.
    """
    details = exc.details
    context = {key: details[key] for key in LOGGED_DETAILS if details.get(key) is not None}

    context_key = RESOURCE_CONTEXT.get(details.get("resource_type"))
    if context_key and details.get("resource_id") is not None:
        context.setdefault(context_key, details["resource_id"])
    return context


async def engagement_exception_handler(request: Request, exc: EngagementError) -> JSONResponse:
    level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
    logger.log(
        level,
        f"{exc.error_code.value} on {request.method} {request.url.path}: {exc.message}",
        extra={"status_code": exc.status_code, "error_code": exc.error_code.value, **log_context(exc)},
    )

    return create_error_response(
        status_code=exc.status_code,
        message=exc.message,
        error_code=exc.error_code,
        details=exc.details,
        path=request.url.path,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = error_code_for_status(exc.status_code)
    logger.info(
        f"{exc.status_code} on {request.method} {request.url.path}: {exc.detail}", extra={"error_code": code.value}
    )

    return create_error_response(
        status_code=exc.status_code,
        message=str(exc.detail),
        error_code=code,
        path=request.url.path,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Request bodies and query parameters that fail their schema; one entry per field."""
    errors = [
        {
            "field": ".".join(str(loc) for loc in error["loc"] if loc not in ("body", "query", "path")),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    fields = ", ".join(error["field"] for error in errors)
    logger.warning(
        f"Rejected {request.method} {request.url.path}: invalid {fields}",
        extra={"error_code": ErrorCode.VALIDATION_FAILED.value},
    )

    return create_error_response(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        message=f"Invalid request: {fields}",
        error_code=ErrorCode.VALIDATION_FAILED,
        details={"validation_errors": errors},
        path=request.url.path,
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log with traceback; the client only sees a generic message."""
    logger.exception(
        f"Unhandled {type(exc).__name__} on {request.method} {request.url.path}",
        extra={"error_code": ErrorCode.INTERNAL_ERROR.value},
    )

    return create_error_response(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        message="An unexpected error occurred. Please try again later.",
        error_code=ErrorCode.INTERNAL_ERROR,
        path=request.url.path,
    )


def register_exception_handlers(app) -> None:
    app.add_exception_handler(EngagementError, engagement_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
