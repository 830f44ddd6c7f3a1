"""
Custom Exception Classes for the engagement engine

This module defines custom exceptions for better error handling and
consistent error responses across the application.

Validation failures are raised before any state is touched, so a rejected
call never leaves a partially applied mutation behind.
"""

from enum import Enum
from typing import Any

from fastapi import status


class ErrorCode(str, Enum):
    """Machine-readable error codes returned to API clients."""

    VALIDATION_FAILED = "VALIDATION_FAILED"
    VALIDATION_INVALID_RATING = "VALIDATION_INVALID_RATING"
    VALIDATION_EMPTY_COMMENT = "VALIDATION_EMPTY_COMMENT"
    VALIDATION_INVALID_SESSION = "VALIDATION_INVALID_SESSION"
    VALIDATION_INVALID_REPORT_TYPE = "VALIDATION_INVALID_REPORT_TYPE"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    RESOURCE_SESSION_NOT_FOUND = "RESOURCE_SESSION_NOT_FOUND"
    RESOURCE_ITEM_NOT_FOUND = "RESOURCE_ITEM_NOT_FOUND"
    RESOURCE_REPORT_NOT_FOUND = "RESOURCE_REPORT_NOT_FOUND"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class EngagementError(Exception):
    """Base exception class for all engine-related exceptions"""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: dict[str, Any] | None = None,
        error_code: ErrorCode = ErrorCode.UNKNOWN_ERROR,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.error_code = error_code
        super().__init__(self.message)


# ============================================================================
# Validation Exceptions
# ============================================================================


class ValidationError(EngagementError):
    """Raised when input validation fails"""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        details: dict[str, Any] | None = None,
        error_code: ErrorCode = ErrorCode.VALIDATION_FAILED,
    ):
        error_details = details or {}
        if field:
            error_details["field"] = field
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            details=error_details,
            error_code=error_code,
        )


class InvalidRatingError(ValidationError):
    """Raised when a rating falls outside the 1-5 range"""

    def __init__(self, rating: Any, item_id: str | None = None):
        details = {"rating": rating}
        if item_id is not None:
            details["item_id"] = item_id
        super().__init__(
            message=f"Rating must be between 1 and 5, got {rating!r}",
            field="rating",
            details=details,
            error_code=ErrorCode.VALIDATION_INVALID_RATING,
        )


class EmptyCommentError(ValidationError):
    """Raised when a comment has no content"""

    def __init__(self, message: str = "Comment content cannot be empty"):
        super().__init__(message=message, field="content", error_code=ErrorCode.VALIDATION_EMPTY_COMMENT)


class InvalidSessionReferenceError(ValidationError):
    """Raised when a session identifier is missing or malformed"""

    def __init__(self, session_id: Any = None):
        super().__init__(
            message="A valid session identifier is required",
            field="session_id",
            details={"session_id": session_id},
            error_code=ErrorCode.VALIDATION_INVALID_SESSION,
        )


class InvalidReportTypeError(ValidationError):
    """Raised when an unknown report type is requested"""

    def __init__(self, report_type: str, allowed_types: list[str]):
        super().__init__(
            message=f"Invalid report type '{report_type}'. Use: {', '.join(allowed_types)}",
            field="type",
            details={"report_type": report_type, "allowed_types": allowed_types},
            error_code=ErrorCode.VALIDATION_INVALID_REPORT_TYPE,
        )


# ============================================================================
# Resource Not Found Exceptions
# ============================================================================


class ResourceNotFoundError(EngagementError):
    """Base class for resource not found errors"""

    def __init__(
        self,
        resource_type: str,
        resource_id: Any | None = None,
        error_code: ErrorCode = ErrorCode.RESOURCE_NOT_FOUND,
    ):
        message = f"{resource_type} not found"
        if resource_id is not None:
            message = f"{resource_type} with id '{resource_id}' not found"
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource_type": resource_type, "resource_id": resource_id},
            error_code=error_code,
        )


class SessionNotFoundError(ResourceNotFoundError):
    """Raised when a session is not found"""

    def __init__(self, session_id: Any | None = None):
        super().__init__(
            resource_type="Session", resource_id=session_id, error_code=ErrorCode.RESOURCE_SESSION_NOT_FOUND
        )


class ItemNotFoundError(ResourceNotFoundError):
    """Raised when no engagement has been recorded for an item"""

    def __init__(self, item_id: Any | None = None):
        super().__init__(resource_type="Item", resource_id=item_id, error_code=ErrorCode.RESOURCE_ITEM_NOT_FOUND)


class ReportNotFoundError(ResourceNotFoundError):
    """Raised when a report is not found"""

    def __init__(self, report_id: Any | None = None):
        super().__init__(resource_type="Report", resource_id=report_id, error_code=ErrorCode.RESOURCE_REPORT_NOT_FOUND)


# ============================================================================
# Internal Exceptions
# ============================================================================


class InternalError(EngagementError):
    """Raised when a computation fails unexpectedly"""

    def __init__(self, message: str = "An internal error occurred", operation: str | None = None):
        details = {"operation": operation} if operation else {}
        super().__init__(
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details=details,
            error_code=ErrorCode.INTERNAL_ERROR,
        )
