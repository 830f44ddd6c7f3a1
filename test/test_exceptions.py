"""
Tests for custom exception classes and the global exception handlers

Tests exception initialization, messages, status codes, and the error
response shape rendered by the handlers.
"""

import logging

from fastapi import FastAPI, HTTPException, status
from fastapi.testclient import TestClient
from pydantic import BaseModel, Field

from portfolio_analytics.exception_handlers import (
    create_error_response,
    error_code_for_status,
    get_error_type,
    log_context,
    register_exception_handlers,
)
from portfolio_analytics.exceptions import (
    EmptyCommentError,
    EngagementError,
    ErrorCode,
    InternalError,
    InvalidRatingError,
    InvalidReportTypeError,
    InvalidSessionReferenceError,
    ItemNotFoundError,
    ReportNotFoundError,
    ResourceNotFoundError,
    SessionNotFoundError,
    ValidationError,
)


class TestEngagementError:
    """Test base EngagementError class"""

    def test_defaults(self):
        exc = EngagementError("Test error")
        assert str(exc) == "Test error"
        assert exc.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert exc.details == {}
        assert exc.error_code == ErrorCode.UNKNOWN_ERROR

    def test_with_details(self):
        exc = EngagementError("Test error", status_code=status.HTTP_400_BAD_REQUEST, details={"count": 42})
        assert exc.status_code == status.HTTP_400_BAD_REQUEST
        assert exc.details["count"] == 42


class TestValidationExceptions:
    """Test validation-related exceptions"""

    def test_validation_error_with_field(self):
        exc = ValidationError("Bad value", field="email")
        assert exc.status_code == status.HTTP_400_BAD_REQUEST
        assert exc.details == {"field": "email"}
        assert exc.error_code == ErrorCode.VALIDATION_FAILED

    def test_invalid_rating(self):
        exc = InvalidRatingError(7)
        assert isinstance(exc, ValidationError)
        assert exc.message == "Rating must be between 1 and 5, got 7"
        assert exc.details == {"rating": 7, "field": "rating"}
        assert exc.error_code == ErrorCode.VALIDATION_INVALID_RATING

    def test_invalid_rating_for_item(self):
        exc = InvalidRatingError(0, item_id="project-1")
        assert exc.details == {"rating": 0, "item_id": "project-1", "field": "rating"}

    def test_empty_comment(self):
        exc = EmptyCommentError()
        assert exc.details["field"] == "content"
        assert exc.error_code == ErrorCode.VALIDATION_EMPTY_COMMENT

    def test_invalid_session_reference(self):
        exc = InvalidSessionReferenceError("")
        assert exc.status_code == status.HTTP_400_BAD_REQUEST
        assert exc.error_code == ErrorCode.VALIDATION_INVALID_SESSION

    def test_invalid_report_type(self):
        exc = InvalidReportTypeError("yearly", ["daily", "weekly"])
        assert exc.message == "Invalid report type 'yearly'. Use: daily, weekly"
        assert exc.details["allowed_types"] == ["daily", "weekly"]


class TestNotFoundExceptions:
    """Test resource not found exceptions"""

    def test_without_id(self):
        exc = ResourceNotFoundError("Comment")
        assert exc.message == "Comment not found"
        assert exc.status_code == status.HTTP_404_NOT_FOUND
        assert exc.error_code == ErrorCode.RESOURCE_NOT_FOUND

    def test_with_id(self):
        exc = ResourceNotFoundError("Comment", "c-1")
        assert exc.message == "Comment with id 'c-1' not found"
        assert exc.details == {"resource_type": "Comment", "resource_id": "c-1"}

    def test_specialized_codes(self):
        assert SessionNotFoundError("s").error_code == ErrorCode.RESOURCE_SESSION_NOT_FOUND
        assert ItemNotFoundError("i").error_code == ErrorCode.RESOURCE_ITEM_NOT_FOUND
        assert ReportNotFoundError("r").error_code == ErrorCode.RESOURCE_REPORT_NOT_FOUND
        assert isinstance(ReportNotFoundError("r"), ResourceNotFoundError)


class TestInternalError:
    def test_operation_in_details(self):
        exc = InternalError("Insight analysis failed", operation="insights")
        assert exc.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert exc.details == {"operation": "insights"}

    def test_without_operation(self):
        assert InternalError().details == {}


class TestErrorResponseHelpers:
    """Test helper functions used by the handlers"""

    def test_error_types(self):
        assert get_error_type(404) == "Not Found"
        assert get_error_type(400) == "Bad Request"
        assert get_error_type(299) == "Error"

    def test_http_error_codes(self):
        assert error_code_for_status(404) == ErrorCode.RESOURCE_NOT_FOUND
        assert error_code_for_status(405) == ErrorCode.VALIDATION_FAILED
        assert error_code_for_status(503) == ErrorCode.INTERNAL_ERROR

    def test_log_context_from_not_found(self):
        assert log_context(SessionNotFoundError("s-1")) == {
            "session_id": "s-1",
            "resource_type": "Session",
            "resource_id": "s-1",
        }
        assert log_context(ItemNotFoundError("project-1"))["item_id"] == "project-1"

    def test_log_context_from_validation(self):
        context = log_context(InvalidRatingError(9, item_id="project-1"))

        assert context == {"item_id": "project-1", "field": "rating"}
        assert log_context(InvalidSessionReferenceError("bad id"))["session_id"] == "bad id"

    def test_create_error_response_omits_empty_fields(self):
        response = create_error_response(status_code=400, message="Bad")

        assert response.status_code == 400
        assert response.body == b'{"error":{"status_code":400,"message":"Bad","type":"Bad Request"}}'


class RatingBody(BaseModel):
    rating: int = Field(..., ge=1)


def build_app() -> FastAPI:
    app = FastAPI()
    register_exception_handlers(app)

    @app.get("/not-found")
    async def not_found():
        raise ItemNotFoundError("project-1")

    @app.get("/http-error")
    async def http_error():
        raise HTTPException(status_code=503, detail="Down for maintenance")

    @app.post("/validate")
    async def validate(body: RatingBody):
        return body

    @app.get("/internal")
    async def internal():
        raise InternalError("Insight analysis failed", operation="insights")

    @app.post("/items/{item_id}/rate")
    async def rate(item_id: str):
        raise InvalidRatingError(9, item_id=item_id)

    @app.get("/sessions/{session_id}")
    async def session(session_id: str):
        raise SessionNotFoundError(session_id)

    @app.get("/crash")
    async def crash():
        raise RuntimeError("secret internals")

    return app


class TestExceptionHandlers:
    """Every error leaves the API in the same shape"""

    def test_engagement_error(self):
        client = TestClient(build_app())

        response = client.get("/not-found")

        assert response.status_code == 404
        assert response.json() == {
            "error": {
                "status_code": 404,
                "message": "Item with id 'project-1' not found",
                "type": "Not Found",
                "error_code": "RESOURCE_ITEM_NOT_FOUND",
                "details": {"resource_type": "Item", "resource_id": "project-1"},
                "path": "/not-found",
            }
        }

    def test_http_exception(self):
        client = TestClient(build_app())

        response = client.get("/http-error")

        assert response.status_code == 503
        error = response.json()["error"]
        assert error["message"] == "Down for maintenance"
        assert error["error_code"] == "INTERNAL_ERROR"
        assert error["type"] == "Service Unavailable"

    def test_unknown_route(self):
        client = TestClient(build_app())

        response = client.get("/nowhere")

        assert response.status_code == 404
        assert response.json()["error"]["error_code"] == "RESOURCE_NOT_FOUND"

    def test_request_validation(self):
        client = TestClient(build_app())

        response = client.post("/validate", json={"rating": 0})

        assert response.status_code == 422
        error = response.json()["error"]
        assert error["error_code"] == "VALIDATION_FAILED"
        assert error["details"]["validation_errors"][0]["field"] == "rating"

    def test_internal_error(self):
        client = TestClient(build_app())

        response = client.get("/internal")

        assert response.status_code == 500
        assert response.json()["error"]["details"] == {"operation": "insights"}

    def test_unhandled_exception_hides_internals(self):
        client = TestClient(build_app(), raise_server_exceptions=False)

        response = client.get("/crash")

        assert response.status_code == 500
        error = response.json()["error"]
        assert error["error_code"] == "INTERNAL_ERROR"
        assert "secret" not in error["message"]

    def test_rating_error_logged_with_item(self, caplog):
        client = TestClient(build_app())
        caplog.set_level(logging.WARNING, logger="portfolio_analytics.exception_handlers")

        client.post("/items/project-1/rate")

        record = [r for r in caplog.records if r.name == "portfolio_analytics.exception_handlers"][-1]
        assert record.levelno == logging.WARNING
        assert record.item_id == "project-1"
        assert record.error_code == "VALIDATION_INVALID_RATING"
        assert "/items/project-1/rate" in record.getMessage()

    def test_missing_session_logged_with_session(self, caplog):
        client = TestClient(build_app())
        caplog.set_level(logging.WARNING, logger="portfolio_analytics.exception_handlers")

        client.get("/sessions/s-42")

        record = [r for r in caplog.records if r.name == "portfolio_analytics.exception_handlers"][-1]
        assert record.session_id == "s-42"
        assert record.resource_type == "Session"
