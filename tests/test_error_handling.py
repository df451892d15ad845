"""
Tests for error handling.
Covers the typed exceptions, error response formatting and the validation middleware.
"""

import pytest
from fastapi.testclient import TestClient
from fastapi import FastAPI
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy.exc import IntegrityError, OperationalError
from unittest.mock import Mock
import json

from estatehub.services.error_handler import ErrorHandlerService
from estatehub.schemas.error import get_error_responses
from estatehub.utils.exceptions import (
    APIException,
    ValidationError,
    NotFoundError,
    UnauthorizedError,
    BadRequestError,
    ConflictError,
    NotAuthorizedError,
    InvalidTransitionError,
    QuotaExceededError,
    MissingReasonError,
    DuplicatePendingRequestError,
    LedgerUnavailableError,
)
from estatehub.middleware.validation import ValidationMiddleware


class TestErrorHandlerService:
    """Test error handler service functionality."""

    def test_format_error_response(self):
        """Test error response formatting."""
        response = ErrorHandlerService.format_error_response(
            error_code="TEST_ERROR",
            message="Test error message",
            details=[{"field": "test", "message": "Test field error"}],
            request_id="test123"
        )

        assert response["error"]["code"] == "TEST_ERROR"
        assert response["error"]["message"] == "Test error message"
        assert response["error"]["request_id"] == "test123"
        assert len(response["error"]["details"]) == 1
        assert response["error"]["details"][0]["field"] == "test"
        assert response["error"]["timestamp"].endswith("Z")

    def test_format_error_response_omits_empty_details(self):
        response = ErrorHandlerService.format_error_response("NOT_FOUND", "Listing not found")

        assert "details" not in response["error"]
        assert "request_id" not in response["error"]

    def test_handle_api_exception(self):
        """Test API exception handling."""
        exception = ValidationError("Test validation error")
        response = ErrorHandlerService.handle_api_exception(exception)

        assert response.status_code == 422
        response_data = json.loads(response.body)
        assert response_data["error"]["code"] == "VALIDATION_ERROR"
        assert response_data["error"]["message"] == "Test validation error"
        assert response_data["error"]["request_id"]

    def test_handle_quota_exception_keeps_details(self):
        """Quota refusals carry usage and limit in the body."""
        response = ErrorHandlerService.handle_api_exception(QuotaExceededError("listing", used=15, limit=15))

        assert response.status_code == 409
        response_data = json.loads(response.body)
        assert response_data["error"]["code"] == "QUOTA_EXCEEDED"
        assert response_data["error"]["details"] == [{"resource": "listing", "used": 15, "limit": 15}]

    def test_handle_validation_error(self):
        """Test Pydantic validation error handling."""
        mock_error = Mock()
        mock_error.errors.return_value = [
            {"loc": ("body", "title"), "msg": "Field required", "type": "missing"},
            {"loc": ("body", "price"), "msg": "Input should be greater than or equal to 0", "type": "greater_than_equal"},
        ]

        response = ErrorHandlerService.handle_validation_error(mock_error)

        assert response.status_code == 422
        response_data = json.loads(response.body)
        assert response_data["error"]["code"] == "VALIDATION_ERROR"
        assert len(response_data["error"]["details"]) == 2
        assert response_data["error"]["details"][0]["field"] == "body -> title"

    def test_handle_database_error(self):
        """Integrity errors map to 409, anything else to 500."""
        integrity_error = IntegrityError("statement", "params", Exception("UNIQUE constraint failed: users.email"))
        response = ErrorHandlerService.handle_database_error(integrity_error)

        assert response.status_code == 409
        response_data = json.loads(response.body)
        assert response_data["error"]["code"] == "INTEGRITY_ERROR"
        assert response_data["error"]["message"] == "Constraint violation: Duplicate value for unique field"

        operational_error = OperationalError("statement", "params", Exception("database is locked"))
        response = ErrorHandlerService.handle_database_error(operational_error)

        assert response.status_code == 500
        assert json.loads(response.body)["error"]["code"] == "DATABASE_ERROR"

    def test_handle_http_exception(self):
        response = ErrorHandlerService.handle_http_exception(StarletteHTTPException(status_code=404, detail="Not Found"))

        assert response.status_code == 404
        assert json.loads(response.body)["error"]["code"] == "HTTP_404"

    def test_handle_unexpected_error(self):
        """Test unexpected error handling."""
        exception = Exception("Unexpected error")
        response = ErrorHandlerService.handle_unexpected_error(exception)

        assert response.status_code == 500
        response_data = json.loads(response.body)
        assert response_data["error"]["code"] == "INTERNAL_SERVER_ERROR"
        assert "unexpected error occurred" in response_data["error"]["message"].lower()
        assert "Unexpected error" not in response_data["error"]["message"]


class TestExceptions:
    """Status codes and error codes of the typed exceptions."""

    @pytest.mark.parametrize("exception,status_code,error_code", [
        (NotFoundError("Listing", "abc"), 404, "NOT_FOUND"),
        (UnauthorizedError(), 401, "UNAUTHORIZED"),
        (NotAuthorizedError("approve listings"), 403, "NOT_AUTHORIZED"),
        (ConflictError("Listing is already featured", error_code="ALREADY_FEATURED"), 409, "ALREADY_FEATURED"),
        (InvalidTransitionError("listing", "pending", "publish"), 409, "INVALID_TRANSITION"),
        (QuotaExceededError("gold_card"), 409, "QUOTA_EXCEEDED"),
        (MissingReasonError(), 422, "MISSING_REASON"),
        (DuplicatePendingRequestError("linking request"), 409, "DUPLICATE_PENDING_REQUEST"),
        (LedgerUnavailableError("consume_listing_slot touched 2 rows"), 503, "LEDGER_UNAVAILABLE"),
        (BadRequestError("Bad body"), 400, "BAD_REQUEST"),
    ])
    def test_codes(self, exception: APIException, status_code, error_code):
        assert exception.status_code == status_code
        assert exception.error_code == error_code

    def test_not_found_message(self):
        assert NotFoundError("Listing", "abc").detail == "Listing not found with ID: abc"
        assert NotFoundError("Quota account").detail == "Quota account not found"

    def test_not_authorized_message(self):
        assert NotAuthorizedError("approve listings").detail == "Not authorized to approve listings"

    def test_invalid_transition_details(self):
        error = InvalidTransitionError("listing", "pending", "publish")

        assert error.detail == "Cannot publish listing in status 'pending'"
        assert error.details == [{"entity": "listing", "current": "pending", "attempted": "publish"}]

    def test_quota_exceeded_messages(self):
        assert QuotaExceededError("listing", used=15, limit=15).detail == "listing quota exceeded (15/15 used)"
        assert QuotaExceededError("gold_card").detail == "No gold_card remaining"
        assert QuotaExceededError("gold_card", used=2, limit=2, remaining=0).details == [
            {"resource": "gold_card", "used": 2, "limit": 2, "remaining": 0}
        ]

    def test_missing_reason_points_at_field(self):
        error = MissingReasonError()

        assert error.field_errors == [{"field": "reason", "message": "A rejection reason is required"}]

    def test_ledger_unavailable_message(self):
        assert LedgerUnavailableError().detail == "Publishing is suspended until quota ledger integrity is restored"
        assert LedgerUnavailableError("disk I/O").detail.endswith(": disk I/O")

    def test_error_response_docs(self):
        responses = get_error_responses(403, 409, 503, 418)

        assert set(responses) == {403, 409, 503}


class TestValidationMiddleware:
    """Test validation middleware functionality."""

    @pytest.fixture
    def test_app(self):
        """Create test FastAPI app with middleware."""
        test_app = FastAPI()
        test_app.add_middleware(ValidationMiddleware, max_request_size=1024, enable_request_logging=False)

        @test_app.get("/api/test")
        async def test_endpoint():
            return {"message": "success"}

        @test_app.post("/api/test")
        async def test_post_endpoint(data: dict):
            return {"message": "success", "data": data}

        return test_app

    def test_request_id_is_echoed(self, test_app):
        client = TestClient(test_app)

        response = client.get("/api/test", headers={"X-Request-ID": "trace-42"})

        assert response.status_code == 200
        assert response.headers["X-Request-ID"] == "trace-42"

    def test_request_id_is_generated(self, test_app):
        client = TestClient(test_app)

        response = client.get("/api/test")

        assert len(response.headers["X-Request-ID"]) == 8

    def test_request_size_validation(self, test_app):
        """Test request size validation."""
        client = TestClient(test_app)

        response = client.post("/api/test", json={"blob": "x" * 2048})

        assert response.status_code == 400
        assert "exceeds maximum allowed size" in response.json()["error"]["message"]
        assert response.json()["error"]["request_id"] == response.headers["X-Request-ID"]

    def test_content_type_validation(self, test_app):
        client = TestClient(test_app)

        response = client.post("/api/test", content="title=flat", headers={"Content-Type": "application/x-www-form-urlencoded"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "BAD_REQUEST"
        assert "application/json" in response.json()["error"]["message"]

    def test_json_body_passes(self, test_app):
        client = TestClient(test_app)

        response = client.post("/api/test", json={"title": "flat"})

        assert response.status_code == 200
        assert response.json()["data"] == {"title": "flat"}


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
