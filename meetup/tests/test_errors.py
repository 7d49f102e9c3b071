"""Tests for standardized error handling."""

from fastapi import FastAPI
from fastapi.testclient import TestClient
from pydantic import BaseModel


class TestAPIErrors:
    """Test custom API error classes."""

    def test_not_found_error_defaults(self):
        from meetup.errors import NotFoundError

        error = NotFoundError()
        assert error.status_code == 404
        assert error.error == "not_found"
        assert error.detail == "Resource not found"

    def test_not_found_error_with_context(self):
        from meetup.errors import NotFoundError

        error = NotFoundError(detail="Event not found", event_id="abc123")
        assert error.detail == "Event not found"
        assert error.context == {"event_id": "abc123"}

    def test_validation_error(self):
        from meetup.errors import ValidationError

        error = ValidationError(detail="Invalid slot: x", slot_ids=["x"])
        assert error.status_code == 422
        assert error.error == "validation_error"
        assert error.context == {"slot_ids": ["x"]}

    def test_transport_and_subscription_errors(self):
        """Both are retryable service failures."""
        from meetup.errors import SubscriptionError, TransportError

        assert TransportError().status_code == 503
        assert TransportError().error == "transport_error"
        assert SubscriptionError().status_code == 503
        assert SubscriptionError().error == "subscription_error"

    def test_unauthorized_error(self):
        from meetup.errors import UnauthorizedError

        error = UnauthorizedError(detail="X-User-Id header required")
        assert error.status_code == 401
        assert error.error == "unauthorized"


class TestErrorResponse:
    """Test error response model."""

    def test_error_response_minimal(self):
        from meetup.errors import ErrorResponse

        data = ErrorResponse(error="internal_error").model_dump(exclude_none=True)
        assert data == {"error": "internal_error"}

    def test_api_error_to_response(self):
        from meetup.errors import NotFoundError

        response = NotFoundError(detail="Not found", event_id="abc").to_response()
        assert response.error == "not_found"
        assert response.detail == "Not found"
        assert response.context == {"event_id": "abc"}


class TestExceptionHandlers:
    """Test exception handlers integration."""

    def _app(self):
        from meetup.errors import register_exception_handlers

        app = FastAPI()
        register_exception_handlers(app)
        return app

    def test_api_error_handler_integration(self):
        from meetup.errors import NotFoundError

        app = self._app()

        @app.get("/test-not-found")
        async def test_endpoint():
            raise NotFoundError(detail="Event not found")

        client = TestClient(app, raise_server_exceptions=False)
        response = client.get("/test-not-found")

        assert response.status_code == 404
        assert response.json() == {"error": "not_found", "detail": "Event not found"}

    def test_request_validation_is_reported_as_validation_error(self):
        app = self._app()

        class Body(BaseModel):
            count: int

        @app.post("/test-body")
        async def test_endpoint(body: Body):
            return body

        client = TestClient(app, raise_server_exceptions=False)
        response = client.post("/test-body", json={"count": "many"})

        assert response.status_code == 422
        body = response.json()
        assert body["error"] == "validation_error"
        assert "count" in body["detail"]

    def test_http_exception_uses_standard_body(self):
        app = self._app()
        client = TestClient(app, raise_server_exceptions=False)

        response = client.get("/does-not-exist")

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"


class TestStatusToErrorType:
    """Test status code to error type mapping."""

    def test_common_status_codes(self):
        from meetup.errors import _status_to_error_type

        assert _status_to_error_type(400) == "bad_request"
        assert _status_to_error_type(401) == "unauthorized"
        assert _status_to_error_type(404) == "not_found"
        assert _status_to_error_type(422) == "validation_error"
        assert _status_to_error_type(503) == "service_unavailable"

    def test_unknown_status_code(self):
        from meetup.errors import _status_to_error_type

        assert _status_to_error_type(418) == "error"
