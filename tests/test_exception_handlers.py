"""Tests for global exception handlers.

Validates that domain errors map to the right HTTP status with a consistent
envelope and that unexpected errors never leak internals.
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from practice_gate.core.errors import (
    AppError,
    AuthenticationAppError,
    PolicyNotFoundAppError,
    ValidationAppError,
)
from practice_gate.core.exception_handlers import (
    general_exception_handler,
    setup_exception_handlers,
    status_code_for,
)


@pytest.fixture
def app_with_handlers() -> FastAPI:
    app = FastAPI()
    setup_exception_handlers(app)
    return app


@pytest.fixture
def client(app_with_handlers: FastAPI) -> TestClient:
    return TestClient(app_with_handlers, raise_server_exceptions=False)


@pytest.mark.parametrize(
    ("error", "expected_status"),
    [
        (ValidationAppError(code="invalid_identifier", message="bad"), 400),
        (AuthenticationAppError(code="invalid_api_key", message="no"), 403),
        (PolicyNotFoundAppError(code="policy_not_found", message="missing"), 404),
        (AppError(code="generic", message="generic"), 400),
    ],
)
def test_status_code_mapping(error: AppError, expected_status: int) -> None:
    assert status_code_for(error) == expected_status


class TestAppErrorHandler:
    def test_validation_error_includes_details(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-validation")
        async def endpoint():
            raise ValidationAppError(
                code="invalid_identifier",
                message="Identifier must be at most 255 characters",
                details={"field": "identifier", "max_length": 255, "actual_length": 300},
            )

        response = client.get("/test-validation")

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "invalid_identifier"
        assert error["details"]["actual_length"] == 300
        assert "request_id" in error

    def test_policy_not_found_returns_404(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-policy")
        async def endpoint():
            raise PolicyNotFoundAppError(code="policy_not_found", message="Unknown policy")

        response = client.get("/test-policy")

        assert response.status_code == 404
        assert "details" not in response.json()["error"]

    def test_unexpected_error_returns_generic_500(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-crash")
        async def endpoint():
            raise RuntimeError("store connection refused at 10.0.0.5")

        response = client.get("/test-crash")

        assert response.status_code == 500
        error = response.json()["error"]
        assert error["code"] == "internal_server_error"
        assert "10.0.0.5" not in response.text


class TestGeneralExceptionHandler:
    def test_never_leaks_stack_trace(self):
        request = AsyncMock()
        request.url.path = "/v1/limits/AUTH/check"
        request.method = "POST"

        response = asyncio.run(general_exception_handler(request, ValueError("boom")))

        body = json.loads(bytes(response.body).decode())
        assert response.status_code == 500
        assert body["error"]["code"] == "internal_server_error"
        assert "Traceback" not in response.body.decode()
        assert "ValueError" not in response.body.decode()


def test_setup_registers_handlers_and_is_repeatable() -> None:
    app = FastAPI()

    setup_exception_handlers(app)
    setup_exception_handlers(app)

    assert AppError in app.exception_handlers
    assert Exception in app.exception_handlers
