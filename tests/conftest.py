"""Pytest configuration and fixtures shared across all test modules.

Environment variables are set before any import that might build settings.
"""

import os

# CRITICAL: Set these before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("APP_API_KEY_REQUIRED", "true")
os.environ.setdefault("APP_API_KEYS", "test-api-key-123,test-api-key-456")
os.environ.setdefault("APP_RATE_LIMIT_CLEANUP_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient

from practice_gate.adapters.rate_limit.in_memory import FixedWindowRateLimiter
from practice_gate.core.app_factory import create_app


class FakeClock:
    """Deterministic epoch-millisecond clock."""

    def __init__(self, start: int = 0) -> None:
        self.current = start

    def __call__(self) -> int:
        return self.current

    def advance(self, ms: int) -> None:
        self.current += ms


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(start=1_700_000_000_000)


@pytest.fixture
def limiter(clock: FakeClock) -> FixedWindowRateLimiter:
    return FixedWindowRateLimiter(clock=clock)


@pytest.fixture
def client(limiter: FixedWindowRateLimiter) -> TestClient:
    """Test client over a fresh app sharing the fake-clock limiter."""
    return TestClient(create_app(limiter=limiter, configure_logs=False))


@pytest.fixture
def api_headers() -> dict[str, str]:
    return {"X-API-Key": "test-api-key-123"}
