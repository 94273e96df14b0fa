"""Tests for redaction and request correlation in logs."""

from __future__ import annotations

import json
import logging
from io import StringIO

import pytest

from practice_gate.core.logging import (
    JsonFormatter,
    RequestIdFilter,
    SensitiveDataFilter,
    clear_request_id,
    hash_identifier,
    set_request_id,
)


@pytest.fixture
def capture():
    """Logger wired like production: filters plus JSON formatter."""
    logger = logging.getLogger("test_practice_gate_logging")
    logger.setLevel(logging.INFO)
    logger.handlers.clear()
    logger.propagate = False

    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)

    yield logger, stream

    logger.handlers.clear()
    clear_request_id()


def _last_line(stream: StringIO) -> dict:
    return json.loads(stream.getvalue().strip().splitlines()[-1])


def test_redacts_credentials(capture) -> None:
    logger, stream = capture

    logger.info(
        "auth_event",
        extra={"api_key": "sk-secret-123", "x-api-key": "another-secret", "safe_field": "visible"},
    )

    output = stream.getvalue()
    assert "sk-secret-123" not in output
    assert "another-secret" not in output
    assert "visible" in output


def test_redacts_client_health_information(capture) -> None:
    logger, stream = capture

    logger.info(
        "note_event",
        extra={
            "client_name": "Jane Doe",
            "email": "jane@example.com",
            "soap_note": "Reports improved sleep",
            "identifier": "user-42",
            "char_count": 100,
        },
    )

    output = stream.getvalue()
    for secret in ("Jane Doe", "jane@example.com", "improved sleep", "user-42"):
        assert secret not in output
    assert _last_line(stream)["char_count"] == 100


def test_redacts_nested_mappings(capture) -> None:
    logger, stream = capture

    logger.info(
        "nested_event",
        extra={"headers": {"X-API-Key": "secret-key", "user-agent": "pytest"}},
    )

    record = _last_line(stream)
    assert record["headers"]["X-API-Key"] == "[REDACTED]"
    assert record["headers"]["user-agent"] == "pytest"


def test_safe_fields_pass_through(capture) -> None:
    logger, stream = capture

    logger.info(
        "rate_limit.allowed",
        extra={"policy": "AUTH", "remaining": 4, "key_hash": hash_identifier("api_key:k")},
    )

    record = _last_line(stream)
    assert record["message"] == "rate_limit.allowed"
    assert record["policy"] == "AUTH"
    assert record["remaining"] == 4
    assert "[REDACTED]" not in stream.getvalue()


def test_request_id_from_context(capture) -> None:
    logger, stream = capture
    set_request_id("req-abc")

    logger.info("with_context")

    assert _last_line(stream)["request_id"] == "req-abc"


def test_hash_identifier_is_stable_and_short() -> None:
    assert hash_identifier("user-1") == hash_identifier("user-1")
    assert hash_identifier("user-1") != hash_identifier("user-2")
    assert len(hash_identifier("user-1")) == 16
