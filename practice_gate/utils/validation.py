"""Input validation and sanitization helpers for request handlers.

The boolean validators never raise; pair them with ``assert_valid`` to turn a
failed check into a ValidationAppError that the global handler renders as 400.
"""

from __future__ import annotations

import logging
import math
import re
from datetime import datetime, timezone
from typing import Any

from practice_gate.core.errors import ValidationAppError

logger = logging.getLogger(__name__)

MAX_EMAIL_LENGTH = 255
MAX_AMOUNT = 1_000_000

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)
_ANGLE_BRACKETS_RE = re.compile(r"[<>]")

# Patterns that look like SQL injection attempts
_DANGEROUS_PATTERNS = (
    re.compile(r"\bOR\b.*=.*", re.IGNORECASE),
    re.compile(r"\bAND\b.*=.*", re.IGNORECASE),
    re.compile(r"\bDROP\b", re.IGNORECASE),
    re.compile(r"\bDELETE\b", re.IGNORECASE),
    re.compile(r"\bINSERT\b", re.IGNORECASE),
    re.compile(r"\bUPDATE\b", re.IGNORECASE),
    re.compile(r"\bEXEC\b", re.IGNORECASE),
    re.compile(r"--"),
)


def validate_email(email: str) -> bool:
    return bool(_EMAIL_RE.match(email)) and len(email) <= MAX_EMAIL_LENGTH


def validate_uuid(value: str) -> bool:
    return bool(_UUID_RE.match(value))


def sanitize_string(value: Any, max_length: int = 1000) -> str:
    """Trim, truncate and strip angle brackets.

    Args:
        value: Raw input; anything that is not a string becomes ``""``.
        max_length: Characters kept after trimming.

    Returns:
        Sanitized string.
    """
    if not isinstance(value, str):
        return ""
    return _ANGLE_BRACKETS_RE.sub("", value.strip()[:max_length])


def validate_amount(amount: Any) -> bool:
    """Check a monetary amount is a finite number in (0, 1,000,000).

    Numeric strings are accepted; booleans are not.
    """
    if isinstance(amount, bool):
        return False
    try:
        number = float(amount)
    except (TypeError, ValueError):
        return False
    return math.isfinite(number) and 0 < number < MAX_AMOUNT


def is_safe_string(value: str) -> bool:
    return not any(pattern.search(value) for pattern in _DANGEROUS_PATTERNS)


def validate_date_string(value: str) -> bool:
    """Check an ISO-8601 date or datetime that falls after the Unix epoch."""
    try:
        parsed = datetime.fromisoformat(value.strip())
    except (AttributeError, ValueError):
        return False
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp() > 0


def assert_valid(condition: bool, message: str, field: str | None = None) -> None:
    """Raise ValidationAppError when ``condition`` is false.

    Args:
        condition: Result of a validator.
        message: Human-readable error message.
        field: Offending input field, reported in the error code and details.

    Raises:
        ValidationAppError: If condition is false.
    """
    if condition:
        return
    raise ValidationAppError(
        code=f"invalid_{field}" if field else "validation_error",
        message=message,
        details={"field": field} if field else None,
    )


def validate_identifier(value: str, *, max_length: int = 255) -> str:
    """Validate a rate limit identifier.

    The identifier is used verbatim as part of the limiter key, so nothing is
    stripped out of it: over-long input and angle brackets are rejected
    rather than truncated or removed, and two distinct callers can never
    collapse onto one counter.

    Args:
        value: Identifier as received from the caller.
        max_length: Maximum length after trimming.

    Returns:
        The identifier with surrounding whitespace trimmed.

    Raises:
        ValidationAppError: If the identifier is empty, too long, or contains
            ``<`` or ``>``.
    """
    trimmed = value.strip() if isinstance(value, str) else ""
    if len(trimmed) > max_length:
        logger.info(
            "validation.identifier_too_long",
            extra={"actual_length": len(trimmed), "max_length": max_length},
        )
        raise ValidationAppError(
            code="invalid_identifier",
            message=f"Identifier must be at most {max_length} characters",
            details={
                "field": "identifier",
                "max_length": max_length,
                "actual_length": len(trimmed),
            },
        )

    assert_valid(bool(trimmed), "Identifier must not be empty", field="identifier")
    assert_valid(
        not _ANGLE_BRACKETS_RE.search(trimmed),
        "Identifier must not contain '<' or '>'",
        field="identifier",
    )
    return trimmed
