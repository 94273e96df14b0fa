"""Named rate limit presets and response metadata helpers.

Call sites depend on the exact numbers below, so changing one is a contract
change for every handler that uses the preset.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

from practice_gate.adapters.rate_limit.base import RateLimitConfig, epoch_ms_to_iso
from practice_gate.core.errors import PolicyNotFoundAppError

_MINUTE_MS = 60 * 1000

RATE_LIMITS: Mapping[str, RateLimitConfig] = MappingProxyType(
    {
        "AUTH": RateLimitConfig(max_requests=5, window_ms=15 * _MINUTE_MS),
        "AI_ACTION": RateLimitConfig(max_requests=20, window_ms=_MINUTE_MS),
        "AI": RateLimitConfig(max_requests=10, window_ms=_MINUTE_MS),
        "CHECKOUT": RateLimitConfig(max_requests=10, window_ms=_MINUTE_MS),
        "EMAIL": RateLimitConfig(max_requests=50, window_ms=_MINUTE_MS),
        "API": RateLimitConfig(max_requests=100, window_ms=_MINUTE_MS),
        "EXPORT": RateLimitConfig(max_requests=3, window_ms=_MINUTE_MS),
    }
)


def get_policy(
    name: str,
    policies: Mapping[str, RateLimitConfig] = RATE_LIMITS,
) -> RateLimitConfig:
    """Look up a preset by name (case-insensitive).

    Args:
        name: Preset name, e.g. ``"auth"`` or ``"AI_ACTION"``.
        policies: Preset table to search.

    Returns:
        The matching RateLimitConfig.

    Raises:
        PolicyNotFoundAppError: If no preset has that name.
    """
    config = policies.get(name.strip().upper())
    if config is None:
        raise PolicyNotFoundAppError(
            code="policy_not_found",
            message=f"Unknown rate limit policy: '{name}'",
            details={"policy": name, "available_policies": sorted(policies)},
        )
    return config


def get_rate_limit_headers(remaining: int, reset_time: int) -> dict[str, str]:
    """Build response headers describing the caller's remaining budget.

    Args:
        remaining: Requests left in the current window.
        reset_time: Epoch milliseconds when the window resets.

    Returns:
        Header mapping with ``X-RateLimit-Remaining`` and an ISO-8601
        ``X-RateLimit-Reset``.
    """
    return {
        "X-RateLimit-Remaining": str(remaining),
        "X-RateLimit-Reset": epoch_ms_to_iso(reset_time),
    }
