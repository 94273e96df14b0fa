"""Rate limiting adapters.

A fixed-window limiter over a pluggable store, the named policy presets used
by the platform's request handlers, and the background sweep that keeps the
in-memory store bounded.
"""

from practice_gate.adapters.rate_limit.base import (
    AbstractRateLimiter,
    AbstractRateLimitStore,
    RateLimitConfig,
    RateLimitEntry,
    RateLimitResult,
)
from practice_gate.adapters.rate_limit.in_memory import (
    FixedWindowRateLimiter,
    InMemoryRateLimitStore,
)
from practice_gate.adapters.rate_limit.policies import (
    RATE_LIMITS,
    get_policy,
    get_rate_limit_headers,
)
from practice_gate.adapters.rate_limit.sweeper import CleanupSweeper

__all__ = [
    "AbstractRateLimiter",
    "AbstractRateLimitStore",
    "CleanupSweeper",
    "FixedWindowRateLimiter",
    "InMemoryRateLimitStore",
    "RATE_LIMITS",
    "RateLimitConfig",
    "RateLimitEntry",
    "RateLimitResult",
    "get_policy",
    "get_rate_limit_headers",
]
