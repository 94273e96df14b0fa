"""Rate limiter interfaces and value types.

Call sites depend on these abstractions (not the concrete implementation)
so the in-memory store can later be replaced by a shared backend (e.g., Redis)
without touching the HTTP layer.
"""

from __future__ import annotations

import math
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterator


def now_ms() -> int:
    """Wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def epoch_ms_to_iso(epoch_ms: int) -> str:
    """Render epoch milliseconds as an ISO-8601 UTC string (``...Z``)."""
    moment = datetime.fromtimestamp(epoch_ms / 1000, tz=timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class RateLimitConfig:
    """Immutable rate limit policy.

    Attributes:
        max_requests: Ceiling of admitted requests per window.
        window_ms: Window length in milliseconds.

    Raises:
        ValueError: If either value is below 1. A zero ceiling is rejected
            here because a fresh window always admits its first request.
    """

    max_requests: int
    window_ms: int

    def __post_init__(self) -> None:
        if self.max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        if self.window_ms < 1:
            raise ValueError("window_ms must be >= 1")


@dataclass
class RateLimitEntry:
    """Window state for one identifier.

    Attributes:
        count: Requests admitted in the current window (>= 1).
        window_end: Epoch milliseconds at which the window resets.
    """

    count: int
    window_end: int

    def is_expired(self, now: int) -> bool:
        return now > self.window_end


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a check-and-consume operation.

    Attributes:
        allowed: Whether the request may proceed.
        remaining: Requests left in the current window (0 when denied).
        reset_time: Epoch milliseconds when the current window resets.
        limit: Ceiling of the policy that produced this result.
    """

    allowed: bool
    remaining: int
    reset_time: int
    limit: int

    @property
    def reset_at_iso(self) -> str:
        return epoch_ms_to_iso(self.reset_time)

    def retry_after_seconds(self, now: int) -> int:
        """Whole seconds until the window resets, never negative."""
        return max(0, int(math.ceil((self.reset_time - now) / 1000)))


class AbstractRateLimitStore(ABC):
    """Identifier -> entry mapping. Holds no policy knowledge."""

    @abstractmethod
    def get(self, identifier: str) -> RateLimitEntry | None:
        raise NotImplementedError

    @abstractmethod
    def set(self, identifier: str, entry: RateLimitEntry) -> None:
        raise NotImplementedError

    @abstractmethod
    def delete(self, identifier: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def items(self) -> list[tuple[str, RateLimitEntry]]:
        """Snapshot of all (identifier, entry) pairs."""
        raise NotImplementedError

    @abstractmethod
    def __len__(self) -> int:
        raise NotImplementedError

    @abstractmethod
    def stats(self) -> dict[str, int]:
        """Counts only: ``entries``, ``creations`` and ``deletions``."""
        raise NotImplementedError

    def __iter__(self) -> Iterator[tuple[str, RateLimitEntry]]:
        return iter(self.items())


class AbstractRateLimiter(ABC):
    """Interface for rate limiters."""

    def now(self) -> int:
        """Current time in epoch milliseconds, as seen by this limiter."""
        return now_ms()

    @abstractmethod
    def check(self, identifier: str, config: RateLimitConfig) -> RateLimitResult:
        """Decide admission for ``identifier`` and consume one slot if allowed.

        Args:
            identifier: Caller-chosen key (user id, IP, composite key).
            config: Policy to apply.

        Returns:
            RateLimitResult describing whether it was allowed.
        """
        raise NotImplementedError

    @abstractmethod
    def reset(self, identifier: str) -> None:
        """Forget any history for ``identifier``."""
        raise NotImplementedError

    @abstractmethod
    def cleanup(self) -> None:
        """Drop every entry whose window has ended."""
        raise NotImplementedError
