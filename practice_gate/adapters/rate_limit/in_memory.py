"""In-memory fixed-window rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: check-and-consume runs under a single lock.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable

from practice_gate.adapters.rate_limit.base import (
    AbstractRateLimiter,
    AbstractRateLimitStore,
    RateLimitConfig,
    RateLimitEntry,
    RateLimitResult,
    now_ms,
)

logger = logging.getLogger(__name__)

DEFAULT_EVICTION_THRESHOLD = 10_000


class InMemoryRateLimitStore(AbstractRateLimitStore):
    """Thread-safe dict-backed store.

    Grows without bound unless something calls the limiter's ``cleanup``.
    """

    def __init__(self) -> None:
        self._entries: dict[str, RateLimitEntry] = {}
        self._lock = threading.RLock()
        self._creations = 0
        self._deletions = 0

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"InMemoryRateLimitStore(size={len(self._entries)}, "
            f"creations={self._creations}, deletions={self._deletions})"
        )

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, identifier: object) -> bool:
        with self._lock:
            return identifier in self._entries

    def get(self, identifier: str) -> RateLimitEntry | None:
        with self._lock:
            return self._entries.get(identifier)

    def set(self, identifier: str, entry: RateLimitEntry) -> None:
        with self._lock:
            if self._entries.get(identifier) is not entry:
                self._creations += 1
            self._entries[identifier] = entry

    def delete(self, identifier: str) -> None:
        with self._lock:
            if self._entries.pop(identifier, None) is not None:
                self._deletions += 1

    def items(self) -> list[tuple[str, RateLimitEntry]]:
        with self._lock:
            return list(self._entries.items())

    def clear(self) -> None:
        """Remove all entries and reset counters."""
        with self._lock:
            self._entries.clear()
            self._creations = 0
            self._deletions = 0

    def stats(self) -> dict[str, int]:
        """Return lightweight store metrics without exposing identifiers."""
        with self._lock:
            return {
                "entries": len(self._entries),
                "creations": self._creations,
                "deletions": self._deletions,
            }


class FixedWindowRateLimiter(AbstractRateLimiter):
    """Fixed-window counter keyed by identifier.

    A window opens on the first request for an identifier and lasts
    ``config.window_ms``. That first request is charged immediately, so a
    policy of ``max_requests=1`` admits exactly one request per window.
    Denied checks never touch the stored entry.

    Important:
        This limiter is per-process only. If the API runs with multiple workers
        (e.g., multiple Uvicorn/Gunicorn workers), each worker will enforce its
        own independent limits.
    """

    def __init__(
        self,
        *,
        store: AbstractRateLimitStore | None = None,
        clock: Callable[[], int] = now_ms,
        eviction_threshold: int = DEFAULT_EVICTION_THRESHOLD,
    ) -> None:
        """Initialize the limiter.

        Args:
            store: Backing store; a fresh in-memory store when omitted.
            clock: Time source returning epoch milliseconds.
            eviction_threshold: Store size above which ``check`` sweeps
                expired entries inline before deciding.

        Raises:
            ValueError: If eviction_threshold is invalid.
        """
        if eviction_threshold < 1:
            raise ValueError("eviction_threshold must be >= 1")

        self._store = store if store is not None else InMemoryRateLimitStore()
        self._clock = clock
        self._eviction_threshold = eviction_threshold
        self._lock = threading.RLock()

    def now(self) -> int:
        return self._clock()

    @property
    def store(self) -> AbstractRateLimitStore:
        return self._store

    def _sweep_expired_locked(self, now: int) -> int:
        expired = [key for key, entry in self._store.items() if entry.is_expired(now)]
        for key in expired:
            self._store.delete(key)
        return len(expired)

    def check(self, identifier: str, config: RateLimitConfig) -> RateLimitResult:
        """Check admission for ``identifier`` and consume one slot if allowed.

        Every allowed result has already been counted; callers must not call
        ``check`` twice for the same logical request.

        Args:
            identifier: Caller-chosen key (user id, IP, composite key).
            config: Policy to enforce.

        Returns:
            RateLimitResult with the admission decision and window metadata.
        """
        now = self._clock()

        with self._lock:
            if len(self._store) > self._eviction_threshold:
                evicted = self._sweep_expired_locked(now)
                logger.info(
                    "rate_limit.evicted",
                    extra={
                        "evicted": evicted,
                        "entries": len(self._store),
                        "threshold": self._eviction_threshold,
                    },
                )

            entry = self._store.get(identifier)

            if entry is None or entry.is_expired(now):
                entry = RateLimitEntry(count=1, window_end=now + config.window_ms)
                self._store.set(identifier, entry)
                return RateLimitResult(
                    allowed=True,
                    remaining=config.max_requests - 1,
                    reset_time=entry.window_end,
                    limit=config.max_requests,
                )

            if entry.count >= config.max_requests:
                return RateLimitResult(
                    allowed=False,
                    remaining=0,
                    reset_time=entry.window_end,
                    limit=config.max_requests,
                )

            entry.count += 1
            self._store.set(identifier, entry)
            return RateLimitResult(
                allowed=True,
                remaining=config.max_requests - entry.count,
                reset_time=entry.window_end,
                limit=config.max_requests,
            )

    def reset(self, identifier: str) -> None:
        with self._lock:
            self._store.delete(identifier)

    def cleanup(self) -> None:
        """Delete every entry whose window has ended; live entries stay."""
        now = self._clock()
        with self._lock:
            removed = self._sweep_expired_locked(now)
            remaining = len(self._store)

        logger.debug(
            "rate_limit.cleanup",
            extra={"removed": removed, "entries": remaining},
        )
