"""Unit tests for the in-memory fixed-window rate limiter."""

import threading
from unittest.mock import Mock

import pytest

from practice_gate.adapters.rate_limit.base import RateLimitConfig, RateLimitEntry
from practice_gate.adapters.rate_limit.in_memory import (
    FixedWindowRateLimiter,
    InMemoryRateLimitStore,
)


def _limiter(start: int = 0, **kwargs) -> tuple[FixedWindowRateLimiter, Mock]:
    clock = Mock(return_value=start)
    return FixedWindowRateLimiter(clock=clock, **kwargs), clock


def test_first_check_is_allowed_with_one_slot_consumed() -> None:
    limiter, _ = _limiter(start=5_000)
    config = RateLimitConfig(max_requests=7, window_ms=60_000)

    result = limiter.check("user-1", config)

    assert result.allowed is True
    assert result.remaining == 6
    assert result.reset_time == 65_000
    assert result.limit == 7


def test_concrete_three_per_second_scenario() -> None:
    limiter, clock = _limiter(start=0)
    config = RateLimitConfig(max_requests=3, window_ms=1000)

    results = [limiter.check("X", config) for _ in range(3)]
    assert [r.allowed for r in results] == [True, True, True]
    assert [r.remaining for r in results] == [2, 1, 0]

    clock.return_value = 500
    denied = limiter.check("X", config)
    assert denied.allowed is False
    assert denied.remaining == 0
    assert denied.reset_time == 1000

    clock.return_value = 1001
    fresh = limiter.check("X", config)
    assert fresh.allowed is True
    assert fresh.remaining == 2
    assert fresh.reset_time == 2001


def test_window_is_still_active_at_exact_window_end() -> None:
    limiter, clock = _limiter(start=0)
    config = RateLimitConfig(max_requests=1, window_ms=1000)

    assert limiter.check("k", config).allowed is True
    clock.return_value = 1000
    assert limiter.check("k", config).allowed is False


def test_denied_check_does_not_consume() -> None:
    limiter, _ = _limiter()
    config = RateLimitConfig(max_requests=2, window_ms=60_000)

    limiter.check("k", config)
    limiter.check("k", config)
    for _ in range(5):
        denied = limiter.check("k", config)
        assert denied.allowed is False
        assert denied.remaining == 0

    entry = limiter.store.get("k")
    assert entry is not None
    assert entry.count == 2


def test_denials_do_not_carry_into_next_window() -> None:
    limiter, clock = _limiter(start=0)
    config = RateLimitConfig(max_requests=2, window_ms=100)

    for _ in range(10):
        limiter.check("k", config)

    clock.return_value = 101
    result = limiter.check("k", config)
    assert result.allowed is True
    assert result.remaining == 1
    assert limiter.store.get("k") == RateLimitEntry(count=1, window_end=201)


def test_identifiers_are_isolated() -> None:
    limiter, _ = _limiter()
    config = RateLimitConfig(max_requests=3, window_ms=60_000)

    for _ in range(4):
        limiter.check("A", config)
    assert limiter.check("A", config).allowed is False

    result = limiter.check("B", config)
    assert result.allowed is True
    assert result.remaining == 2


def test_reset_makes_identifier_fresh() -> None:
    limiter, _ = _limiter()
    config = RateLimitConfig(max_requests=1, window_ms=60_000)

    limiter.check("k", config)
    assert limiter.check("k", config).allowed is False

    limiter.reset("k")
    result = limiter.check("k", config)
    assert result.allowed is True
    assert result.remaining == 0


def test_reset_is_idempotent_for_unknown_identifier() -> None:
    limiter, _ = _limiter()

    limiter.reset("never-seen")
    limiter.reset("never-seen")

    assert len(limiter.store) == 0


def test_cleanup_removes_only_expired_entries() -> None:
    limiter, clock = _limiter(start=0)
    short = RateLimitConfig(max_requests=5, window_ms=100)
    long = RateLimitConfig(max_requests=5, window_ms=10_000)

    limiter.check("expired-1", short)
    limiter.check("expired-2", short)
    limiter.check("live", long)

    clock.return_value = 500
    limiter.cleanup()

    assert "expired-1" not in limiter.store
    assert "expired-2" not in limiter.store
    assert limiter.store.get("live") == RateLimitEntry(count=1, window_end=10_000)


def test_cleanup_on_empty_store_is_noop() -> None:
    limiter, _ = _limiter()

    limiter.cleanup()

    assert len(limiter.store) == 0


def test_size_triggered_eviction_keeps_live_entries() -> None:
    limiter, clock = _limiter(start=0, eviction_threshold=3)
    short = RateLimitConfig(max_requests=5, window_ms=100)
    long = RateLimitConfig(max_requests=5, window_ms=10_000)

    limiter.check("old-1", short)
    limiter.check("old-2", short)
    limiter.check("live-1", long)
    limiter.check("live-2", long)
    assert len(limiter.store) == 4

    clock.return_value = 200
    result = limiter.check("live-1", long)

    assert result.allowed is True
    assert result.remaining == 3
    assert "old-1" not in limiter.store
    assert "old-2" not in limiter.store
    assert limiter.store.get("live-2") == RateLimitEntry(count=1, window_end=10_000)


def test_no_eviction_below_threshold() -> None:
    limiter, clock = _limiter(start=0, eviction_threshold=10)
    short = RateLimitConfig(max_requests=5, window_ms=100)

    limiter.check("old", short)
    clock.return_value = 200
    limiter.check("new", short)

    # Expired but untouched until a sweep runs.
    assert "old" in limiter.store


def test_limiter_uses_supplied_store() -> None:
    store = InMemoryRateLimitStore()
    limiter = FixedWindowRateLimiter(store=store, clock=Mock(return_value=0))

    limiter.check("k", RateLimitConfig(max_requests=2, window_ms=1000))

    assert store.get("k") == RateLimitEntry(count=1, window_end=1000)


def test_retry_after_rounds_up_to_whole_seconds() -> None:
    limiter, clock = _limiter(start=0)
    config = RateLimitConfig(max_requests=1, window_ms=60_000)

    limiter.check("k", config)
    clock.return_value = 58_500
    denied = limiter.check("k", config)

    assert denied.retry_after_seconds(limiter.now()) == 2
    assert denied.retry_after_seconds(70_000) == 0


def test_concurrent_checks_never_over_admit() -> None:
    limiter = FixedWindowRateLimiter()
    config = RateLimitConfig(max_requests=25, window_ms=60_000)
    allowed: list[bool] = []
    allowed_lock = threading.Lock()

    def _worker() -> None:
        for _ in range(10):
            result = limiter.check("shared", config)
            with allowed_lock:
                allowed.append(result.allowed)

    threads = [threading.Thread(target=_worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sum(allowed) == 25
    assert limiter.store.get("shared").count == 25


@pytest.mark.parametrize(
    "kwargs",
    [
        {"max_requests": 0, "window_ms": 1000},
        {"max_requests": -1, "window_ms": 1000},
        {"max_requests": 1, "window_ms": 0},
        {"max_requests": 1, "window_ms": -5},
    ],
)
def test_invalid_config_is_rejected_at_construction(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        RateLimitConfig(**kwargs)


def test_single_request_policy_admits_exactly_one_per_window() -> None:
    limiter, _ = _limiter()
    config = RateLimitConfig(max_requests=1, window_ms=1000)

    first = limiter.check("k", config)
    second = limiter.check("k", config)

    assert (first.allowed, first.remaining) == (True, 0)
    assert (second.allowed, second.remaining) == (False, 0)


def test_invalid_eviction_threshold() -> None:
    with pytest.raises(ValueError):
        FixedWindowRateLimiter(eviction_threshold=0)
