"""Background sweep that keeps the limiter store bounded."""

from __future__ import annotations

import logging
import threading

from practice_gate.adapters.rate_limit.base import AbstractRateLimiter

logger = logging.getLogger(__name__)

DEFAULT_CLEANUP_INTERVAL_SECONDS = 300.0


class CleanupSweeper:
    """Calls ``limiter.cleanup()`` every ``interval_seconds`` on a daemon thread.

    Owned by whoever composes the application: start it once at startup and
    stop it at shutdown.
    """

    def __init__(
        self,
        limiter: AbstractRateLimiter,
        *,
        interval_seconds: float = DEFAULT_CLEANUP_INTERVAL_SECONDS,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")

        self._limiter = limiter
        self._interval = interval_seconds
        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()
        self._state_lock = threading.Lock()
        self._runs = 0
        self._last_error: str | None = None

    @property
    def running(self) -> bool:
        with self._state_lock:
            return bool(self._thread and self._thread.is_alive())

    def start(self) -> bool:
        """Start the sweep thread. Returns False if it is already running."""
        with self._state_lock:
            if self._thread and self._thread.is_alive():
                return False
            self._stop_event.clear()
            thread = threading.Thread(
                target=self._run_loop,
                name="practice-gate-rate-limit-sweeper",
                daemon=True,
            )
            thread.start()
            self._thread = thread

        logger.info("rate_limit.sweeper_started", extra={"interval_s": self._interval})
        return True

    def stop(self, *, join_timeout_seconds: float = 3.0) -> bool:
        """Signal the thread to exit and wait for it. False if not running."""
        with self._state_lock:
            thread = self._thread
            if not thread:
                return False
            self._stop_event.set()

        thread.join(timeout=max(0.1, float(join_timeout_seconds)))
        with self._state_lock:
            if self._thread is thread:
                self._thread = None
            runs = self._runs

        logger.info("rate_limit.sweeper_stopped", extra={"runs": runs})
        return True

    def run_once(self) -> None:
        self._limiter.cleanup()
        with self._state_lock:
            self._runs += 1

    def status(self) -> dict[str, object]:
        running = self.running
        with self._state_lock:
            return {
                "running": running,
                "interval_s": self._interval,
                "runs": self._runs,
                "last_error": self._last_error,
            }

    def _run_loop(self) -> None:
        while not self._stop_event.wait(self._interval):
            try:
                self.run_once()
            except Exception as exc:
                with self._state_lock:
                    self._last_error = f"{exc.__class__.__name__}: {exc}"
                logger.exception("rate_limit.sweeper_error")
