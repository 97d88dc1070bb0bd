"""Process-wide request spacing and cooperative cancellation."""

from __future__ import annotations

import threading
import time
from concurrent.futures import CancelledError
from typing import Callable

_instance: "RateLimiter | None" = None
_instance_lock = threading.Lock()

DEFAULT_INTERVAL_MS = 2500


class CancelToken:
    """Cooperative cancellation signal shared by one resolution."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise CancelledError()

    def wait(self, seconds: float) -> bool:
        """Sleep up to *seconds*; returns True if cancelled meanwhile."""
        return self._event.wait(seconds)


def check_cancelled(cancel: CancelToken | None) -> None:
    if cancel is not None:
        cancel.raise_if_cancelled()


class RateLimiter:
    """Enforces a minimum spacing between requests across all callers.

    The lock only covers reserving a slot: each caller books the earliest
    allowed start time and advances it by the interval, then sleeps outside
    the lock. Concurrent callers therefore queue up in booking order without
    serializing their network calls.
    """

    def __init__(
        self,
        interval_ms: int = DEFAULT_INTERVAL_MS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._interval = max(0, interval_ms) / 1000.0
        self._clock = clock
        self._lock = threading.Lock()
        self._next_allowed = 0.0

    @property
    def interval(self) -> float:
        return self._interval

    def reserve(self) -> float:
        """Book the next slot and return how long the caller must wait."""
        with self._lock:
            now = self._clock()
            start = max(now, self._next_allowed)
            self._next_allowed = start + self._interval
            return start - now

    def acquire(self, cancel: CancelToken | None = None) -> None:
        """Block until the caller may issue its request."""
        check_cancelled(cancel)
        delay = self.reserve()
        if delay <= 0:
            return
        if cancel is None:
            time.sleep(delay)
        elif cancel.wait(delay):
            raise CancelledError()


def get_rate_limiter(interval_ms: int = DEFAULT_INTERVAL_MS) -> RateLimiter:
    """Module-level factory — one limiter per process for the SQL endpoint."""
    global _instance
    with _instance_lock:
        if _instance is None:
            _instance = RateLimiter(interval_ms)
        return _instance


def reset_rate_limiter() -> None:
    """Reset the global limiter (for testing)."""
    global _instance
    with _instance_lock:
        _instance = None
