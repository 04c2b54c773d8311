"""Blocking permit-based rate limiter derived from a per-request delay."""

from __future__ import annotations

import threading
import time
from typing import Callable


class RateLimiter:
    """Hand out permits at a fixed rate; `acquire` blocks until one is available.

    Each caller reserves the next free slot under the lock and sleeps outside it,
    so concurrent workers are spaced `1 / permits_per_second` apart.
    """

    def __init__(
        self,
        permits_per_second: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if permits_per_second <= 0:
            raise ValueError("permits_per_second must be > 0")
        self.permits_per_second = permits_per_second
        self.interval_seconds = 1.0 / permits_per_second

        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._next_allowed = 0.0

    def acquire(self, cancel_event: threading.Event | None = None) -> float:
        """Block until a permit is granted and return the seconds waited.

        With `cancel_event`, the wait ends early once the event is set; the
        caller checks the event afterwards.
        """

        with self._lock:
            now = self._clock()
            slot = max(now, self._next_allowed)
            self._next_allowed = slot + self.interval_seconds
            wait_for = slot - now

        if wait_for > 0:
            if cancel_event is not None:
                cancel_event.wait(wait_for)
            else:
                self._sleep(wait_for)
        return max(0.0, wait_for)


class NoopRateLimiter:
    """Grants every permit immediately."""

    permits_per_second = float("inf")
    interval_seconds = 0.0

    def acquire(self, cancel_event: threading.Event | None = None) -> float:
        return 0.0


def rate_limiter_for_delay(
    delay_ms: int | None,
    *,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> RateLimiter | NoopRateLimiter:
    """Build a limiter issuing `1000 / delay_ms` permits per second, or a no-op for 0."""

    if not delay_ms or delay_ms <= 0:
        return NoopRateLimiter()
    return RateLimiter(1000.0 / delay_ms, clock=clock, sleep=sleep)


__all__ = [
    "NoopRateLimiter",
    "RateLimiter",
    "rate_limiter_for_delay",
]
