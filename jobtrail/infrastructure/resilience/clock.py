"""Concrete time sources."""

import threading
import time

from jobtrail.domain.interfaces.clock import Clock


class SystemClock(Clock):
    """Wall-clock time in milliseconds."""

    def now_ms(self) -> int:
        return int(time.time() * 1000)


class ManualClock(Clock):
    """Clock that only moves when told to. Used by tests and simulations."""

    def __init__(self, start_ms: int = 0):
        self._now_ms = start_ms
        self._lock = threading.Lock()

    def now_ms(self) -> int:
        with self._lock:
            return self._now_ms

    def advance(self, ms: int) -> int:
        """Moves the clock forward and returns the new time."""
        if ms < 0:
            raise ValueError("Cannot move a clock backwards.")
        with self._lock:
            self._now_ms += ms
            return self._now_ms

    def set(self, now_ms: int) -> None:
        with self._lock:
            self._now_ms = now_ms
