"""
In-memory fixed-window rate limiter.

Counters live in the process and are lost on restart. One instance is
created by the app factory and shared by all request threads.
"""

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict


@dataclass
class _Window:
    count: int
    reset_at: float


class FixedWindowRateLimiter:
    """
    Allow at most `max_requests` hits per key within each window.

    Args:
        max_requests (int): Hits allowed per window.
        window_seconds (float): Window length.
        clock: Monotonic time source, overridable in tests.
    """

    def __init__(
        self,
        max_requests: int = 10,
        window_seconds: float = 60,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: Dict[str, _Window] = {}
        self._next_sweep = clock() + window_seconds
        self._lock = threading.Lock()

    def tracked_keys(self) -> int:
        """Number of keys currently holding a window."""
        with self._lock:
            return len(self._windows)

    def hit(self, key: str) -> bool:
        """
        Record one attempt for `key`.

        Returns:
            bool: True if the attempt is allowed, False if it is over the limit.
        """
        now = self._clock()
        with self._lock:
            if now >= self._next_sweep:
                self._sweep(now)

            window = self._windows.get(key)

            if window is None or now > window.reset_at:
                self._windows[key] = _Window(count=1, reset_at=now + self.window_seconds)
                return True

            if window.count >= self.max_requests:
                return False

            window.count += 1
            return True

    def _sweep(self, now: float) -> None:
        # Drop windows that have run out so one-off keys do not accumulate
        expired = [key for key, window in self._windows.items() if window.reset_at < now]
        for key in expired:
            del self._windows[key]
        self._next_sweep = now + self.window_seconds

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()
