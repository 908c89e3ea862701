from __future__ import annotations

import threading
import time
from collections import deque
from collections.abc import Callable

__all__ = ["SlidingWindowLimiter"]


class SlidingWindowLimiter:
    """Allow at most ``limit`` acquisitions within any ``window`` seconds."""

    def __init__(
        self,
        limit: int,
        *,
        window: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if limit <= 0:
            raise ValueError("limit must be positive")
        if window <= 0:
            raise ValueError("window must be positive")
        self.limit = limit
        self.window = window
        self._clock = clock
        self._stamps: deque[float] = deque()
        self._lock = threading.Lock()

    def try_acquire(self) -> float:
        """Record an acquisition and return ``0.0``, or return the seconds to wait."""

        with self._lock:
            now = self._clock()
            cutoff = now - self.window
            while self._stamps and self._stamps[0] <= cutoff:
                self._stamps.popleft()
            if len(self._stamps) >= self.limit:
                return max(self._stamps[0] + self.window - now, 0.0)
            self._stamps.append(now)
            return 0.0

    @property
    def in_window(self) -> int:
        with self._lock:
            return len(self._stamps)
