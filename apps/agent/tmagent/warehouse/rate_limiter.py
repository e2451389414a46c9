"""Sliding-window rate limiter for outbound warehouse calls.

Keeps the timestamps of recently admitted calls and prunes anything at or
older than ``now - interval`` on every check. Process-local and lock-free:
callers share one instance on one event loop.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from typing import Callable

from tmagent.errors import RateLimitExceeded

logger = logging.getLogger(__name__)


class SlidingWindowRateLimiter:
    """Admit at most ``limit`` calls in any rolling ``interval`` seconds."""

    def __init__(
        self,
        limit: int,
        interval: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if limit <= 0:
            raise ValueError("limit must be positive")
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.limit = limit
        self.interval = interval
        self._clock = clock
        self._timestamps: deque[float] = deque()

    def _prune(self, now: float) -> None:
        cutoff = now - self.interval
        while self._timestamps and self._timestamps[0] <= cutoff:
            self._timestamps.popleft()

    def try_acquire(self) -> bool:
        """Record a call and return True if admitted, False otherwise."""
        now = self._clock()
        self._prune(now)
        if len(self._timestamps) >= self.limit:
            return False
        self._timestamps.append(now)
        return True

    def check(self) -> None:
        """Admit a call or raise RateLimitExceeded immediately."""
        if not self.try_acquire():
            logger.info("Rate limit hit (%d calls / %.0fs)", self.limit, self.interval)
            raise RateLimitExceeded(
                f"Rate limit exceeded: {self.limit} calls per {self.interval:g}s"
            )

    def remaining(self) -> int:
        self._prune(self._clock())
        return self.limit - len(self._timestamps)
