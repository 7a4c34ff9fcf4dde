"""
Fixed-Window Rate Limiter.

Counts requests per client key inside windows of ``window_seconds``.
Counters live in process memory behind a lock, so limits apply per
worker process.
"""

from __future__ import annotations

import math
import threading
import time
from typing import Callable, NamedTuple, Optional


class RateLimitDecision(NamedTuple):
    allowed: bool
    limit: int
    remaining: int
    retry_after: int


class FixedWindowRateLimiter:
    """Allow at most ``max_requests`` per client per window."""

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._max_requests = max_requests
        self._window_seconds = window_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._windows: dict[str, tuple[float, int]] = {}

    @property
    def limit(self) -> int:
        return self._max_requests

    def hit(self, client_key: str, now: Optional[float] = None) -> RateLimitDecision:
        """Record one request for *client_key* and decide whether it may proceed."""
        now = self._clock() if now is None else now
        with self._lock:
            window_start, count = self._windows.get(client_key, (now, 0))
            if now - window_start >= self._window_seconds:
                window_start, count = now, 0
            count += 1
            self._windows[client_key] = (window_start, count)
            self._prune(now)

        retry_after = max(0, math.ceil(window_start + self._window_seconds - now))
        return RateLimitDecision(
            allowed=count <= self._max_requests,
            limit=self._max_requests,
            remaining=max(0, self._max_requests - count),
            retry_after=retry_after,
        )

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()

    def _prune(self, now: float) -> None:
        # Caller holds the lock.
        expired = [
            key for key, (start, _) in self._windows.items()
            if now - start >= self._window_seconds
        ]
        for key in expired:
            del self._windows[key]
