"""Fixed-window request limiter shared by the admin endpoints."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Tuple


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_at: float

    def retry_after(self, now: float) -> int:
        """Whole seconds until the window resets (at least 1)."""
        return max(1, int(self.reset_at - now + 0.999))


class RateLimiter:
    """Counts requests per key inside a window that starts on the first hit.

    One instance lives for the lifetime of the application that constructs it;
    multi-process deployments need a shared store instead.
    """

    def __init__(
        self,
        limit: int,
        window_seconds: float,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if limit < 1:
            raise ValueError("limit must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.limit = limit
        self.window_seconds = window_seconds
        self.clock = clock
        self._windows: Dict[str, Tuple[int, float]] = {}
        self._lock = threading.Lock()

    def check(self, key: str) -> RateLimitResult:
        """Record one request for ``key`` and report whether it is allowed."""
        now = self.clock()
        with self._lock:
            self._prune(now)
            count, reset_at = self._windows.get(key, (0, now + self.window_seconds))
            count += 1
            self._windows[key] = (count, reset_at)

        if count > self.limit:
            return RateLimitResult(False, self.limit, 0, reset_at)
        return RateLimitResult(True, self.limit, self.limit - count, reset_at)

    def reset(self, key: str | None = None) -> None:
        with self._lock:
            if key is None:
                self._windows.clear()
            else:
                self._windows.pop(key, None)

    def _prune(self, now: float) -> None:
        expired = [key for key, (_, reset_at) in self._windows.items() if reset_at <= now]
        for key in expired:
            del self._windows[key]


__all__ = ["RateLimitResult", "RateLimiter"]
