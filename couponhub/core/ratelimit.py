from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimit:
    max_requests: int
    window_seconds: int = 15 * 60


@dataclass
class _Window:
    count: int
    reset_at: float


class RateLimiter:
    """
    Fixed-window request counter keyed by caller identity and route.

    The first hit on a key opens a window of `window_seconds`; hits inside the
    window are counted and once `max_requests` is reached further hits are refused
    until the window expires, at which point the next hit opens a fresh window.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._windows: dict[str, _Window] = {}
        self._lock = threading.Lock()

    def hit(self, key: str, limit: RateLimit) -> tuple[bool, int]:
        """
        Count one request. Returns (allowed, seconds_until_reset).
        """
        now = self._clock()
        with self._lock:
            w = self._windows.get(key)
            if w is None or now >= w.reset_at:
                # drop stale windows before opening a new one
                for k in [k for k, old in self._windows.items() if now >= old.reset_at]:
                    del self._windows[k]
                self._windows[key] = _Window(count=1, reset_at=now + limit.window_seconds)
                return True, limit.window_seconds

            retry_after = max(int(w.reset_at - now), 1)
            if w.count >= limit.max_requests:
                return False, retry_after

            w.count += 1
            return True, retry_after

    def purge_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [k for k, w in self._windows.items() if now >= w.reset_at]
            for k in expired:
                del self._windows[k]
        return len(expired)

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()


rate_limiter = RateLimiter()
