"""
RATE LIMITER
============

Fixed-window request counter per client key (the client IP). The first request
from a key opens a window; up to max_requests are allowed until the window
expires, after which the next request opens a fresh one.

The counter is the only shared mutable state in the service, so every
read-modify-write happens under one lock. Expired windows are dropped lazily
(at most once per window length) so memory stays bounded by the number of
clients active in the last window.

This is an in-process limiter: with several server processes each keeps its
own counts.
"""

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict


@dataclass
class _Window:
    started_at: float
    count: int


@dataclass(frozen=True)
class RateLimitStatus:
    allowed: bool
    limit: int
    remaining: int
    reset_after: int  # whole seconds until the window resets


class FixedWindowRateLimiter:
    def __init__(
        self,
        max_requests: int = 50,
        window_seconds: float = 15 * 60,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.max_requests = max_requests
        self.window_seconds = float(window_seconds)
        self._clock = clock
        self._windows: Dict[str, _Window] = {}
        self._lock = threading.Lock()
        self._last_prune = clock()

    def hit(self, key: str) -> RateLimitStatus:
        """Count one request for key and report whether it is allowed."""
        now = self._clock()
        with self._lock:
            self._prune_expired(now)

            window = self._windows.get(key)
            if window is None or (now - window.started_at) >= self.window_seconds:
                window = _Window(started_at=now, count=0)
                self._windows[key] = window

            window.count += 1
            allowed = window.count <= self.max_requests
            remaining = max(0, self.max_requests - window.count)
            reset_after = max(0, int(round(window.started_at + self.window_seconds - now)))

        return RateLimitStatus(
            allowed=allowed,
            limit=self.max_requests,
            remaining=remaining,
            reset_after=reset_after,
        )

    def reset(self, key: str) -> None:
        with self._lock:
            self._windows.pop(key, None)

    def _prune_expired(self, now: float) -> None:
        # Caller holds the lock.
        if (now - self._last_prune) < self.window_seconds:
            return
        expired = [k for k, w in self._windows.items() if (now - w.started_at) >= self.window_seconds]
        for k in expired:
            del self._windows[k]
        self._last_prune = now

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)
