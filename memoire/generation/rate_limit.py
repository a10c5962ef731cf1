# FILE: memoire/generation/rate_limit.py
"""
Admission control for generation requests.

Fixed-window counter per key. The in-memory implementation is process-local;
a shared store can be swapped in behind the RateLimiter protocol.
"""
from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Protocol


@dataclass
class RateLimitDecision:
    allowed: bool
    remaining: int
    retry_after_ms: int = 0


class RateLimiter(Protocol):
    def increment_and_check(self, key: str, window_ms: int, max_requests: int) -> RateLimitDecision:
        ...


@dataclass
class _Window:
    count: int
    reset_at_ms: int


def _now_ms() -> int:
    return int(time.monotonic() * 1000)


class InMemoryRateLimiter:
    """
    Fixed window: the first hit opens a window of window_ms; the window
    admits max_requests hits and then rejects until it expires. Expired
    windows are dropped whenever a new window opens.
    """

    def __init__(self, clock: Callable[[], int] = _now_ms):
        self._clock = clock
        self._windows: Dict[str, _Window] = {}
        self._lock = threading.Lock()

    def increment_and_check(self, key: str, window_ms: int, max_requests: int) -> RateLimitDecision:
        now = self._clock()
        with self._lock:
            window = self._windows.get(key)
            if window is None or now >= window.reset_at_ms:
                self._evict_expired(now)
                self._windows[key] = _Window(count=1, reset_at_ms=now + window_ms)
                return RateLimitDecision(allowed=True, remaining=max(0, max_requests - 1))

            if window.count >= max_requests:
                return RateLimitDecision(
                    allowed=False, remaining=0, retry_after_ms=window.reset_at_ms - now
                )

            window.count += 1
            return RateLimitDecision(allowed=True, remaining=max_requests - window.count)

    def _evict_expired(self, now: int) -> None:
        # Caller holds the lock
        expired = [k for k, w in self._windows.items() if now >= w.reset_at_ms]
        for k in expired:
            del self._windows[k]

    def reset(self, key: str) -> None:
        with self._lock:
            self._windows.pop(key, None)


_default_limiter = InMemoryRateLimiter()


def get_rate_limiter() -> InMemoryRateLimiter:
    return _default_limiter
