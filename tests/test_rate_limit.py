# FILE: tests/test_rate_limit.py
"""
Tests for memoire/generation/rate_limit.py
Fixed-window admission control.
"""

import sys
from pathlib import Path

_project_root = Path(__file__).parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

from memoire.generation.rate_limit import InMemoryRateLimiter


class FakeClock:
    def __init__(self, now=0):
        self.now = now

    def __call__(self):
        return self.now


class TestFixedWindow:

    def test_fifth_allowed_sixth_rejected(self):
        limiter = InMemoryRateLimiter(clock=FakeClock())
        decisions = [limiter.increment_and_check("user", 60_000, 5) for _ in range(6)]
        assert [d.allowed for d in decisions] == [True] * 5 + [False]
        assert decisions[4].remaining == 0

    def test_retry_after_reported(self):
        clock = FakeClock()
        limiter = InMemoryRateLimiter(clock=clock)
        for _ in range(5):
            limiter.increment_and_check("user", 60_000, 5)
        clock.now = 15_000
        rejected = limiter.increment_and_check("user", 60_000, 5)
        assert rejected.allowed is False
        assert rejected.retry_after_ms == 45_000

    def test_fresh_window_after_expiry(self):
        clock = FakeClock()
        limiter = InMemoryRateLimiter(clock=clock)
        for _ in range(6):
            limiter.increment_and_check("user", 60_000, 5)
        clock.now = 60_000
        decision = limiter.increment_and_check("user", 60_000, 5)
        assert decision.allowed is True
        assert decision.remaining == 4

    def test_keys_are_independent(self):
        limiter = InMemoryRateLimiter(clock=FakeClock())
        for _ in range(5):
            limiter.increment_and_check("alice", 60_000, 5)
        assert limiter.increment_and_check("bob", 60_000, 5).allowed is True
        assert limiter.increment_and_check("alice", 60_000, 5).allowed is False

    def test_reset(self):
        limiter = InMemoryRateLimiter(clock=FakeClock())
        for _ in range(5):
            limiter.increment_and_check("user", 60_000, 5)
        limiter.reset("user")
        assert limiter.increment_and_check("user", 60_000, 5).allowed is True

    def test_expired_windows_evicted(self):
        clock = FakeClock()
        limiter = InMemoryRateLimiter(clock=clock)
        for user in ("alice", "bob", "carol"):
            limiter.increment_and_check(user, 60_000, 5)
        assert len(limiter._windows) == 3

        clock.now = 60_000
        limiter.increment_and_check("dave", 60_000, 5)
        assert set(limiter._windows) == {"dave"}

    def test_live_windows_kept(self):
        clock = FakeClock()
        limiter = InMemoryRateLimiter(clock=clock)
        limiter.increment_and_check("alice", 60_000, 5)
        clock.now = 30_000
        limiter.increment_and_check("bob", 60_000, 5)
        assert set(limiter._windows) == {"alice", "bob"}
