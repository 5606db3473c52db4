"""
Tests for tutor_gateway.services.rate_limiter.
"""

from tutor_gateway.services.rate_limiter import SlidingWindowRateLimiter


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


class TestSlidingWindowRateLimiter:

    def test_allows_up_to_limit_then_denies(self):
        limiter = SlidingWindowRateLimiter(limit=12, window_seconds=300, clock=FakeClock())
        decisions = [limiter.check("user:abc") for _ in range(13)]

        assert all(d.allowed for d in decisions[:12])
        assert decisions[12].allowed is False
        assert decisions[12].remaining == 0

    def test_remaining_counts_down(self):
        limiter = SlidingWindowRateLimiter(limit=3, window_seconds=300, clock=FakeClock())
        assert [limiter.check("k").remaining for _ in range(4)] == [2, 1, 0, 0]

    def test_request_after_window_from_first_is_allowed(self):
        clock = FakeClock(now=0.0)
        limiter = SlidingWindowRateLimiter(limit=2, window_seconds=300, clock=clock)

        assert limiter.check("k").allowed
        clock.now = 1.0
        assert limiter.check("k").allowed

        clock.now = 300.5
        decision = limiter.check("k")
        assert decision.allowed is True
        assert decision.remaining == 0

    def test_request_inside_window_is_denied(self):
        clock = FakeClock(now=0.0)
        limiter = SlidingWindowRateLimiter(limit=2, window_seconds=300, clock=clock)
        limiter.check("k")
        limiter.check("k")

        clock.now = 299.0
        assert limiter.check("k").allowed is False

    def test_keys_are_independent(self):
        limiter = SlidingWindowRateLimiter(limit=1, window_seconds=300, clock=FakeClock())
        assert limiter.check("ip:a").allowed
        assert limiter.check("ip:b").allowed
        assert limiter.check("ip:a").allowed is False
        assert limiter.tracked_keys() == 2

    def test_idle_keys_are_dropped_after_a_window(self):
        clock = FakeClock(now=0.0)
        limiter = SlidingWindowRateLimiter(limit=5, window_seconds=300, clock=clock)
        for n in range(500):
            limiter.check(f"ip:{n}")
        assert limiter.tracked_keys() == 500

        clock.now = 10_000.0
        assert limiter.check("ip:new").allowed
        assert limiter.tracked_keys() == 1

    def test_keys_active_in_window_survive_sweep(self):
        clock = FakeClock(now=0.0)
        limiter = SlidingWindowRateLimiter(limit=2, window_seconds=300, clock=clock)
        limiter.check("idle")
        clock.now = 200.0
        limiter.check("busy")
        limiter.check("busy")

        clock.now = 350.0
        assert limiter.check("busy").allowed is False
        assert limiter.tracked_keys() == 1

    def test_reset_forgets_history(self):
        limiter = SlidingWindowRateLimiter(limit=1, window_seconds=300, clock=FakeClock())
        limiter.check("k")
        limiter.reset()
        assert limiter.check("k").allowed
