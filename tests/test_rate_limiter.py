"""
Tests for the outbound search rate limiter.
"""
import pytest

pytestmark = pytest.mark.unit

from api.services.rate_limiter import RateLimiter


class FakeClock:
    """Manual clock; sleeping advances it."""

    def __init__(self, start: float = 100.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class TestRateLimiter:
    """Test minimum spacing between calls."""

    def test_first_call_never_waits(self):
        clock = FakeClock()
        limiter = RateLimiter(1.0, clock=clock, sleep=clock.sleep)
        assert limiter.wait_if_needed() == 0.0
        assert clock.sleeps == []

    def test_back_to_back_calls_wait(self):
        clock = FakeClock()
        limiter = RateLimiter(1.0, clock=clock, sleep=clock.sleep)
        limiter.wait_if_needed()
        clock.now += 0.25

        assert limiter.wait_if_needed() == pytest.approx(0.75)
        assert clock.sleeps == [pytest.approx(0.75)]

    def test_no_wait_after_interval(self):
        clock = FakeClock()
        limiter = RateLimiter(1.0, clock=clock, sleep=clock.sleep)
        limiter.wait_if_needed()
        clock.now += 2.0

        assert limiter.wait_if_needed() == 0.0

    def test_spacing_measured_from_last_call(self):
        """Each call resets the reference point."""
        clock = FakeClock()
        limiter = RateLimiter(1.0, clock=clock, sleep=clock.sleep)
        for _ in range(3):
            limiter.wait_if_needed()

        assert clock.sleeps == [pytest.approx(1.0), pytest.approx(1.0)]

    def test_zero_interval_never_sleeps(self):
        clock = FakeClock()
        limiter = RateLimiter(0.0, clock=clock, sleep=clock.sleep)
        for _ in range(5):
            limiter.wait_if_needed()
        assert clock.sleeps == []

    def test_negative_interval_clamped(self):
        assert RateLimiter(-1.0).min_interval == 0.0
