"""
Tests for the fixed-window RateLimiter.
"""

import pytest

from agriintel.api.rate_limiter import RateLimiter
from agriintel.models.service_models import RateLimitConfig


@pytest.fixture
def limiter(fake_clock):
    """Create a limiter allowing 3 requests per second."""
    return RateLimiter(RateLimitConfig(requests=3, window=1.0), clock=fake_clock)


class TestRateLimiter:
    """Test fixed-window limiting per key."""

    def test_denies_after_limit_within_window(self, limiter, fake_clock):
        results = []
        for _ in range(4):
            results.append(limiter.check_rate_limit("GET:/animals"))
            fake_clock.advance(0.1)

        assert results == [True, True, True, False]

    def test_denied_requests_not_counted(self, limiter):
        for _ in range(5):
            limiter.check_rate_limit("GET:/animals")

        assert limiter.get_entry("GET:/animals").requests == 3

    def test_window_resets_after_elapsed(self, limiter, fake_clock):
        start = fake_clock.now
        for _ in range(4):
            limiter.check_rate_limit("GET:/animals")

        fake_clock.now = start + 1.001

        assert limiter.check_rate_limit("GET:/animals") is True
        entry = limiter.get_entry("GET:/animals")
        assert entry.requests == 1
        assert entry.window_start == start + 1.001

    def test_window_boundary_still_counts(self, limiter, fake_clock):
        for _ in range(3):
            limiter.check_rate_limit("GET:/animals")

        fake_clock.advance(1.0)

        assert limiter.check_rate_limit("GET:/animals") is False

    def test_keys_are_independent(self, limiter):
        for _ in range(3):
            limiter.check_rate_limit("GET:/animals")

        assert limiter.check_rate_limit("GET:/animals") is False
        assert limiter.check_rate_limit("POST:/animals") is True

    def test_disabled_limiter_always_allows(self, fake_clock):
        limiter = RateLimiter(None, clock=fake_clock)

        assert all(limiter.check_rate_limit("GET:/animals") for _ in range(1000))
        assert limiter.enabled is False

    def test_usage_and_reset(self, limiter):
        limiter.check_rate_limit("GET:/animals")
        limiter.check_rate_limit("GET:/animals")

        usage = limiter.get_current_usage()
        assert usage["tracked_keys"] == 1
        assert usage["requests_limit"] == 3
        assert usage["keys"]["GET:/animals"]["requests"] == 2

        limiter.reset()
        assert limiter.get_current_usage()["tracked_keys"] == 0
