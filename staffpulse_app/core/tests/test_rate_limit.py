"""Tests for the service-level rate limiter."""

from datetime import timedelta

from django.core.cache import cache
from django.utils import timezone
import pytest

from staffpulse_app.core.rate_limit import (
    RateLimitConfig,
    RateLimitExceeded,
    check_rate_limit,
    enforce_rate_limit,
    get_rate_limit_config,
)

HOURLY = 60 * 60


@pytest.fixture(autouse=True)
def clear_cache(settings):
    settings.RATELIMIT_ENABLE = True
    cache.clear()
    yield
    cache.clear()


class TestCheckRateLimit:
    def test_counts_down_remaining(self):
        config = RateLimitConfig(limit=3, window_seconds=HOURLY)

        results = [check_rate_limit("ip:1", config) for _ in range(3)]

        assert [r.remaining for r in results] == [2, 1, 0]
        assert all(r.success for r in results)

    def test_blocks_after_limit(self):
        config = RateLimitConfig(limit=2, window_seconds=HOURLY)
        check_rate_limit("ip:2", config)
        check_rate_limit("ip:2", config)

        result = check_rate_limit("ip:2", config)

        assert result.success is False
        assert result.remaining == 0

    def test_identifiers_are_independent(self):
        config = RateLimitConfig(limit=1, window_seconds=HOURLY)
        check_rate_limit("ip:a", config)

        assert check_rate_limit("ip:b", config).success is True

    def test_groups_are_independent(self):
        responses = RateLimitConfig(limit=1, window_seconds=HOURLY, group="responses")
        reveals = RateLimitConfig(limit=1, window_seconds=HOURLY, group="reveals")
        check_rate_limit("user:1", responses)

        assert check_rate_limit("user:1", reveals).success is True
        assert check_rate_limit("user:1", responses).success is False

    def test_reset_at_falls_inside_window(self):
        config = RateLimitConfig(limit=5, window_seconds=HOURLY)
        before = timezone.now()

        result = check_rate_limit("ip:3", config)

        assert before <= result.reset_at <= before + timedelta(seconds=HOURLY + 1)

    def test_disabled_always_succeeds(self, settings):
        settings.RATELIMIT_ENABLE = False
        config = RateLimitConfig(limit=1, window_seconds=HOURLY)

        for _ in range(5):
            assert check_rate_limit("ip:4", config).success is True

    def test_rate_string(self):
        assert RateLimitConfig(limit=10, window_seconds=HOURLY).rate == "10/3600s"


class TestEnforceRateLimit:
    def test_raises_with_reset_time(self):
        config = RateLimitConfig(limit=1, window_seconds=HOURLY)
        enforce_rate_limit("ip:5", config)

        with pytest.raises(RateLimitExceeded) as exc_info:
            enforce_rate_limit("ip:5", config)

        assert exc_info.value.reset_at is not None
        assert exc_info.value.identifier == "ip:5"


class TestGetRateLimitConfig:
    def test_reads_settings(self):
        config = get_rate_limit_config("survey_response")

        assert config.limit == 10
        assert config.window_seconds == HOURLY
        assert config.group == "survey_response"

    def test_identity_reveal_configured(self):
        assert get_rate_limit_config("identity_reveal").limit == 20

    def test_unknown_name(self):
        with pytest.raises(ValueError):
            get_rate_limit_config("nope")
