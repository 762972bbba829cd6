"""
Service-level rate limiting on top of django-ratelimit.

Callers pass an identifier (client key, user id) instead of a request, so
limits can be enforced from services that never see HTTP. Counters live in
the cache named by RATELIMIT_USE_CACHE; limits are shared between processes
only when that cache is shared.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
import logging

from django.conf import settings
from django.utils import timezone
from django_ratelimit.core import get_usage

logger = logging.getLogger(__name__)

DEFAULT_GROUP = "staffpulse"


@dataclass(frozen=True)
class RateLimitConfig:
    limit: int
    window_seconds: int
    group: str = DEFAULT_GROUP

    @property
    def rate(self) -> str:
        return f"{self.limit}/{self.window_seconds}s"


@dataclass(frozen=True)
class RateLimitResult:
    success: bool
    remaining: int
    reset_at: datetime


class RateLimitExceeded(Exception):
    """Raised by enforce_rate_limit when an identifier is over its limit."""

    def __init__(self, identifier: str, reset_at: datetime):
        self.identifier = identifier
        self.reset_at = reset_at
        super().__init__(f"Rate limit exceeded for {identifier}")


def get_rate_limit_config(name: str) -> RateLimitConfig:
    try:
        entry = settings.RATE_LIMITS[name]
    except KeyError:
        raise ValueError(f"No rate limit configured for '{name}'")
    return RateLimitConfig(
        limit=entry["limit"], window_seconds=entry["window_seconds"], group=name
    )


def check_rate_limit(identifier: str, config: RateLimitConfig) -> RateLimitResult:
    """
    Count one hit against ``identifier``.

    Windows are fixed and aligned by django-ratelimit, so ``reset_at`` is the
    end of the current window rather than first-hit + window.
    """
    now = timezone.now()
    usage = get_usage(
        None,
        group=config.group,
        key=lambda group, request: identifier,
        rate=config.rate,
        increment=True,
    )

    # None when RATELIMIT_ENABLE is off
    if usage is None:
        return RateLimitResult(
            success=True,
            remaining=config.limit,
            reset_at=now + timedelta(seconds=config.window_seconds),
        )

    reset_at = now + timedelta(seconds=max(usage["time_left"], 0))
    if usage["should_limit"]:
        logger.warning(
            f"Rate limit exceeded for {identifier} "
            f"({usage['count']}/{config.limit}, group={config.group})"
        )
        return RateLimitResult(success=False, remaining=0, reset_at=reset_at)

    return RateLimitResult(
        success=True,
        remaining=max(config.limit - usage["count"], 0),
        reset_at=reset_at,
    )


def enforce_rate_limit(identifier: str, config: RateLimitConfig) -> RateLimitResult:
    result = check_rate_limit(identifier, config)
    if not result.success:
        raise RateLimitExceeded(identifier, result.reset_at)
    return result
