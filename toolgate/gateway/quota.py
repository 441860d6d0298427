"""Weekly invocation quota per caller.

Weeks start Sunday 00:00 UTC. Hard tiers are rejected once past their
limit; other tiers are let through and flagged as overage.
"""

from abc import ABC, abstractmethod
from datetime import UTC, datetime, timedelta
from typing import Any

from pydantic import BaseModel

from toolgate.config.models.gateway import WeeklyQuotaConfig
from toolgate.grants.constraints import budget_period_start
from toolgate.observability.logging import get_logger
from toolgate.users.models import canonical_tier

logger = get_logger(__name__)


class QuotaResult(BaseModel):
    """Outcome of counting one invocation against the weekly quota."""

    allowed: bool
    count: int
    limit: int
    overage: bool


def week_start(now: datetime | None = None) -> datetime:
    return budget_period_start("week", now or datetime.now(UTC))


class WeeklyQuota(ABC):
    """Counts invocations per caller per week."""

    def __init__(self, config: WeeklyQuotaConfig) -> None:
        self._config = config

    @abstractmethod
    async def _increment(self, user_id: str, week: datetime) -> int:
        """Add one call and return the week's total."""
        pass

    def limit_for(self, tier: str | None) -> int:
        return self._config.pro_limit if canonical_tier(tier) == "pro" else self._config.free_limit

    async def consume(
        self,
        user_id: str,
        tier: str | None,
        now: datetime | None = None,
    ) -> QuotaResult:
        """Count a call; counter failures let the call through."""
        limit = self.limit_for(tier)
        try:
            count = await self._increment(user_id, week_start(now))
        except Exception as e:
            logger.warning("weekly_quota_check_failed", user_id=user_id, error=str(e))
            return QuotaResult(allowed=True, count=0, limit=limit, overage=False)

        overage = count > limit
        hard = canonical_tier(tier) in self._config.hard_tiers
        return QuotaResult(
            allowed=not (overage and hard), count=count, limit=limit, overage=overage
        )


class InMemoryWeeklyQuota(WeeklyQuota):
    """Per-process weekly counters."""

    def __init__(self, config: WeeklyQuotaConfig) -> None:
        super().__init__(config)
        self._counts: dict[tuple[str, datetime], int] = {}

    async def _increment(self, user_id: str, week: datetime) -> int:
        key = (user_id, week)
        self._counts[key] = self._counts.get(key, 0) + 1
        return self._counts[key]


class RedisWeeklyQuota(WeeklyQuota):
    """Weekly counters in Redis, one key per caller and week."""

    def __init__(self, config: WeeklyQuotaConfig, redis: Any, key_prefix: str = "toolgate") -> None:
        super().__init__(config)
        self._redis = redis
        self._key_prefix = key_prefix

    async def _increment(self, user_id: str, week: datetime) -> int:
        key = f"{self._key_prefix}:quota:{user_id}:{week.date().isoformat()}"
        pipe = self._redis.pipeline()
        pipe.incr(key)
        pipe.expire(key, int(timedelta(days=8).total_seconds()))
        results = await pipe.execute()
        return int(results[0])
