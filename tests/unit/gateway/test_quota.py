"""Tests for the weekly invocation quota."""

from datetime import UTC, datetime, timedelta

import pytest

from toolgate.config.models.gateway import WeeklyQuotaConfig
from toolgate.gateway.quota import InMemoryWeeklyQuota, WeeklyQuota, week_start

# Wednesday
NOW = datetime(2026, 3, 11, 12, 0, tzinfo=UTC)


@pytest.fixture
def quota() -> InMemoryWeeklyQuota:
    return InMemoryWeeklyQuota(WeeklyQuotaConfig(free_limit=2, pro_limit=3))


class FailingQuota(WeeklyQuota):
    async def _increment(self, user_id: str, week: datetime) -> int:
        raise ConnectionError("redis unavailable")


class TestWeekStart:
    def test_starts_sunday_midnight(self) -> None:
        assert week_start(NOW) == datetime(2026, 3, 8, tzinfo=UTC)

    def test_sunday_is_its_own_week(self) -> None:
        sunday = datetime(2026, 3, 8, 0, 30, tzinfo=UTC)
        assert week_start(sunday) == datetime(2026, 3, 8, tzinfo=UTC)


class TestWeeklyQuota:
    def test_limit_follows_canonical_tier(self, quota: InMemoryWeeklyQuota) -> None:
        assert quota.limit_for("free") == 2
        assert quota.limit_for("fun") == 2
        assert quota.limit_for(None) == 2
        assert quota.limit_for("pro") == 3
        assert quota.limit_for("enterprise") == 3

    @pytest.mark.asyncio
    async def test_hard_tier_rejected_past_limit(self, quota: InMemoryWeeklyQuota) -> None:
        results = [await quota.consume("u1", "free", now=NOW) for _ in range(3)]

        assert [r.allowed for r in results] == [True, True, False]
        assert results[-1].overage is True
        assert results[-1].count == 3

    @pytest.mark.asyncio
    async def test_soft_tier_flagged_not_rejected(self, quota: InMemoryWeeklyQuota) -> None:
        results = [await quota.consume("u1", "pro", now=NOW) for _ in range(4)]

        assert all(r.allowed for r in results)
        assert [r.overage for r in results] == [False, False, False, True]

    @pytest.mark.asyncio
    async def test_counter_resets_each_week(self, quota: InMemoryWeeklyQuota) -> None:
        for _ in range(3):
            await quota.consume("u1", "free", now=NOW)

        next_week = await quota.consume("u1", "free", now=NOW + timedelta(days=7))

        assert next_week.allowed is True
        assert next_week.count == 1

    @pytest.mark.asyncio
    async def test_counters_are_per_user(self, quota: InMemoryWeeklyQuota) -> None:
        for _ in range(3):
            await quota.consume("u1", "free", now=NOW)

        assert (await quota.consume("u2", "free", now=NOW)).allowed is True

    @pytest.mark.asyncio
    async def test_counter_failure_lets_call_through(self) -> None:
        result = await FailingQuota(WeeklyQuotaConfig()).consume("u1", "free")

        assert result.allowed is True
        assert result.overage is False
