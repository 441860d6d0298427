"""Tests for the sliding-window rate limiter."""

import pytest

from toolgate.config.models.api import RateLimitConfig
from toolgate.gateway.ratelimit import InMemoryRateLimiter, rate_limit_key


class TestRateLimitKey:
    def test_key_per_user_and_method(self) -> None:
        assert rate_limit_key("u1", "tools/call") == "u1:platform:tools/call"

    def test_method_limits(self) -> None:
        config = RateLimitConfig()
        assert config.limit_for("initialize") == 10
        assert config.limit_for("capabilities/invoke") == 100
        assert config.limit_for("resources/read") == config.default_limit


class TestInMemoryRateLimiter:
    @pytest.mark.asyncio
    async def test_allows_under_limit(self) -> None:
        limiter = InMemoryRateLimiter(window_seconds=60)

        for i in range(5):
            result = await limiter.check("k", 5)
            assert result.allowed, f"Request {i + 1} should be allowed"
            assert result.remaining == 5 - i - 1

    @pytest.mark.asyncio
    async def test_blocks_over_limit(self) -> None:
        limiter = InMemoryRateLimiter(window_seconds=60)
        for _ in range(3):
            await limiter.check("k", 3)

        result = await limiter.check("k", 3)

        assert not result.allowed
        assert result.remaining == 0
        assert result.limit == 3

    @pytest.mark.asyncio
    async def test_keys_are_independent(self) -> None:
        limiter = InMemoryRateLimiter(window_seconds=60)
        await limiter.check("a", 1)

        assert not (await limiter.check("a", 1)).allowed
        assert (await limiter.check("b", 1)).allowed

    @pytest.mark.asyncio
    async def test_reset_clears_window(self) -> None:
        limiter = InMemoryRateLimiter(window_seconds=60)
        await limiter.check("k", 1)

        await limiter.reset("k")

        assert (await limiter.check("k", 1)).allowed

    @pytest.mark.asyncio
    async def test_slot_frees_when_oldest_ages_out(self) -> None:
        now = [1_000.0]
        limiter = InMemoryRateLimiter(window_seconds=60, clock=lambda: now[0])
        await limiter.check("k", 2)
        now[0] = 1_030.0
        await limiter.check("k", 2)

        blocked = await limiter.check("k", 2)
        assert not blocked.allowed
        assert blocked.reset_at.timestamp() == 1_060.0

        now[0] = 1_060.0
        assert (await limiter.check("k", 2)).allowed
        assert not (await limiter.check("k", 2)).allowed

    @pytest.mark.asyncio
    async def test_rejections_are_not_recorded(self) -> None:
        now = [1_000.0]
        limiter = InMemoryRateLimiter(window_seconds=60, clock=lambda: now[0])
        await limiter.check("k", 1)
        now[0] = 1_050.0
        await limiter.check("k", 1)

        now[0] = 1_061.0
        assert (await limiter.check("k", 1)).allowed
