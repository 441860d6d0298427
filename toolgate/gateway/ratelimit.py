"""Sliding-window request limits per caller and JSON-RPC method.

A request is admitted when fewer than `limit` admitted requests fall in the
last ``window_seconds``. Rejected requests are not recorded, so a caller
hammering a full window does not push its own reset further out.
"""

import time
import uuid
from abc import ABC, abstractmethod
from collections import deque
from collections.abc import Callable
from datetime import UTC, datetime

import redis.asyncio as redis
from pydantic import BaseModel


class RateLimitResult(BaseModel):
    allowed: bool
    limit: int
    remaining: int
    reset_at: datetime


def rate_limit_key(user_id: str, method: str) -> str:
    return f"{user_id}:platform:{method}"


class RateLimiter(ABC):
    def __init__(
        self,
        window_seconds: int = 60,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._window_seconds = window_seconds
        self._clock = clock

    def _result(
        self, admitted_before: int, limit: int, oldest: float | None, now: float
    ) -> RateLimitResult:
        allowed = admitted_before < limit
        used = admitted_before + (1 if allowed else 0)
        # The window frees a slot when its oldest request ages out.
        start = oldest if oldest is not None else now
        return RateLimitResult(
            allowed=allowed,
            limit=limit,
            remaining=max(0, limit - used),
            reset_at=datetime.fromtimestamp(start + self._window_seconds, UTC),
        )

    @abstractmethod
    async def check(self, key: str, limit: int) -> RateLimitResult:
        """Admit and record one request under `key` if the window has room."""

    @abstractmethod
    async def reset(self, key: str) -> None: ...


class InMemoryRateLimiter(RateLimiter):
    """Timestamps of admitted requests per key, pruned on each check."""

    def __init__(
        self,
        window_seconds: int = 60,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(window_seconds, clock)
        self._admitted: dict[str, deque[float]] = {}

    async def check(self, key: str, limit: int) -> RateLimitResult:
        now = self._clock()
        stamps = self._admitted.setdefault(key, deque())
        while stamps and stamps[0] <= now - self._window_seconds:
            stamps.popleft()

        result = self._result(len(stamps), limit, stamps[0] if stamps else None, now)
        if result.allowed:
            stamps.append(now)
        return result

    async def reset(self, key: str) -> None:
        self._admitted.pop(key, None)


class RedisRateLimiter(RateLimiter):
    """One sorted set per key, scored by admission time, shared by all instances."""

    def __init__(
        self,
        client: redis.Redis,
        window_seconds: int = 60,
        key_prefix: str = "toolgate:ratelimit:",
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(window_seconds, clock)
        self._redis = client
        self._key_prefix = key_prefix

    async def check(self, key: str, limit: int) -> RateLimitResult:
        now = self._clock()
        redis_key = f"{self._key_prefix}{key}"

        pipe = self._redis.pipeline()
        pipe.zremrangebyscore(redis_key, 0, now - self._window_seconds)
        pipe.zcard(redis_key)
        pipe.zrange(redis_key, 0, 0, withscores=True)
        _, count, oldest = await pipe.execute()

        result = self._result(int(count), limit, oldest[0][1] if oldest else None, now)
        if result.allowed:
            pipe = self._redis.pipeline()
            pipe.zadd(redis_key, {f"{now}:{uuid.uuid4().hex[:8]}": now})
            pipe.expire(redis_key, self._window_seconds + 5)
            await pipe.execute()
        return result

    async def reset(self, key: str) -> None:
        await self._redis.delete(f"{self._key_prefix}{key}")
