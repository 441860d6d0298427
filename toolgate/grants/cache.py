"""Grant lookup cache.

The cache is keyed by (app id, user id) and invalidated per app. GrantService
calls invalidate() synchronously after every grant or revoke.
"""

import json
import time
from abc import ABC, abstractmethod
from collections import OrderedDict

from redis.asyncio import Redis

from toolgate.grants.models import Grant
from toolgate.observability.logging import get_logger

logger = get_logger(__name__)


class GrantCache(ABC):
    """Abstract interface for the grant lookup cache."""

    @abstractmethod
    async def get(self, app_id: str, user_id: str) -> list[Grant] | None:
        """Cached grants for a user on an app, or None on miss."""
        pass

    @abstractmethod
    async def set(self, app_id: str, user_id: str, grants: list[Grant]) -> None:
        """Cache the grants a user holds on an app."""
        pass

    @abstractmethod
    async def invalidate(self, app_id: str) -> None:
        """Drop every cached entry for an app."""
        pass


class InMemoryGrantCache(GrantCache):
    """Process-local cache with a TTL and LRU eviction."""

    def __init__(self, ttl_seconds: float = 60.0, max_entries: int = 10000) -> None:
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._entries: OrderedDict[tuple[str, str], tuple[float, list[Grant]]] = OrderedDict()

    async def get(self, app_id: str, user_id: str) -> list[Grant] | None:
        key = (app_id, user_id)
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, grants = entry
        if expires_at <= time.monotonic():
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return grants

    async def set(self, app_id: str, user_id: str, grants: list[Grant]) -> None:
        key = (app_id, user_id)
        self._entries[key] = (time.monotonic() + self._ttl, grants)
        self._entries.move_to_end(key)
        while len(self._entries) > self._max_entries:
            self._entries.popitem(last=False)

    async def invalidate(self, app_id: str) -> None:
        for key in [k for k in self._entries if k[0] == app_id]:
            del self._entries[key]


class RedisGrantCache(GrantCache):
    """Redis-backed grant cache shared across gateway processes.

    Key format:
        {prefix}:grants:{app_id}:{user_id} - JSON list of grants
        {prefix}:grants:{app_id}:keys      - set of entry keys for invalidation
    """

    def __init__(self, redis: Redis, key_prefix: str = "toolgate", ttl_seconds: int = 60):
        self._redis = redis
        self._prefix = key_prefix
        self._ttl = ttl_seconds

    def _entry_key(self, app_id: str, user_id: str) -> str:
        return f"{self._prefix}:grants:{app_id}:{user_id}"

    def _index_key(self, app_id: str) -> str:
        return f"{self._prefix}:grants:{app_id}:keys"

    async def get(self, app_id: str, user_id: str) -> list[Grant] | None:
        value = await self._redis.get(self._entry_key(app_id, user_id))
        if value is None:
            return None
        raw = value.decode() if isinstance(value, bytes) else value
        try:
            return [Grant.model_validate(item) for item in json.loads(raw)]
        except (json.JSONDecodeError, ValueError):
            logger.warning("grant_cache_corrupted_value", app_id=app_id, user_id=user_id)
            return None

    async def set(self, app_id: str, user_id: str, grants: list[Grant]) -> None:
        entry_key = self._entry_key(app_id, user_id)
        payload = json.dumps([g.model_dump(mode="json") for g in grants])
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.set(entry_key, payload, ex=self._ttl)
            pipe.sadd(self._index_key(app_id), entry_key)
            pipe.expire(self._index_key(app_id), self._ttl)
            await pipe.execute()

    async def invalidate(self, app_id: str) -> None:
        index_key = self._index_key(app_id)
        members = await self._redis.smembers(index_key)
        keys = [m.decode() if isinstance(m, bytes) else m for m in members]
        await self._redis.delete(index_key, *keys)
        logger.debug("grant_cache_invalidated", app_id=app_id, entries=len(keys))
