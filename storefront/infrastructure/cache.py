"""Key/value backends for the read cache.

``RedisCacheBackend`` is the production backend; ``InMemoryCacheBackend``
keeps everything in a dict of the current process and is used for local
runs and tests. Both expire entries after the TTL given on ``set``.
"""

import logging
import time
from typing import Callable, Dict, Optional, Tuple

import redis.asyncio as aioredis

from storefront.application.interfaces import CacheBackend

logger = logging.getLogger(__name__)


class RedisCacheBackend(CacheBackend):
    def __init__(self, redis_url: str):
        self._url = redis_url
        self._redis: Optional[aioredis.Redis] = None

    async def connect(self) -> None:
        if self._redis is not None:
            return
        self._redis = aioredis.from_url(self._url, decode_responses=True, max_connections=20)
        await self._redis.ping()
        logger.info(f"Redis connected: {self._url.split('@')[-1]}")

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
            logger.info("Redis connection closed")

    @property
    def redis(self) -> aioredis.Redis:
        if self._redis is None:
            raise RuntimeError("RedisCacheBackend not connected. Call connect() first.")
        return self._redis

    async def get(self, key: str) -> Optional[str]:
        return await self.redis.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self.redis.set(key, value, ex=ttl_seconds)

    async def delete(self, key: str) -> None:
        await self.redis.delete(key)

    async def delete_prefix(self, prefix: str) -> int:
        deleted = 0
        async for key in self.redis.scan_iter(match=f"{prefix}*", count=100):
            deleted += await self.redis.delete(key)
        return deleted

    async def get_counter(self, key: str) -> int:
        value = await self.redis.get(key)
        return int(value) if value is not None else 0

    async def incr_counter(self, key: str) -> int:
        return await self.redis.incr(key)


class InMemoryCacheBackend(CacheBackend):
    """Process-local backend. Safe within a single event loop.

    Counters live apart from entries: they never expire and are not
    removed by ``delete_prefix``.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: Dict[str, Tuple[float, str]] = {}
        self._counters: Dict[str, int] = {}

    async def connect(self) -> None:
        pass

    async def close(self) -> None:
        self._entries.clear()

    async def get(self, key: str) -> Optional[str]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if expires_at <= self._clock():
            del self._entries[key]
            return None
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._entries[key] = (self._clock() + ttl_seconds, value)

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def delete_prefix(self, prefix: str) -> int:
        keys = [key for key in self._entries if key.startswith(prefix)]
        for key in keys:
            del self._entries[key]
        return len(keys)

    async def get_counter(self, key: str) -> int:
        return self._counters.get(key, 0)

    async def incr_counter(self, key: str) -> int:
        self._counters[key] = self._counters.get(key, 0) + 1
        return self._counters[key]

    def __len__(self) -> int:
        return len(self._entries)
