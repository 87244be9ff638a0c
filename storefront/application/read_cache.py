"""Read-through cache for order and product queries.

Entries are stored under ``<prefix><region>:<generation>:<key>`` as JSON
produced by a pydantic ``TypeAdapter``. Each region has a generation counter
kept under ``<prefix>gen:<region>``. Mutating use cases call
:meth:`ReadCache.invalidate` after their commit; it bumps the counter and
then drops the region's entries. A reader resolves the generation before
loading and stores its result under that generation, so a load that raced
with an invalidation lands on a key no later reader looks up. ``None``
results are never stored.
"""

import logging
from typing import Awaitable, Callable, Optional, TypeVar

from pydantic import TypeAdapter

from storefront.application.interfaces import CacheBackend

logger = logging.getLogger(__name__)

T = TypeVar("T")

ORDERS = "orders"
USER_ORDERS = "user_orders"
PRODUCTS = "products"

DEFAULT_TTL_SECONDS = 60 * 60


class ReadCache:
    def __init__(self, backend: CacheBackend, prefix: str = "storefront:", ttl_seconds: int = DEFAULT_TTL_SECONDS):
        self._backend = backend
        self._prefix = prefix
        self._ttl = ttl_seconds

    def _generation_key(self, region: str) -> str:
        return f"{self._prefix}gen:{region}"

    async def get_or_load(
        self,
        region: str,
        key: str,
        loader: Callable[[], Awaitable[Optional[T]]],
        adapter: TypeAdapter,
    ) -> Optional[T]:
        generation = await self._backend.get_counter(self._generation_key(region))
        full_key = f"{self._prefix}{region}:{generation}:{key}"
        raw = await self._backend.get(full_key)
        if raw is not None:
            logger.debug(f"Cache hit: {full_key}")
            return adapter.validate_json(raw)

        logger.debug(f"Cache miss: {full_key}")
        value = await loader()
        if value is None:
            return None
        await self._backend.set(full_key, adapter.dump_json(value).decode(), self._ttl)
        if await self._backend.get_counter(self._generation_key(region)) != generation:
            # Region was flushed while loading; the entry is unreachable, drop it now
            await self._backend.delete(full_key)
        return value

    async def invalidate(self, *regions: str) -> None:
        for region in regions:
            generation = await self._backend.incr_counter(self._generation_key(region))
            deleted = await self._backend.delete_prefix(f"{self._prefix}{region}:")
            logger.info(f"Cache region '{region}' flushed ({deleted} entries, generation {generation})")

    async def clear(self) -> None:
        """Drops every entry under the prefix. Meant for startup, before any reader runs."""
        deleted = await self._backend.delete_prefix(self._prefix)
        logger.info(f"Cache cleared ({deleted} entries)")
