"""Read-through query result cache.

QueryCache is the entry point the query layer uses:

    cache = QueryCache(store, settings)
    rows = await cache.remember(
        "SELECT Id, Name FROM Account WHERE Industry = 'Tech'",
        lambda: api.query(soql),
    )

On a miss the producer runs, the result is stored under the query
fingerprint with the resolved TTL and tags, and every record id in the
result is added to the record index. Producer exceptions propagate and
nothing is cached for a failed call.

Concurrent misses for the same key may both run the producer unless the
store provides single-flight in ``remember``; the later write wins, which is
safe because producers are idempotent reads.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from querycache.cache.invalidation import InvalidationEngine
from querycache.cache.keys import CacheKeys
from querycache.cache.policy import CachePolicy, CallOptions, PolicyResolver
from querycache.cache.record_index import RecordIndex
from querycache.cache.statistics import StatisticsTracker
from querycache.cache.store import CacheStore, Producer
from querycache.config import InvalidationStrategy, Settings

logger = logging.getLogger(__name__)


class QueryCache:
    """Caches idempotent query results and keeps them invalidatable."""

    def __init__(
        self,
        store: CacheStore,
        settings: Settings,
        statistics: StatisticsTracker | None = None,
    ):
        self.store = store
        self.settings = settings
        self.keys = CacheKeys(settings.key_prefix)
        self.policy = PolicyResolver(settings, self.keys)
        self.record_index = RecordIndex(store, self.keys, id_field=settings.record_id_field)
        self.invalidation = InvalidationEngine(
            store, settings, keys=self.keys, record_index=self.record_index
        )
        self.statistics = statistics or StatisticsTracker(store, settings, keys=self.keys)

    @property
    def enabled(self) -> bool:
        return self.settings.cache_enabled

    @property
    def invalidation_strategy(self) -> InvalidationStrategy:
        return self.settings.invalidation_strategy

    async def remember(
        self,
        query: str,
        producer: Producer,
        options: CallOptions | None = None,
    ) -> Any:
        """Return the cached result for query, or run producer and cache it."""
        options = options or CallOptions()

        if not self.enabled or options.skip_cache:
            return await producer()

        policy = self.policy.resolve(query, options)
        if policy.bypass_cache:
            return await producer()

        cache_key = self.keys.query(query)
        tags = policy.tags if self.store.supports_tags else ()

        if options.refresh_cache:
            result = await producer()
            await self.store.put(cache_key, result, policy.ttl, tags)
            await self._track_records(cache_key, result, policy)
            await self.statistics.record_miss(query, policy.entity)
            return result

        # Checked before remember so hits can be told apart from misses
        existed = await self.store.has(cache_key)

        async def compute() -> Any:
            await self.statistics.record_miss(query, policy.entity)
            result = await producer()
            await self._track_records(cache_key, result, policy)
            return result

        cached = await self.store.remember(cache_key, policy.ttl, compute, tags)

        if existed:
            await self.statistics.record_hit(query, policy.entity)

        return cached

    async def put(self, key: str, value: Any, ttl: int, tags: Iterable[str] = ()) -> None:
        """Store a value directly, tagged when the store supports it."""
        await self.store.put(key, value, ttl, tags if self.store.supports_tags else ())

    async def forget(self, query: str) -> bool:
        """Drop the cached result of a single query."""
        return await self.store.forget(self.keys.query(query))

    async def flush_object(self, entities: str | Iterable[str]) -> int:
        return await self.invalidation.flush_object(entities)

    async def flush_all(self) -> int:
        return await self.invalidation.flush_all()

    async def invalidate_by_record_ids(self, entity: str, record_ids: list[str]) -> int:
        return await self.invalidation.invalidate_by_record_ids(entity, record_ids)

    async def _track_records(self, cache_key: str, result: Any, policy: CachePolicy) -> None:
        # The object strategy never consults the index, so don't build it
        if self.invalidation_strategy != InvalidationStrategy.RECORD:
            return
        if not policy.entity:
            return

        record_ids = self.record_index.record_ids_in(result)
        if record_ids:
            await self.record_index.track(policy.entity, record_ids, cache_key, policy.ttl)
