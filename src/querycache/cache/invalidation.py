"""Cache invalidation for querycache.

Two granularities are supported:

- Object level: flush every entry tagged for an entity. Requires a store with
  tag support. Without it the flush is skipped with a warning rather than
  escalated to wiping unrelated entries.
- Record level: look up the record index for each changed record and forget
  exactly the entries that contained it.

Invalidation is idempotent: invalidating the same record twice, or a record
nothing references, is a no-op.

Example:
    engine = InvalidationEngine(store, settings)

    # A record of Account changed
    outcome = await engine.invalidate("Account", ["001xx1"])
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum

from querycache.cache.keys import CacheKeys
from querycache.cache.record_index import RecordIndex
from querycache.cache.store import CacheStore
from querycache.config import InvalidationStrategy, Settings
from querycache.errors import StoreCapabilityGap
from querycache.observability.metrics import MetricsRegistry, get_metrics

logger = logging.getLogger(__name__)


class InvalidationType(str, Enum):
    """Granularity an invalidation was performed at."""

    RECORD = "record-level"
    OBJECT = "object-level"
    SKIPPED = "skipped"


@dataclass(frozen=True, slots=True)
class InvalidationOutcome:
    """What an invalidation did."""

    entity: str
    invalidation_type: InvalidationType
    record_ids: tuple[str, ...] = field(default_factory=tuple)
    keys_invalidated: int = 0

    def to_dict(self) -> dict[str, object]:
        return {
            "entity": self.entity,
            "invalidation_type": self.invalidation_type.value,
            "records_affected": len(self.record_ids),
            "keys_invalidated": self.keys_invalidated,
        }


class InvalidationEngine:
    """Removes stale query results from the cache store."""

    def __init__(
        self,
        store: CacheStore,
        settings: Settings,
        keys: CacheKeys | None = None,
        record_index: RecordIndex | None = None,
        metrics: MetricsRegistry | None = None,
    ):
        self.store = store
        self.keys = keys or CacheKeys(settings.key_prefix)
        self.record_index = record_index or RecordIndex(
            store, self.keys, id_field=settings.record_id_field
        )
        self.strategy = settings.invalidation_strategy
        self.allow_full_flush = settings.allow_full_flush
        self.verbose = settings.analytics_enabled
        self.metrics = metrics or get_metrics(settings.enable_metrics)

    async def flush_object(self, entities: str | Iterable[str]) -> int:
        """Flush every cached query for one or more entities.

        Returns the number of entries removed (0 when the store has no tag
        support, in which case nothing is flushed).
        """
        if isinstance(entities, str):
            entities = [entities]

        if not self.store.supports_tags:
            gap = StoreCapabilityGap("flush object cache")
            logger.warning(
                f"{gap}. Use a cache driver with tag support for object-level invalidation.",
                extra={"entities": list(entities)},
            )
            return 0

        removed = 0
        for entity in entities:
            removed += await self.store.flush_tags([self.keys.object_tag(entity)])
            self.metrics.invalidations_total.labels(
                invalidation_type=InvalidationType.OBJECT.value
            ).inc()
            if self.verbose:
                logger.info(f"Flushed query cache for object: {entity}")
        return removed

    async def invalidate_by_record_ids(self, entity: str, record_ids: Sequence[str]) -> int:
        """Forget every cached query known to contain any of the records.

        Each distinct cache key is forgotten once per call, and the record
        buckets themselves are removed. Returns the number of cache keys
        invalidated.
        """
        if not record_ids:
            return 0

        invalidated: set[str] = set()
        for record_id in record_ids:
            cache_keys = await self.record_index.keys_for(entity, record_id)
            if not cache_keys:
                continue

            for cache_key in cache_keys - invalidated:
                await self.store.forget(cache_key)
                invalidated.add(cache_key)

            await self.record_index.forget(entity, record_id)

        if invalidated:
            self.metrics.invalidations_total.labels(
                invalidation_type=InvalidationType.RECORD.value
            ).inc()
            if self.verbose:
                logger.info(
                    "Invalidated cache by record ids",
                    extra={
                        "entity": entity,
                        "record_ids": list(record_ids),
                        "cache_keys_invalidated": len(invalidated),
                    },
                )
        return len(invalidated)

    async def flush_all(self) -> int:
        """Flush every cached query.

        Without tag support the whole store is flushed, but only when the
        operator enabled ``allow_full_flush``; otherwise the flush is skipped.
        Returns the number of entries removed, or -1 after a full-store flush
        (the count is unknown).
        """
        if self.store.supports_tags:
            removed = await self.store.flush_tags([self.keys.global_tag])
            logger.info("Flushed all cached queries", extra={"removed": removed})
            return removed

        if not self.allow_full_flush:
            logger.warning(
                "Cache store does not support tags; skipping flush of all cached queries. "
                "Set QUERYCACHE_ALLOW_FULL_FLUSH=true to flush the entire store instead."
            )
            return 0

        logger.warning(
            "Flushing ENTIRE cache store: driver has no tag support and full flush is allowed. "
            "Entries unrelated to query caching are removed as well."
        )
        await self.store.flush()
        return -1

    async def invalidate(self, entity: str, record_ids: Sequence[str] = ()) -> InvalidationOutcome:
        """Invalidate according to the configured strategy.

        The record strategy is used when at least one record id is known;
        everything else falls back to an object-level flush.
        """
        record_ids = tuple(record_ids)
        if self.strategy == InvalidationStrategy.RECORD and record_ids:
            count = await self.invalidate_by_record_ids(entity, record_ids)
            return InvalidationOutcome(entity, InvalidationType.RECORD, record_ids, count)

        count = await self.flush_object(entity)
        return InvalidationOutcome(entity, InvalidationType.OBJECT, record_ids, count)
