"""Hit/miss statistics for the query cache.

Counters live in the cache store itself so every process sharing the store
contributes to the same totals. They are observability-only: hit/miss
accounting races with concurrent population and is approximate.
"""

from __future__ import annotations

import logging
from typing import Any

from querycache.cache.keys import CacheKeys
from querycache.cache.store import CacheStore
from querycache.config import Settings
from querycache.observability.metrics import MetricsRegistry, get_metrics

logger = logging.getLogger(__name__)

# Only a prefix of the query text goes to the logs
QUERY_LOG_LENGTH = 100


class StatisticsTracker:
    """Counts cache hits and misses when analytics are enabled."""

    def __init__(
        self,
        store: CacheStore,
        settings: Settings,
        keys: CacheKeys | None = None,
        metrics: MetricsRegistry | None = None,
    ):
        self.store = store
        self.enabled = settings.analytics_enabled
        self.keys = keys or CacheKeys(settings.key_prefix)
        self.metrics = metrics or get_metrics(settings.enable_metrics)

    async def record_hit(self, query: str, entity: str | None = None) -> None:
        self.metrics.cache_hits_total.labels(entity=entity or "unknown").inc()
        if not self.enabled:
            return

        await self.store.increment(self.keys.stats("hits"))
        logger.debug("Query cache hit", extra={"query": query[:QUERY_LOG_LENGTH]})

    async def record_miss(self, query: str, entity: str | None = None) -> None:
        self.metrics.cache_misses_total.labels(entity=entity or "unknown").inc()
        if not self.enabled:
            return

        await self.store.increment(self.keys.stats("misses"))
        logger.debug("Query cache miss", extra={"query": query[:QUERY_LOG_LENGTH]})

    async def get_statistics(self) -> dict[str, Any]:
        """Return hit/miss totals and hit rate."""
        if not self.enabled:
            return {
                "enabled": False,
                "message": "Cache analytics not enabled. Set QUERYCACHE_ANALYTICS_ENABLED=true.",
            }

        hits = int(await self.store.get(self.keys.stats("hits"), 0) or 0)
        misses = int(await self.store.get(self.keys.stats("misses"), 0) or 0)
        total = hits + misses
        hit_rate = round(hits / total * 100, 2) if total > 0 else 0

        return {
            "enabled": True,
            "hits": hits,
            "misses": misses,
            "total": total,
            "hit_rate_percentage": hit_rate,
        }

    async def reset(self) -> None:
        await self.store.forget(self.keys.stats("hits"))
        await self.store.forget(self.keys.stats("misses"))
