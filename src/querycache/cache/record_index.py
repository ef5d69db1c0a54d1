"""Reverse index from (entity, record id) to the cache keys that contain it.

Buckets live in the same store as the cached results, under their own key
namespace. A bucket is rewritten with the TTL of the entry that was just
cached (or its own remaining lifetime, if longer), so it expires on its own
once the longest-lived entry it references has expired.

Bucket value: {"keys": [cache_key, ...], "expires_at": unix_timestamp}
"""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from querycache.cache.keys import CacheKeys
from querycache.cache.store import CacheStore

logger = logging.getLogger(__name__)


class RecordIndex:
    """Tracks which cached query results contain which records."""

    def __init__(
        self,
        store: CacheStore,
        keys: CacheKeys,
        id_field: str = "Id",
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.keys = keys
        self.id_field = id_field
        self._clock = clock

    def record_ids_in(self, result: Any) -> list[str]:
        """Unique record ids found in a result set, in first-seen order.

        Rows are mappings or objects exposing the id field; rows without an
        id are skipped. Anything that isn't a sequence of rows yields nothing.
        """
        if not isinstance(result, Iterable) or isinstance(result, (str, bytes, Mapping)):
            return []

        ids: dict[str, None] = {}
        for row in result:
            if isinstance(row, Mapping):
                record_id = row.get(self.id_field)
            else:
                record_id = getattr(row, self.id_field, None)
            if record_id:
                ids[str(record_id)] = None
        return list(ids)

    async def track(
        self,
        entity: str,
        record_ids: Iterable[str],
        cache_key: str,
        ttl: int,
    ) -> int:
        """Add cache_key to the bucket of every record id.

        Returns the number of buckets written.
        """
        written = 0
        now = self._clock()
        for record_id in record_ids:
            bucket_key = self.keys.record(entity, record_id)
            bucket = await self.store.get(bucket_key, None) or {}
            cache_keys = list(bucket.get("keys", []))
            if cache_key not in cache_keys:
                cache_keys.append(cache_key)

            # Never shorten the bucket below an entry it already tracks
            bucket_ttl = max(ttl, math.ceil(bucket.get("expires_at", 0) - now))
            await self.store.put(
                bucket_key,
                {"keys": cache_keys, "expires_at": now + bucket_ttl},
                bucket_ttl,
            )
            written += 1

        if written:
            logger.debug(
                "Tracked record ids for cache key",
                extra={"cache_key": cache_key, "entity": entity, "record_count": written},
            )
        return written

    async def keys_for(self, entity: str, record_id: str) -> set[str]:
        """Cache keys whose results contained the record (empty if none)."""
        bucket = await self.store.get(self.keys.record(entity, record_id), None) or {}
        return set(bucket.get("keys", []))

    async def forget(self, entity: str, record_id: str) -> None:
        await self.store.forget(self.keys.record(entity, record_id))
