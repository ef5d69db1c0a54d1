"""Redis cache store for querycache.

Values are stored as orjson-encoded bytes. Tag membership is kept in Redis
sets ({prefix}tagset:{tag}) whose expiry is extended to cover the
longest-lived member, so tag sets clean themselves up once every member has
expired. Uses the redis-py async client for connection pooling.
"""

from __future__ import annotations

from collections.abc import Awaitable, Iterable
from typing import TYPE_CHECKING, Any, cast

import orjson
import redis.asyncio as redis

from querycache.cache.keys import DEFAULT_PREFIX
from querycache.cache.store import CacheStore

if TYPE_CHECKING:
    from redis.asyncio import Redis

# Module-level connection pool
_redis_client: Redis | None = None


async def get_redis(url: str) -> Redis:
    """Get or create the Redis client.

    Uses connection pooling for efficient connection management.
    """
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(  # type: ignore[no-untyped-call]
            url,
            encoding="utf-8",
            decode_responses=False,  # We're storing bytes
        )
    return _redis_client


async def close_redis() -> None:
    """Close Redis connections."""
    global _redis_client
    if _redis_client is not None:
        await _redis_client.close()
        _redis_client = None


class RedisCacheStore(CacheStore):
    """Tag-aware cache store backed by Redis."""

    supports_tags = True

    def __init__(self, client: Redis, prefix: str = DEFAULT_PREFIX):
        self.client = client
        self.prefix = prefix

    def _tag_set(self, tag: str) -> str:
        return f"{self.prefix}tagset:{tag}"

    async def has(self, key: str) -> bool:
        return bool(await self.client.exists(key))

    async def get(self, key: str, default: Any = None) -> Any:
        raw = await self.client.get(key)
        if raw is None:
            return default
        return orjson.loads(raw)

    async def put(self, key: str, value: Any, ttl: int, tags: Iterable[str] = ()) -> None:
        tags = list(tags)
        async with self.client.pipeline() as pipe:
            pipe.setex(key, ttl, orjson.dumps(value))
            for tag in tags:
                pipe.sadd(self._tag_set(tag), key)
                pipe.ttl(self._tag_set(tag))
            results = await pipe.execute()

        # Every tag contributed an SADD result followed by a TTL result
        remaining = results[2::2]
        stale = [
            self._tag_set(tag)
            for tag, current in zip(tags, remaining)
            if current is None or current < ttl
        ]
        if stale:
            async with self.client.pipeline() as pipe:
                for tag_set in stale:
                    pipe.expire(tag_set, ttl)
                await pipe.execute()

    async def forget(self, key: str) -> bool:
        return bool(await self.client.delete(key))

    async def increment(self, key: str, amount: int = 1) -> int:
        return cast(int, await self.client.incrby(key, amount))

    async def flush_tags(self, tags: Iterable[str]) -> int:
        removed = 0
        for tag in tags:
            tag_set = self._tag_set(tag)
            members = await self.client.smembers(tag_set)
            if members:
                removed += cast(int, await self.client.delete(*members))
            await self.client.delete(tag_set)
        return removed

    async def flush(self) -> None:
        """Delete every key under this store's prefix.

        Uses SCAN to avoid blocking on large keyspaces.
        """
        async for key in self.client.scan_iter(match=f"{self.prefix}*"):
            await self.client.delete(key)

    async def health_check(self) -> bool:
        """Check Redis connectivity."""
        try:
            await cast(Awaitable[bool], self.client.ping())
            return True
        except Exception:
            return False
