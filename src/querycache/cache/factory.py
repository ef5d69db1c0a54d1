"""Factory for creating cache stores based on configuration.

Supported drivers:
- memory: In-process store with tag support (default)
- memory_untagged: In-process store without tag support
- redis: Redis-backed store with tag sets
"""

from __future__ import annotations

import logging

from querycache.cache.redis import RedisCacheStore, get_redis
from querycache.cache.store import CacheStore, MemoryCacheStore
from querycache.config import CacheDriver, Settings

logger = logging.getLogger(__name__)


async def create_store(settings: Settings) -> CacheStore:
    """Create the cache store selected by ``settings.cache_driver``.

    Raises:
        ValueError: If the driver is unknown
    """
    driver = settings.cache_driver

    if driver == CacheDriver.MEMORY:
        store: CacheStore = MemoryCacheStore()
    elif driver == CacheDriver.MEMORY_UNTAGGED:
        store = MemoryCacheStore(supports_tags=False)
    elif driver == CacheDriver.REDIS:
        client = await get_redis(settings.redis_url)
        store = RedisCacheStore(client, prefix=settings.key_prefix)
    else:
        raise ValueError(f"Unknown cache driver: {driver}")

    logger.info(
        "Created cache store",
        extra={"driver": driver.value, "supports_tags": store.supports_tags},
    )
    return store
