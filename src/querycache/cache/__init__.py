"""Query result cache for querycache.

Provides read-through caching of idempotent queries:
- Query fingerprints as cache keys, TTL and tags resolved per call
- Record index mapping changed records to the entries containing them
- Object-level and record-level invalidation
- Pluggable stores (in-memory, Redis)
"""

from querycache.cache.factory import create_store
from querycache.cache.invalidation import (
    InvalidationEngine,
    InvalidationOutcome,
    InvalidationType,
)
from querycache.cache.keys import CacheKeys
from querycache.cache.policy import CachePolicy, CallOptions, PolicyResolver
from querycache.cache.query_cache import QueryCache
from querycache.cache.record_index import RecordIndex
from querycache.cache.redis import RedisCacheStore, close_redis, get_redis
from querycache.cache.statistics import StatisticsTracker
from querycache.cache.store import CacheStore, MemoryCacheStore

__all__ = [
    # Core cache
    "CacheKeys",
    "CachePolicy",
    "CallOptions",
    "PolicyResolver",
    "QueryCache",
    "RecordIndex",
    "StatisticsTracker",
    # Stores
    "CacheStore",
    "MemoryCacheStore",
    "RedisCacheStore",
    "create_store",
    "get_redis",
    "close_redis",
    # Invalidation
    "InvalidationEngine",
    "InvalidationOutcome",
    "InvalidationType",
]
