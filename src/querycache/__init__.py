"""querycache: read-through caching of idempotent queries with
record-level and object-level invalidation.
"""

from querycache.cache import CallOptions, MemoryCacheStore, QueryCache, RedisCacheStore
from querycache.config import InvalidationStrategy, Settings
from querycache.events import ChangeEvent, ChangeNotificationIngester, LocalChangeNotifier

__version__ = "0.1.0"

__all__ = [
    "CallOptions",
    "ChangeEvent",
    "ChangeNotificationIngester",
    "InvalidationStrategy",
    "LocalChangeNotifier",
    "MemoryCacheStore",
    "QueryCache",
    "RedisCacheStore",
    "Settings",
]
