"""Cache store capability.

The engine talks to its backing store only through CacheStore. Whether a
store can group keys under tags is a capability fixed when the store is
constructed (``supports_tags``); callers check the flag instead of probing
for methods at call time.

MemoryCacheStore is the in-process implementation used for single-instance
deployments and tests. RedisCacheStore (querycache.cache.redis) is the
distributed one.
"""

from __future__ import annotations

import asyncio
import copy
import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Iterable
from typing import Any

from querycache.errors import StoreCapabilityGap

Producer = Callable[[], Awaitable[Any]]

_MISSING = object()


class CacheStore(ABC):
    """Key-value store with TTL and optional tag grouping."""

    supports_tags: bool = False

    @abstractmethod
    async def has(self, key: str) -> bool:
        """Whether an unexpired entry exists for key."""

    @abstractmethod
    async def get(self, key: str, default: Any = None) -> Any:
        """Return the cached value or default."""

    @abstractmethod
    async def put(self, key: str, value: Any, ttl: int, tags: Iterable[str] = ()) -> None:
        """Store value for ttl seconds, overwriting any existing entry.

        Tags are ignored by stores without tag support.
        """

    @abstractmethod
    async def forget(self, key: str) -> bool:
        """Remove an entry. Returns True if something was removed."""

    @abstractmethod
    async def increment(self, key: str, amount: int = 1) -> int:
        """Atomically add amount to an integer counter and return the new value."""

    @abstractmethod
    async def flush(self) -> None:
        """Remove every entry owned by this store."""

    async def flush_tags(self, tags: Iterable[str]) -> int:
        """Remove every entry carrying any of the tags.

        Returns the number of entries removed.

        Raises:
            StoreCapabilityGap: if the store has no tag support
        """
        raise StoreCapabilityGap("flush by tag")

    async def remember(
        self,
        key: str,
        ttl: int,
        producer: Producer,
        tags: Iterable[str] = (),
    ) -> Any:
        """Return the cached value, or compute, store and return it.

        The base implementation is get-then-put; concurrent callers may both
        run the producer. Nothing is stored if the producer raises.
        """
        cached = await self.get(key, _MISSING)
        if cached is not _MISSING:
            return cached

        value = await producer()
        await self.put(key, value, ttl, tags)
        return value

    async def health_check(self) -> bool:
        return True


class MemoryCacheStore(CacheStore):
    """In-process cache store.

    Values are deep-copied on the way in and out so callers cannot mutate
    cached results. ``remember`` holds a per-key asyncio.Lock while the
    producer runs, giving single-flight behaviour within one event loop.

    Tag membership is tracked in both directions. A key leaves its tag sets
    when it is forgotten, overwritten, flushed or found expired, and empty
    tag sets are dropped.

    Args:
        supports_tags: Set False to model a driver without tag support.
        clock: Monotonic time source in seconds (injectable for tests).
    """

    def __init__(
        self,
        supports_tags: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.supports_tags = supports_tags
        self._clock = clock
        self._entries: dict[str, tuple[Any, float]] = {}
        self._tags: dict[str, set[str]] = {}
        self._key_tags: dict[str, set[str]] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    def _live(self, key: str) -> tuple[Any, float] | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry[1] <= self._clock():
            self._drop(key)
            return None
        return entry

    def _drop(self, key: str) -> bool:
        """Remove an entry and detach it from its tags."""
        for tag in self._key_tags.pop(key, set()):
            members = self._tags.get(tag)
            if members is None:
                continue
            members.discard(key)
            if not members:
                del self._tags[tag]
        return self._entries.pop(key, None) is not None

    async def has(self, key: str) -> bool:
        return self._live(key) is not None

    async def get(self, key: str, default: Any = None) -> Any:
        entry = self._live(key)
        if entry is None:
            return default
        return copy.deepcopy(entry[0])

    async def put(self, key: str, value: Any, ttl: int, tags: Iterable[str] = ()) -> None:
        # An overwrite carries only the new tags
        self._drop(key)
        self._entries[key] = (copy.deepcopy(value), self._clock() + ttl)
        if self.supports_tags:
            key_tags = set(tags)
            for tag in key_tags:
                self._tags.setdefault(tag, set()).add(key)
            if key_tags:
                self._key_tags[key] = key_tags

    async def forget(self, key: str) -> bool:
        return self._drop(key)

    async def increment(self, key: str, amount: int = 1) -> int:
        entry = self._live(key)
        if entry is None:
            # Counters never expire on their own
            value, expires_at = 0, float("inf")
        else:
            value, expires_at = entry
        value = int(value) + amount
        self._entries[key] = (value, expires_at)
        return value

    async def flush(self) -> None:
        self._entries.clear()
        self._tags.clear()
        self._key_tags.clear()

    async def flush_tags(self, tags: Iterable[str]) -> int:
        if not self.supports_tags:
            raise StoreCapabilityGap("flush by tag")

        removed = 0
        for tag in tags:
            for key in list(self._tags.get(tag, ())):
                if self._live(key) is not None and self._drop(key):
                    removed += 1
        return removed

    def tag_members(self, tag: str) -> set[str]:
        """Keys currently grouped under tag."""
        return set(self._tags.get(tag, ()))

    async def remember(
        self,
        key: str,
        ttl: int,
        producer: Producer,
        tags: Iterable[str] = (),
    ) -> Any:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                return await super().remember(key, ttl, producer, tags)
        finally:
            self._lock_users[key] -= 1
            if self._lock_users[key] == 0:
                del self._lock_users[key]
                self._locks.pop(key, None)

    def keys(self) -> list[str]:
        """Keys of all unexpired entries, sorted."""
        return sorted(key for key in list(self._entries) if self._live(key) is not None)

    def __len__(self) -> int:
        return len(self.keys())
