"""Tests for cache invalidation."""

import logging
from typing import Any, Callable

import pytest

from querycache.cache.invalidation import (
    InvalidationEngine,
    InvalidationOutcome,
    InvalidationType,
)
from querycache.cache.keys import CacheKeys
from querycache.cache.store import MemoryCacheStore
from querycache.config import InvalidationStrategy, Settings

KEYS = CacheKeys()


async def cache_entry(
    engine: InvalidationEngine, key: str, entity: str | None, record_ids: list[str]
) -> None:
    """Store an entry tagged for entity and index its record ids."""
    tags = [KEYS.global_tag]
    if entity:
        tags.append(KEYS.object_tag(entity))
    await engine.store.put(key, [{"Id": r} for r in record_ids], 3600, tags)
    if entity and record_ids:
        await engine.record_index.track(entity, record_ids, key, 3600)


class TestObjectInvalidation:
    """Test object-level flushes."""

    @pytest.fixture
    def engine(self, store: MemoryCacheStore, settings: Settings) -> InvalidationEngine:
        return InvalidationEngine(store, settings)

    async def test_flush_object(self, engine: InvalidationEngine) -> None:
        """Every entry for the entity is removed, others survive."""
        await cache_entry(engine, "qc:query_1", "Account", ["A"])
        await cache_entry(engine, "qc:query_2", "Account", [])
        await cache_entry(engine, "qc:query_3", "Contact", ["C"])

        removed = await engine.flush_object("Account")

        assert removed == 2
        assert not await engine.store.has("qc:query_1")
        assert not await engine.store.has("qc:query_2")
        assert await engine.store.has("qc:query_3")

    async def test_flush_several_objects(self, engine: InvalidationEngine) -> None:
        """Several entities can be flushed at once."""
        await cache_entry(engine, "qc:query_1", "Account", [])
        await cache_entry(engine, "qc:query_2", "Contact", [])

        assert await engine.flush_object(["Account", "Contact"]) == 2

    async def test_flush_unknown_object(self, engine: InvalidationEngine) -> None:
        """Flushing an entity with nothing cached is a no-op."""
        assert await engine.flush_object("Lead") == 0

    async def test_flush_all(self, engine: InvalidationEngine) -> None:
        """flush_all removes every query, including those without an entity."""
        await cache_entry(engine, "qc:query_1", "Account", [])
        await cache_entry(engine, "qc:query_2", None, [])
        await engine.store.put("unrelated", 1, 3600)

        assert await engine.flush_all() == 2
        assert await engine.store.has("unrelated")


class TestUntaggedStoreInvalidation:
    """Test degradation on a store without tag support."""

    async def test_flush_object_is_skipped(
        self,
        untagged_store: MemoryCacheStore,
        settings: Settings,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """Object flushes are skipped with a warning instead of wiping the store."""
        engine = InvalidationEngine(untagged_store, settings)
        await untagged_store.put("qc:query_1", [], 3600)

        with caplog.at_level(logging.WARNING, logger="querycache.cache.invalidation"):
            removed = await engine.flush_object("Account")

        assert removed == 0
        assert await untagged_store.has("qc:query_1")
        assert "does not support tags" in caplog.text

    async def test_flush_all_skipped_without_permission(
        self, untagged_store: MemoryCacheStore, settings: Settings
    ) -> None:
        """Without allow_full_flush nothing is flushed."""
        engine = InvalidationEngine(untagged_store, settings)
        await untagged_store.put("qc:query_1", [], 3600)

        assert await engine.flush_all() == 0
        assert await untagged_store.has("qc:query_1")

    async def test_flush_all_with_permission(
        self, untagged_store: MemoryCacheStore, make_settings: Callable[..., Settings]
    ) -> None:
        """With allow_full_flush the whole store is flushed."""
        engine = InvalidationEngine(untagged_store, make_settings(allow_full_flush=True))
        await untagged_store.put("qc:query_1", [], 3600)
        await untagged_store.put("unrelated", 1, 3600)

        assert await engine.flush_all() == -1
        assert len(untagged_store) == 0

    async def test_record_invalidation_still_works(
        self, untagged_store: MemoryCacheStore, settings: Settings
    ) -> None:
        """Record-level invalidation needs no tags."""
        engine = InvalidationEngine(untagged_store, settings)
        await cache_entry(engine, "qc:query_1", "Account", ["A"])

        assert await engine.invalidate_by_record_ids("Account", ["A"]) == 1
        assert not await untagged_store.has("qc:query_1")


class TestRecordInvalidation:
    """Test record-level invalidation."""

    @pytest.fixture
    def engine(self, store: MemoryCacheStore, settings: Settings) -> InvalidationEngine:
        return InvalidationEngine(store, settings)

    async def test_only_entries_with_record_removed(self, engine: InvalidationEngine) -> None:
        """Entries that didn't contain the record survive."""
        await cache_entry(engine, "qc:query_1", "Account", ["A", "B"])
        await cache_entry(engine, "qc:query_2", "Account", ["C"])
        await cache_entry(engine, "qc:query_3", "Contact", ["A"])

        assert await engine.invalidate_by_record_ids("Account", ["A"]) == 1

        assert not await engine.store.has("qc:query_1")
        assert await engine.store.has("qc:query_2")
        assert await engine.store.has("qc:query_3")

    async def test_shared_key_counted_once(self, engine: InvalidationEngine) -> None:
        """A key referenced by several changed records is invalidated once."""
        await cache_entry(engine, "qc:query_1", "Account", ["A", "B"])
        assert await engine.invalidate_by_record_ids("Account", ["A", "B"]) == 1

    async def test_bucket_removed(self, engine: InvalidationEngine) -> None:
        """The record bucket is removed after invalidation."""
        await cache_entry(engine, "qc:query_1", "Account", ["A"])
        await engine.invalidate_by_record_ids("Account", ["A"])
        assert await engine.record_index.keys_for("Account", "A") == set()

    async def test_untracked_record_is_noop(self, engine: InvalidationEngine) -> None:
        """Invalidating a record nothing references changes nothing."""
        await cache_entry(engine, "qc:query_1", "Account", ["A"])
        before = engine.store.keys()

        assert await engine.invalidate_by_record_ids("Account", ["Z"]) == 0
        assert engine.store.keys() == before

    async def test_empty_ids_is_noop(self, engine: InvalidationEngine) -> None:
        """No record ids means no work."""
        assert await engine.invalidate_by_record_ids("Account", []) == 0

    async def test_invalidation_is_idempotent(self, engine: InvalidationEngine) -> None:
        """Invalidating the same record twice leaves the same state."""
        await cache_entry(engine, "qc:query_1", "Account", ["A"])
        await cache_entry(engine, "qc:query_2", "Account", ["B"])

        await engine.invalidate_by_record_ids("Account", ["A"])
        after_first = engine.store.keys()
        assert await engine.invalidate_by_record_ids("Account", ["A"]) == 0

        assert engine.store.keys() == after_first


class TestInvalidateStrategy:
    """Test strategy dispatch."""

    async def test_record_strategy_with_ids(
        self, store: MemoryCacheStore, settings: Settings
    ) -> None:
        """Record strategy with ids invalidates at record level."""
        engine = InvalidationEngine(store, settings)
        await cache_entry(engine, "qc:query_1", "Account", ["A"])
        await cache_entry(engine, "qc:query_2", "Account", ["B"])

        outcome = await engine.invalidate("Account", ["A"])

        assert outcome == InvalidationOutcome("Account", InvalidationType.RECORD, ("A",), 1)
        assert await store.has("qc:query_2")

    async def test_record_strategy_without_ids(
        self, store: MemoryCacheStore, settings: Settings
    ) -> None:
        """Record strategy without ids falls back to an object flush."""
        engine = InvalidationEngine(store, settings)
        await cache_entry(engine, "qc:query_1", "Account", ["A"])

        outcome = await engine.invalidate("Account")

        assert outcome.invalidation_type is InvalidationType.OBJECT
        assert not await store.has("qc:query_1")

    async def test_object_strategy(
        self, store: MemoryCacheStore, make_settings: Callable[..., Settings]
    ) -> None:
        """Object strategy flushes the entity even when ids are known."""
        engine = InvalidationEngine(
            store, make_settings(invalidation_strategy=InvalidationStrategy.OBJECT)
        )
        await cache_entry(engine, "qc:query_1", "Account", ["A"])
        await cache_entry(engine, "qc:query_2", "Account", ["B"])

        outcome = await engine.invalidate("Account", ["A"])

        assert outcome.invalidation_type is InvalidationType.OBJECT
        assert outcome.keys_invalidated == 2
        assert not await store.has("qc:query_2")

    def test_outcome_to_dict(self) -> None:
        """Outcomes serialize to the webhook response fields."""
        outcome = InvalidationOutcome("Account", InvalidationType.RECORD, ("A", "B"), 1)
        expected: dict[str, Any] = {
            "entity": "Account",
            "invalidation_type": "record-level",
            "records_affected": 2,
            "keys_invalidated": 1,
        }
        assert outcome.to_dict() == expected
