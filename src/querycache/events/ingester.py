"""Change notification ingestion.

Both sources of change (local writes and external CDC notifications) end up
as a ChangeEvent submitted to ChangeNotificationIngester.ingest. The
persistence layer reports local writes through LocalChangeNotifier after a
successful write; the webhook builds events with parse_change_payload.

Created records always trigger an object-level flush: a new record cannot
be matched against result sets cached before it existed, so record-level
invalidation would leave stale lists behind.
"""

from __future__ import annotations

import logging

from querycache.cache.invalidation import (
    InvalidationEngine,
    InvalidationOutcome,
    InvalidationType,
)
from querycache.config import Settings
from querycache.events.schemas import ChangeEvent, ChangeKind, ChangeOrigin

logger = logging.getLogger(__name__)


class ChangeNotificationIngester:
    """Turns change events into cache invalidations."""

    def __init__(self, engine: InvalidationEngine, settings: Settings):
        self.engine = engine
        self.auto_invalidate_local = settings.auto_invalidate_on_local_changes

    async def ingest(self, event: ChangeEvent) -> InvalidationOutcome:
        if event.origin == ChangeOrigin.LOCAL and not self.auto_invalidate_local:
            return InvalidationOutcome(event.entity, InvalidationType.SKIPPED, event.record_ids)

        if event.kind == ChangeKind.CREATED:
            removed = await self.engine.flush_object(event.entity)
            outcome = InvalidationOutcome(
                event.entity, InvalidationType.OBJECT, event.record_ids, removed
            )
        else:
            outcome = await self.engine.invalidate(event.entity, event.record_ids)

        logger.info(
            "Cache invalidated for change event",
            extra={
                "event_id": event.event_id,
                "entity": event.entity,
                "change_kind": event.kind.value,
                "origin": event.origin.value,
                "record_ids": list(event.record_ids),
                "record_count": len(event.record_ids),
                "invalidation_type": outcome.invalidation_type.value,
                "strategy": self.engine.strategy.value,
            },
        )
        return outcome


class LocalChangeNotifier:
    """Hooks the persistence layer calls after a successful write.

    Usage:
        notifier = LocalChangeNotifier(ingester)

        record = await api.update("Account", record_id, fields)
        await notifier.updated("Account", record_id)
    """

    def __init__(self, ingester: ChangeNotificationIngester):
        self.ingester = ingester

    async def _notify(
        self, entity: str, kind: ChangeKind, record_id: str | None
    ) -> InvalidationOutcome:
        record_ids = (record_id,) if record_id else ()
        return await self.ingester.ingest(
            ChangeEvent(entity=entity, kind=kind, record_ids=record_ids, origin=ChangeOrigin.LOCAL)
        )

    async def created(self, entity: str, record_id: str | None = None) -> InvalidationOutcome:
        return await self._notify(entity, ChangeKind.CREATED, record_id)

    async def updated(self, entity: str, record_id: str | None = None) -> InvalidationOutcome:
        return await self._notify(entity, ChangeKind.UPDATED, record_id)

    async def deleted(self, entity: str, record_id: str | None = None) -> InvalidationOutcome:
        return await self._notify(entity, ChangeKind.DELETED, record_id)

    async def restored(self, entity: str, record_id: str | None = None) -> InvalidationOutcome:
        return await self._notify(entity, ChangeKind.RESTORED, record_id)

    async def force_deleted(
        self, entity: str, record_id: str | None = None
    ) -> InvalidationOutcome:
        """Hard delete; invalidates exactly like a soft delete."""
        return await self._notify(entity, ChangeKind.DELETED, record_id)
