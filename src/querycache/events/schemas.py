"""Change event schemas for querycache.

A ChangeEvent says that records of an entity changed, either through this
application (local writes) or in the remote system (change-data-capture
notifications). Events are transient: they are ingested immediately and
never persisted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4


class ChangeKind(str, Enum):
    """Type of record change."""

    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    RESTORED = "restored"


class ChangeOrigin(str, Enum):
    """Where a change was observed."""

    LOCAL = "local"
    EXTERNAL = "external"


@dataclass(frozen=True, slots=True)
class ChangeEvent:
    """Records of an entity were created, updated, deleted or restored."""

    entity: str
    kind: ChangeKind
    record_ids: tuple[str, ...] = ()
    origin: ChangeOrigin = ChangeOrigin.LOCAL
    event_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
