"""TTL and tag resolution for cached queries.

Entity extraction is a narrow heuristic: the first identifier
after a case-insensitive FROM keyword. Joined or nested queries are tagged
with that first entity only. Entity names match without regard to case,
as the query fingerprint does. When no entity is found, the query is tagged
with the global tag alone and can only be invalidated by a full flush.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from querycache.cache.keys import CacheKeys
from querycache.config import Settings

_ENTITY_PATTERN = re.compile(r"\bfrom\s+[\"']?([a-z0-9_]+)[\"']?", re.IGNORECASE)

AGGREGATE_MARKERS = ("COUNT(", "SUM(", "AVG(", "MIN(", "MAX(")


@dataclass(frozen=True, slots=True)
class CallOptions:
    """Per-call cache options supplied by the query layer."""

    skip_cache: bool = False
    refresh_cache: bool = False
    ttl: int | None = None
    tags: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class CachePolicy:
    """Resolved cache policy for one call."""

    ttl: int
    tags: tuple[str, ...] = field(default_factory=tuple)
    entity: str | None = None
    bypass_cache: bool = False


def entity_of(query: str) -> str | None:
    """Extract the target entity name from a query, if any."""
    match = _ENTITY_PATTERN.search(query)
    if match is None:
        return None
    return match.group(1)


def is_aggregate(query: str) -> bool:
    """Whether the query uses an aggregate function (never cached)."""
    upper = query.upper()
    return any(marker in upper for marker in AGGREGATE_MARKERS)


class PolicyResolver:
    """Derives the effective TTL and tag set for a query."""

    def __init__(self, settings: Settings, keys: CacheKeys | None = None):
        self.settings = settings
        self.keys = keys or CacheKeys(settings.key_prefix)
        self._ttl_overrides = {
            name.casefold(): ttl for name, ttl in settings.ttl_overrides.items()
        }

    def resolve(self, query: str, options: CallOptions | None = None) -> CachePolicy:
        options = options or CallOptions()
        entity = entity_of(query)
        return CachePolicy(
            ttl=self.resolve_ttl(entity, options),
            tags=self.resolve_tags(entity, options),
            entity=entity,
            bypass_cache=is_aggregate(query),
        )

    def resolve_ttl(self, entity: str | None, options: CallOptions) -> int:
        """Per-call override, then per-entity override, then the default."""
        if options.ttl is not None:
            return int(options.ttl)
        if entity and entity.casefold() in self._ttl_overrides:
            return self._ttl_overrides[entity.casefold()]
        return self.settings.default_ttl

    def resolve_tags(self, entity: str | None, options: CallOptions) -> tuple[str, ...]:
        tags = [*options.tags, self.keys.global_tag]
        if entity:
            tags.append(self.keys.object_tag(entity))
        # dict.fromkeys keeps first-seen order while dropping duplicates
        return tuple(dict.fromkeys(tags))
