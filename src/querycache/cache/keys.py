"""Cache key schema for querycache.

Key formats (prefix defaults to "qc:"):
- {prefix}query_{fingerprint}       cached result of one query
- {prefix}record_{entity}_{id}      record index bucket (cache keys containing a record)
- {prefix}object_{entity}           tag grouping every entry for an entity
- {prefix}queries                   tag grouping every query entry
- {prefix}stats_{counter}           hit/miss counters

The fingerprint is a 128-bit BLAKE2b digest of the normalized query text,
so it is stable across calls and processes. Entity names are case-folded in
record and object keys, matching the case-insensitive fingerprint; record ids
keep their case.
"""

from __future__ import annotations

import hashlib

DEFAULT_PREFIX = "qc:"


def normalize_query(query: str) -> str:
    """Trim surrounding whitespace and case-fold a query string."""
    return query.strip().casefold()


class CacheKeys:
    """Cache key generator following a consistent naming convention."""

    def __init__(self, prefix: str = DEFAULT_PREFIX):
        self.prefix = prefix

    @staticmethod
    def fingerprint(query: str) -> str:
        """Fixed-width hex digest of the normalized query."""
        normalized = normalize_query(query)
        return hashlib.blake2b(normalized.encode("utf-8"), digest_size=16).hexdigest()

    def query(self, query: str) -> str:
        """Key for a cached query result."""
        return f"{self.prefix}query_{self.fingerprint(query)}"

    def record(self, entity: str, record_id: str) -> str:
        """Key for the record index bucket of one record."""
        return f"{self.prefix}record_{entity.casefold()}_{record_id}"

    def object_tag(self, entity: str) -> str:
        """Tag shared by every cached query against an entity."""
        return f"{self.prefix}object_{entity.casefold()}"

    @property
    def global_tag(self) -> str:
        """Tag shared by every cached query."""
        return f"{self.prefix}queries"

    def stats(self, counter: str) -> str:
        """Key for a statistics counter."""
        return f"{self.prefix}stats_{counter}"

    def parse_key(self, key: str) -> dict[str, str] | None:
        """Parse a cache key into its components.

        Returns None if the key doesn't belong to this namespace.
        """
        if not key.startswith(self.prefix):
            return None

        kind, sep, rest = key[len(self.prefix) :].partition("_")
        if not sep or not rest:
            return None

        return {"prefix": self.prefix, "kind": kind, "value": rest}
