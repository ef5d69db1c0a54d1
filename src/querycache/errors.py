"""Exception hierarchy for querycache.

These are domain errors. HTTP status mapping for the webhook boundary lives
in querycache.api.errors.
"""

from __future__ import annotations


class QueryCacheError(Exception):
    """Base class for all querycache errors."""


class ConfigurationError(QueryCacheError):
    """Required configuration is missing (e.g. webhook secret)."""


class ValidationError(QueryCacheError):
    """An external change payload is malformed or incomplete."""

    def __init__(self, message: str, payload: object = None):
        super().__init__(message)
        self.payload = payload


class AuthenticationError(QueryCacheError):
    """Shared secret or signature did not match."""


class StoreCapabilityGap(QueryCacheError):
    """The configured cache store lacks a capability an operation needs."""

    def __init__(self, operation: str, capability: str = "tags"):
        super().__init__(f"Cache store does not support {capability}; cannot {operation}")
        self.operation = operation
        self.capability = capability
