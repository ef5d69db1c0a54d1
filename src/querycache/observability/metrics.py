"""Prometheus metrics for querycache.

Provides metrics collection and exposure:
- Query cache metrics (hits, misses)
- Invalidation metrics (by invalidation type)
- Webhook metrics (by outcome)

Usage:
    from querycache.observability.metrics import get_metrics

    metrics = get_metrics()
    metrics.cache_hits_total.labels(entity="Account").inc()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)


class NoOpMetric:
    """No-op metric for when metrics are disabled."""

    def labels(self, **kwargs: Any) -> "NoOpMetric":
        """Return self for chaining."""
        return self

    def inc(self, amount: float = 1) -> None:
        """No-op."""
        pass


@dataclass
class MetricsRegistry:
    """Registry for Prometheus metrics."""

    cache_hits_total: Any = field(default_factory=NoOpMetric)
    cache_misses_total: Any = field(default_factory=NoOpMetric)
    invalidations_total: Any = field(default_factory=NoOpMetric)
    webhook_requests_total: Any = field(default_factory=NoOpMetric)

    # Internal state
    _initialized: bool = field(default=False, repr=False)
    _registry: Any = field(default=None, repr=False)

    def initialize(self, enabled: bool = True) -> None:
        """Initialize Prometheus metrics."""
        if self._initialized:
            return

        if not enabled:
            logger.info("Metrics are disabled")
            self._initialized = True
            return

        try:
            from prometheus_client import REGISTRY, Counter

            self._registry = REGISTRY

            self.cache_hits_total = Counter(
                "querycache_hits_total",
                "Query cache hits",
                ["entity"],
            )

            self.cache_misses_total = Counter(
                "querycache_misses_total",
                "Query cache misses",
                ["entity"],
            )

            self.invalidations_total = Counter(
                "querycache_invalidations_total",
                "Cache invalidations performed",
                ["invalidation_type"],
            )

            self.webhook_requests_total = Counter(
                "querycache_webhook_requests_total",
                "Change notification webhook requests",
                ["outcome"],
            )

            self._initialized = True
            logger.info("Prometheus metrics initialized")

        except ImportError:
            logger.warning("prometheus_client not installed, metrics disabled")
            self._initialized = True

    def generate_latest(self) -> bytes:
        """Generate Prometheus metrics in exposition format."""
        if self._registry is None:
            return b"# Metrics disabled\n"

        from prometheus_client import generate_latest

        return generate_latest(self._registry)


# Global metrics registry
metrics_registry = MetricsRegistry()


def get_metrics(enabled: bool = True) -> MetricsRegistry:
    """Get the global metrics registry.

    Initializes metrics on first access; ``enabled`` only matters then.
    """
    if not metrics_registry._initialized:
        metrics_registry.initialize(enabled)
    return metrics_registry
