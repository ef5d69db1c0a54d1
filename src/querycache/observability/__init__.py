"""Observability module for querycache.

Provides metrics and structured logging:
- Prometheus counters for cache hits, misses and invalidations
- JSON structured logging with request correlation
"""

from querycache.observability.logging import (
    bound_request_id,
    configure_logging,
    request_id_var,
)
from querycache.observability.metrics import (
    get_metrics,
    metrics_registry,
)

__all__ = [
    # Logging
    "configure_logging",
    "bound_request_id",
    "request_id_var",
    # Metrics
    "metrics_registry",
    "get_metrics",
]
