"""Metrics module - Cache metrics and monitoring."""

from kitcache_core.metrics.collector import (
    MetricsCollector,
    CacheMetrics,
)

__all__ = [
    "MetricsCollector",
    "CacheMetrics",
]
