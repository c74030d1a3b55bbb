"""KitCache Metrics Collector - Cache Metrics and Monitoring.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Deque, Dict, List, Optional

from kitcache_core.events import CacheEvent

logger = logging.getLogger(__name__)


@dataclass
class CacheMetrics:
    """Cache metrics container.

    Attributes:
        hits: Cache hits
        misses: Cache misses
        sets: Set operations
        deletes: Delete operations
        evictions: Evictions
        expirations: Expirations
        errors: Store failures
        entry_count: Current entries across attached sources
        ops_per_second: Operations per second over the window
    """

    hits: int = 0
    misses: int = 0
    sets: int = 0
    deletes: int = 0
    evictions: int = 0
    expirations: int = 0
    errors: int = 0
    entry_count: int = 0
    ops_per_second: float = 0.0

    @property
    def hit_rate(self) -> float:
        """Calculate hit rate."""
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0

    @property
    def total_ops(self) -> int:
        """Get total operations."""
        return self.hits + self.misses + self.sets + self.deletes

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary.

        Returns:
            Metrics dictionary
        """
        return {
            "hits": self.hits,
            "misses": self.misses,
            "sets": self.sets,
            "deletes": self.deletes,
            "evictions": self.evictions,
            "expirations": self.expirations,
            "errors": self.errors,
            "hit_rate": self.hit_rate,
            "entry_count": self.entry_count,
            "ops_per_second": self.ops_per_second,
        }


class MetricsCollector:
    """Collects and aggregates cache metrics from cache events.

    Features:
    - Event-driven counters
    - Throughput calculation over a sliding window
    - Exporter callbacks
    - Prometheus export

    Example:
        collector = MetricsCollector()
        detach = collector.attach(cache)

        metrics = collector.get_metrics()
        print(f"Hit rate: {metrics.hit_rate:.2%}")

        detach()
    """

    def __init__(self, window_seconds: int = 60):
        """Initialize collector.

        Args:
            window_seconds: Window for rate calculations
        """
        self.window_seconds = window_seconds

        # Counters
        self._hits = 0
        self._misses = 0
        self._sets = 0
        self._deletes = 0
        self._evictions = 0
        self._expirations = 0
        self._errors = 0

        # Timestamps of recent operations
        self._ops_window: Deque[float] = deque()

        # Entry count providers of attached sources
        self._size_sources: List[Callable[[], int]] = []

        self._lock = threading.RLock()

        # Callbacks for metric export
        self._exporters: List[Callable[[CacheMetrics], None]] = []

    def attach(self, source: Any) -> Callable[[], None]:
        """Count events of a CacheManager or CacheStore.

        Args:
            source: Object exposing ``on(event, listener)``

        Returns:
            Function that detaches the collector again
        """
        handlers = {
            CacheEvent.HIT: lambda key: self.record_hit(),
            CacheEvent.MISS: lambda key: self.record_miss(),
            CacheEvent.SET: lambda key, value: self.record_set(),
            CacheEvent.DELETE: lambda key: self.record_delete(),
            CacheEvent.EVICTED: lambda key: self.record_eviction(),
            CacheEvent.EXPIRE: lambda key: self.record_expiration(),
            CacheEvent.ERROR: lambda error: self.record_error(),
        }
        unsubscribers = [source.on(event, handler) for event, handler in handlers.items()]

        size = getattr(source, "size", None)
        if callable(size):
            self._size_sources.append(size)

        def detach() -> None:
            for unsubscribe in unsubscribers:
                unsubscribe()
            unsubscribers.clear()
            if size in self._size_sources:
                self._size_sources.remove(size)

        logger.debug(f"Metrics collector attached to {source!r}")
        return detach

    def record_hit(self) -> None:
        """Record a cache hit."""
        with self._lock:
            self._hits += 1
            self._record_op()

    def record_miss(self) -> None:
        """Record a cache miss."""
        with self._lock:
            self._misses += 1
            self._record_op()

    def record_set(self) -> None:
        """Record a set operation."""
        with self._lock:
            self._sets += 1
            self._record_op()

    def record_delete(self) -> None:
        """Record a delete operation."""
        with self._lock:
            self._deletes += 1
            self._record_op()

    def record_eviction(self) -> None:
        """Record an eviction."""
        with self._lock:
            self._evictions += 1

    def record_expiration(self) -> None:
        """Record an expiration."""
        with self._lock:
            self._expirations += 1

    def record_error(self) -> None:
        """Record a store failure."""
        with self._lock:
            self._errors += 1

    def _record_op(self) -> None:
        """Record operation for rate calculation."""
        now = time.time()
        self._ops_window.append(now)
        self._trim_window(now)

    def _trim_window(self, now: float) -> None:
        cutoff = now - self.window_seconds
        while self._ops_window and self._ops_window[0] < cutoff:
            self._ops_window.popleft()

    def _calculate_ops_per_second(self) -> float:
        """Calculate operations per second.

        Returns:
            Ops/second
        """
        now = time.time()
        self._trim_window(now)

        if not self._ops_window:
            return 0.0

        elapsed = now - self._ops_window[0]
        if elapsed == 0:
            return 0.0

        return len(self._ops_window) / elapsed

    def get_metrics(self) -> CacheMetrics:
        """Get current metrics.

        Returns:
            CacheMetrics instance
        """
        with self._lock:
            return CacheMetrics(
                hits=self._hits,
                misses=self._misses,
                sets=self._sets,
                deletes=self._deletes,
                evictions=self._evictions,
                expirations=self._expirations,
                errors=self._errors,
                entry_count=sum(size() for size in self._size_sources),
                ops_per_second=self._calculate_ops_per_second(),
            )

    def reset(self) -> None:
        """Reset all metrics."""
        with self._lock:
            self._hits = 0
            self._misses = 0
            self._sets = 0
            self._deletes = 0
            self._evictions = 0
            self._expirations = 0
            self._errors = 0
            self._ops_window.clear()

    def add_exporter(self, exporter: Callable[[CacheMetrics], None]) -> None:
        """Add metrics exporter.

        Args:
            exporter: Callback to receive metrics
        """
        self._exporters.append(exporter)

    def export(self, metrics: Optional[CacheMetrics] = None) -> None:
        """Export metrics to all exporters.

        A failing exporter is logged and the rest still run.
        """
        metrics = metrics or self.get_metrics()
        for exporter in self._exporters:
            try:
                exporter(metrics)
            except Exception:
                logger.exception("Metrics exporter failed")

    def to_prometheus(self, prefix: str = "cache") -> str:
        """Export metrics in Prometheus format.

        Args:
            prefix: Metric name prefix

        Returns:
            Prometheus-formatted metrics
        """
        metrics = self.get_metrics()
        series = [
            ("hits_total", "counter", "Total cache hits", metrics.hits),
            ("misses_total", "counter", "Total cache misses", metrics.misses),
            ("sets_total", "counter", "Total set operations", metrics.sets),
            ("deletes_total", "counter", "Total delete operations", metrics.deletes),
            ("evictions_total", "counter", "Total evictions", metrics.evictions),
            ("expirations_total", "counter", "Total expirations", metrics.expirations),
            ("errors_total", "counter", "Total store errors", metrics.errors),
            ("hit_rate", "gauge", "Cache hit rate", f"{metrics.hit_rate:.4f}"),
            ("entries", "gauge", "Current entry count", metrics.entry_count),
            ("ops_per_second", "gauge", "Operations per second", f"{metrics.ops_per_second:.2f}"),
        ]

        blocks = []
        for name, kind, help_text, value in series:
            blocks.append(
                f"# HELP {prefix}_{name} {help_text}\n"
                f"# TYPE {prefix}_{name} {kind}\n"
                f"{prefix}_{name} {value}"
            )
        return "\n\n".join(blocks)

    def __repr__(self) -> str:
        metrics = self.get_metrics()
        return f"MetricsCollector(hits={metrics.hits}, hit_rate={metrics.hit_rate:.2%})"


__all__ = ["MetricsCollector", "CacheMetrics"]
