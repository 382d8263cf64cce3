"""
Shared metrics configuration for the model query cache.
"""

import threading
from typing import Any, Dict, Optional

from prometheus_client import CollectorRegistry, Counter, Histogram


class MetricsCollector:
    """Centralized metrics collector for cache clients."""

    def __init__(self, namespace: str = "model_cache", registry: Optional[CollectorRegistry] = None):
        self.namespace = namespace
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._lock = threading.Lock()
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up cache client metrics."""
        ns = self.namespace

        # HTTP metrics
        self._metrics["fetch_requests_total"] = Counter(
            f"{ns}_fetch_requests_total",
            "Total model API requests",
            ["method", "status_code"],
            registry=self.registry
        )

        self._metrics["fetch_duration_seconds"] = Histogram(
            f"{ns}_fetch_duration_seconds",
            "Model API request duration in seconds",
            ["method"],
            registry=self.registry
        )

        # Cache consistency metrics
        self._metrics["invalidations_total"] = Counter(
            f"{ns}_invalidations_total",
            "Total invalidation passes triggered by mutations",
            ["model", "operation", "phase"],
            registry=self.registry
        )

        self._metrics["invalidated_queries_total"] = Counter(
            f"{ns}_invalidated_queries_total",
            "Total cached queries matched by invalidation predicates",
            ["model", "operation"],
            registry=self.registry
        )

        self._metrics["optimistic_updates_total"] = Counter(
            f"{ns}_optimistic_updates_total",
            "Total cached queries optimistically updated",
            ["model", "operation"],
            registry=self.registry
        )

    def record_fetch(self, method: str, status_code: int, duration: float):
        """Record model API request metrics."""
        self.increment_counter("fetch_requests_total", method=method, status_code=str(status_code))
        self.observe_histogram("fetch_duration_seconds", duration, method=method)

    def increment_counter(self, metric_name: str, amount: float = 1, **labels):
        """Increment a counter metric."""
        if metric_name in self._metrics:
            with self._lock:
                self._metrics[metric_name].labels(**labels).inc(amount)

    def observe_histogram(self, metric_name: str, value: float, **labels):
        """Observe a histogram metric."""
        if metric_name in self._metrics:
            self._metrics[metric_name].labels(**labels).observe(value)

    def sample_value(self, metric_name: str, **labels) -> Optional[float]:
        """Read back the current value of a counter sample."""
        if metric_name not in self._metrics:
            return None
        return self.registry.get_sample_value(f"{self.namespace}_{metric_name}", labels)
