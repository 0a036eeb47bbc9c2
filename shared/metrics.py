"""
Prometheus metrics for the crate registry client.
"""

from typing import Dict, Any, Optional

from prometheus_client import Counter, Histogram, CollectorRegistry


class MetricsCollector:
    """Centralized metrics collector for registry traffic."""

    def __init__(self, service_name: str = "registry_client", registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        # One registry per collector.
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up registry client metrics."""
        self._metrics["registry_requests_total"] = Counter(
            "registry_requests_total",
            "Total upstream registry requests",
            ["endpoint", "outcome"],
            registry=self.registry
        )

        self._metrics["registry_request_duration_seconds"] = Histogram(
            "registry_request_duration_seconds",
            "Upstream registry request duration in seconds",
            ["endpoint"],
            registry=self.registry
        )

        self._metrics["registry_cache_events_total"] = Counter(
            "registry_cache_events_total",
            "Cache lookups by result",
            ["result"],
            registry=self.registry
        )

        self._metrics["registry_retries_total"] = Counter(
            "registry_retries_total",
            "Retried upstream attempts",
            ["endpoint"],
            registry=self.registry
        )

        self._metrics["registry_batch_items_total"] = Counter(
            "registry_batch_items_total",
            "Batch items by outcome",
            ["outcome"],
            registry=self.registry
        )

    def get_metric(self, name: str):
        """Get a metric by name."""
        return self._metrics.get(name)

    def record_request(self, endpoint: str, outcome: str, duration: float):
        """Record one upstream request attempt."""
        self._metrics["registry_requests_total"].labels(endpoint=endpoint, outcome=outcome).inc()
        self._metrics["registry_request_duration_seconds"].labels(endpoint=endpoint).observe(duration)

    def record_cache(self, result: str):
        """Record a cache hit or miss."""
        self._metrics["registry_cache_events_total"].labels(result=result).inc()

    def increment_counter(self, metric_name: str, **labels):
        """Increment a counter metric."""
        if metric_name in self._metrics:
            self._metrics[metric_name].labels(**labels).inc()

    def sample(self, metric_name: str, **labels) -> float:
        """Read the current value of a counter sample."""
        value = self.registry.get_sample_value(metric_name, labels)
        return value or 0.0
