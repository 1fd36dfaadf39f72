"""
Shared metrics configuration for the Store Access Layer.
"""

from prometheus_client import Counter, Histogram, Gauge, Info, CollectorRegistry, generate_latest
from typing import Dict, Any, Optional


class MetricsCollector:
    """Centralized metrics collector for services."""

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        # A private registry keeps several collectors in one process (tests) from clashing
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up common metrics for the service."""

        # Service info
        self._metrics["service_info"] = Info(
            "service_info",
            "Service information",
            registry=self.registry
        )
        self._metrics["service_info"].info({
            "service": self.service_name,
            "version": "1.0.0"
        })

        # HTTP metrics
        self._metrics["http_requests_total"] = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["method", "endpoint", "status_code"],
            registry=self.registry
        )

        self._metrics["http_request_duration_seconds"] = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method", "endpoint"],
            registry=self.registry
        )

        # Health check metrics
        self._metrics["health_check_total"] = Counter(
            "health_check_total",
            "Total health check requests",
            ["status"],
            registry=self.registry
        )

        # Error metrics
        self._metrics["errors_total"] = Counter(
            "errors_total",
            "Total errors",
            ["error_type", "service"],
            registry=self.registry
        )

        # Store metrics
        self._metrics["store_commands_total"] = Counter(
            "store_commands_total",
            "Total commands issued to the store",
            ["command", "outcome"],
            registry=self.registry
        )

        self._metrics["store_pool_in_use"] = Gauge(
            "store_pool_in_use",
            "Pooled store connections currently checked out",
            registry=self.registry
        )

        # Service-specific metrics
        if self.service_name == "cacher":
            self._setup_cacher_metrics()
        elif self.service_name == "queuer":
            self._setup_queuer_metrics()
        elif self.service_name == "messenger":
            self._setup_messenger_metrics()

    def _setup_cacher_metrics(self):
        """Set up cacher-specific metrics."""
        self._metrics["cache_hits_total"] = Counter(
            "cache_hits_total",
            "Total cache hits",
            registry=self.registry
        )

        self._metrics["cache_misses_total"] = Counter(
            "cache_misses_total",
            "Total cache misses",
            registry=self.registry
        )

    def _setup_queuer_metrics(self):
        """Set up queuer-specific metrics."""
        self._metrics["queue_pushed_total"] = Counter(
            "queue_pushed_total",
            "Total values pushed",
            registry=self.registry
        )

        self._metrics["queue_pops_total"] = Counter(
            "queue_pops_total",
            "Total pop attempts",
            ["outcome"],
            registry=self.registry
        )

    def _setup_messenger_metrics(self):
        """Set up messenger-specific metrics."""
        self._metrics["messages_published_total"] = Counter(
            "messages_published_total",
            "Total messages published",
            registry=self.registry
        )

        self._metrics["messages_received_total"] = Counter(
            "messages_received_total",
            "Total messages received",
            ["outcome"],
            registry=self.registry
        )

    def render(self) -> bytes:
        """Render the registry in Prometheus text format."""
        return generate_latest(self.registry)

    def record_http_request(self, method: str, endpoint: str, status_code: int, duration: float):
        """Record HTTP request metrics."""
        self._metrics["http_requests_total"].labels(
            method=method,
            endpoint=endpoint,
            status_code=str(status_code)
        ).inc()

        self._metrics["http_request_duration_seconds"].labels(
            method=method,
            endpoint=endpoint
        ).observe(duration)

    def record_health_check(self, status: str):
        """Record health check metrics."""
        self._metrics["health_check_total"].labels(status=status).inc()

    def record_error(self, error_type: str, service: Optional[str] = None):
        """Record error metrics."""
        service_name = service or self.service_name
        self._metrics["errors_total"].labels(error_type=error_type, service=service_name).inc()

    def record_store_command(self, command: str, outcome: str):
        self._metrics["store_commands_total"].labels(command=command, outcome=outcome).inc()

    def increment_counter(self, metric_name: str, **labels):
        """Increment a counter metric."""
        if metric_name in self._metrics:
            metric = self._metrics[metric_name]
            (metric.labels(**labels) if labels else metric).inc()

    def set_gauge(self, metric_name: str, value: float, **labels):
        """Set a gauge metric value."""
        if metric_name in self._metrics:
            metric = self._metrics[metric_name]
            (metric.labels(**labels) if labels else metric).set(value)

    def get_sample(self, name: str, **labels) -> Optional[float]:
        """Read back a sample value, mostly for tests and health output."""
        return self.registry.get_sample_value(name, labels or None)


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)
