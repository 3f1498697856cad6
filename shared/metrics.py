"""
Prometheus metrics for permission decisions and audit delivery.
"""

from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Histogram, Info, start_http_server

# Checks are in-process store lookups; buckets stay in the low milliseconds
CHECK_DURATION_BUCKETS = (0.0005, 0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 1.0)


class MetricsCollector:
    """Decision and audit counters for one engine instance.

    Metrics are bound to ``registry``; when it is ``None`` they are created
    unregistered, so several collectors can coexist in one process.
    """

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry

        self.service_info = Info("service_info", "Service information", registry=registry)
        self.service_info.info({"service": service_name, "version": "1.0.0"})

        self.checks = Counter(
            "permission_checks_total",
            "Permission decisions by outcome",
            ["operation", "decision"],
            registry=registry
        )
        self.check_errors = Counter(
            "permission_check_errors_total",
            "Permission checks that failed closed on an internal error",
            ["operation"],
            registry=registry
        )
        self.check_duration = Histogram(
            "permission_check_duration_seconds",
            "Time to reach a permission decision",
            ["operation"],
            buckets=CHECK_DURATION_BUCKETS,
            registry=registry
        )
        self.audit_records = Counter(
            "audit_records_total",
            "Audit records written",
            ["channel"],
            registry=registry
        )
        self.audit_fallbacks = Counter(
            "audit_fallback_total",
            "Audit records diverted from the queue to the durable store",
            registry=registry
        )
        self.errors = Counter(
            "errors_total",
            "Errors outside of individual checks",
            ["error_type", "service"],
            registry=registry
        )

    def start_metrics_server(self, port: int = 9090):
        """Expose ``registry`` (or the process default) over HTTP."""
        if self.registry is not None:
            start_http_server(port, registry=self.registry)
        else:
            start_http_server(port)

    def record_permission_check(self, operation: str, granted: bool, duration: float):
        self.checks.labels(operation=operation, decision="grant" if granted else "deny").inc()
        self.check_duration.labels(operation=operation).observe(duration)

    def record_check_error(self, operation: str):
        self.check_errors.labels(operation=operation).inc()

    def record_audit(self, channel: str):
        """Count a record delivered through ``channel``."""
        self.audit_records.labels(channel=channel).inc()

    def record_audit_fallback(self):
        self.audit_fallbacks.inc()

    def record_error(self, error_type: str):
        self.errors.labels(error_type=error_type, service=self.service_name).inc()


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)
