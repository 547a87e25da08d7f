"""
Prometheus metrics for monitoring the ingestion schedulers.

Defines and exposes metrics for:
- Cycle outcomes and latency
- Per-item outcomes (stored, blocked, duplicate, failed)
- Source fetch errors
- Retention deletions
- Scheduler next-delay

Metrics are exposed via HTTP endpoint for Prometheus scraping.
"""

import logging

from prometheus_client import (
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    start_http_server,
)

from curator.config.settings import get_settings
from curator.ingestion.schemas import ContentType

logger = logging.getLogger(__name__)

# Buckets for cycle latency histograms (in seconds)
CYCLE_LATENCY_BUCKETS = (0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0)


def _label(content_type: ContentType | str) -> str:
    return content_type.value if isinstance(content_type, ContentType) else content_type


class MetricsCollector:
    """
    Prometheus metrics collector for the curator schedulers.

    Usage:
        metrics = get_metrics()
        metrics.start_server()

        metrics.record_item(ContentType.NEWS, "stored")
        metrics.record_cycle(ContentType.NEWS, "success", latency=3.2)
    """

    def __init__(self):
        """Initialize Prometheus metrics."""

        self.cycles = Counter(
            "curator_cycles_total",
            "Total ingestion cycles",
            ["content_type", "outcome"],  # outcome: success, no_sources, failed, skipped
        )

        self.cycle_latency = Histogram(
            "curator_cycle_latency_seconds",
            "Wall time of one ingestion cycle",
            ["content_type"],
            buckets=CYCLE_LATENCY_BUCKETS,
        )

        self.items = Counter(
            "curator_items_total",
            "Candidate items by processing outcome",
            ["content_type", "outcome"],  # stored, blocked, duplicate, failed, invalid
        )

        self.source_errors = Counter(
            "curator_source_errors_total",
            "Source fetch failures",
            ["content_type", "error_type"],
        )

        self.retention_deleted = Counter(
            "curator_retention_deleted_total",
            "Items deleted by retention and housekeeping",
            ["content_type", "policy"],
        )

        self.retention_failures = Counter(
            "curator_retention_failures_total",
            "Individual deletions that failed",
            ["content_type"],
        )

        self.fallbacks = Counter(
            "curator_config_fallbacks_total",
            "Config resolutions served by a non-primary tier",
            ["kind", "provenance"],
        )

        self.next_delay = Gauge(
            "curator_scheduler_next_delay_seconds",
            "Delay until the next scheduled cycle",
            ["content_type"],
        )

        logger.info("Prometheus metrics initialized")

    def start_server(self, port: int | None = None) -> None:
        """
        Start Prometheus metrics HTTP server.

        Args:
            port: Port to expose metrics on (default from settings)
        """
        settings = get_settings()
        port = port or settings.metrics_port

        start_http_server(port, registry=REGISTRY)
        logger.info(f"Prometheus metrics server started on port {port}")

    # Convenience methods

    def record_cycle(
        self,
        content_type: ContentType | str,
        outcome: str,
        latency: float | None = None,
    ) -> None:
        """
        Record a finished (or skipped) cycle.

        Args:
            content_type: Scheduler content type
            outcome: Cycle outcome
            latency: Optional cycle duration in seconds
        """
        label = _label(content_type)
        self.cycles.labels(content_type=label, outcome=outcome).inc()
        if latency is not None:
            self.cycle_latency.labels(content_type=label).observe(latency)

    def record_item(
        self,
        content_type: ContentType | str,
        outcome: str,
        count: int = 1,
    ) -> None:
        """Record a per-item outcome."""
        self.items.labels(content_type=_label(content_type), outcome=outcome).inc(count)

    def record_source_error(self, content_type: ContentType | str, error_type: str) -> None:
        """Record a failed source fetch."""
        self.source_errors.labels(
            content_type=_label(content_type),
            error_type=error_type,
        ).inc()

    def record_retention(
        self,
        content_type: ContentType | str,
        deleted: int,
        failed: int = 0,
        policy: str = "retention",
    ) -> None:
        """
        Record a retention or housekeeping run.

        Args:
            content_type: Content type swept
            deleted: Number of items deleted
            failed: Number of deletions that failed
            policy: retention, purge_rejected or purge_inactive
        """
        label = _label(content_type)
        if deleted:
            self.retention_deleted.labels(content_type=label, policy=policy).inc(deleted)
        if failed:
            self.retention_failures.labels(content_type=label).inc(failed)

    def record_fallback(self, kind: str, provenance: str) -> None:
        """Record a config value served by a fallback tier."""
        self.fallbacks.labels(kind=kind, provenance=provenance).inc()

    def set_next_delay(self, content_type: ContentType | str, seconds: float) -> None:
        """Set the scheduler's next delay gauge."""
        self.next_delay.labels(content_type=_label(content_type)).set(seconds)


# Global metrics instance
_metrics: MetricsCollector | None = None


def get_metrics() -> MetricsCollector:
    """Get global metrics collector instance."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics
