"""
Prometheus metrics for the ingestion hub.

Defines and exposes metrics for:
- Syndication events ingested (by aggregator and duplicate flag)
- Authentication failures and rate-limited requests
- Alert dispatch outcomes per channel
- Ingestion latency

Metrics are exposed via HTTP endpoint for Prometheus scraping.
"""

import logging

from prometheus_client import (
    REGISTRY,
    Counter,
    Histogram,
    start_http_server,
)

from synditracker.config.settings import get_settings

logger = logging.getLogger(__name__)

# Buckets for latency histograms (in seconds)
LATENCY_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5)


class MetricsCollector:
    """
    Prometheus metrics collector for the hub.

    Usage:
        metrics = get_metrics()
        metrics.start_server()

        metrics.record_event("Feedzy", is_duplicate=False, latency=0.012)
        metrics.record_dispatch("spike", "webhook", "delivered")
    """

    def __init__(self):
        self.events_ingested = Counter(
            "synditracker_events_ingested_total",
            "Total syndication events stored",
            ["aggregator", "duplicate"],
        )

        self.auth_failures = Counter(
            "synditracker_auth_failures_total",
            "Total rejected site key authentications",
            ["reason"],  # missing, invalid
        )

        self.rate_limited = Counter(
            "synditracker_rate_limited_total",
            "Total requests rejected by the per-key rate limiter",
        )

        self.alerts_dispatched = Counter(
            "synditracker_alerts_dispatched_total",
            "Total alert delivery attempts",
            ["kind", "channel", "status"],  # status: delivered, failed, skipped
        )

        self.ingestion_latency = Histogram(
            "synditracker_ingestion_latency_seconds",
            "Time to validate and store one syndication event",
            buckets=LATENCY_BUCKETS,
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
        logger.info("Prometheus metrics server started on port %d", port)

    def record_event(
        self,
        aggregator: str,
        is_duplicate: bool,
        latency: float | None = None,
    ) -> None:
        """
        Record a stored syndication event.

        Args:
            aggregator: Normalised aggregator name
            is_duplicate: Whether the event was flagged duplicate
            latency: Optional end-to-end handling time in seconds
        """
        self.events_ingested.labels(
            aggregator=aggregator,
            duplicate=str(is_duplicate).lower(),
        ).inc()

        if latency is not None:
            self.ingestion_latency.observe(latency)

    def record_auth_failure(self, reason: str) -> None:
        self.auth_failures.labels(reason=reason).inc()

    def record_rate_limited(self) -> None:
        self.rate_limited.inc()

    def record_dispatch(self, kind: str, channel: str, status: str) -> None:
        self.alerts_dispatched.labels(
            kind=kind, channel=channel, status=status,
        ).inc()


# Global metrics instance
_metrics: MetricsCollector | None = None


def get_metrics() -> MetricsCollector:
    """Get global metrics collector instance."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics
