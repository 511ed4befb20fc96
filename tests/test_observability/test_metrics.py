"""Tests for the Prometheus metrics collector and logging setup."""

import logging
from unittest.mock import patch

from prometheus_client import REGISTRY

from synditracker.config.settings import Settings
from synditracker.observability.logging import bind_context, clear_context, setup_logging
from synditracker.observability.metrics import get_metrics


def _sample(name, labels=None):
    return REGISTRY.get_sample_value(name, labels or {}) or 0.0


class TestMetricsCollector:
    def test_singleton(self):
        assert get_metrics() is get_metrics()

    def test_record_event(self):
        labels = {"aggregator": "Feedzy", "duplicate": "true"}
        before = _sample("synditracker_events_ingested_total", labels)
        count_before = _sample("synditracker_ingestion_latency_seconds_count")

        get_metrics().record_event("Feedzy", is_duplicate=True, latency=0.02)

        assert _sample("synditracker_events_ingested_total", labels) == before + 1
        assert _sample("synditracker_ingestion_latency_seconds_count") == count_before + 1

    def test_record_auth_and_rate_limit(self):
        auth_before = _sample("synditracker_auth_failures_total", {"reason": "invalid"})
        limited_before = _sample("synditracker_rate_limited_total")

        get_metrics().record_auth_failure("invalid")
        get_metrics().record_rate_limited()

        assert _sample("synditracker_auth_failures_total", {"reason": "invalid"}) == auth_before + 1
        assert _sample("synditracker_rate_limited_total") == limited_before + 1

    def test_record_dispatch(self):
        labels = {"kind": "spike", "channel": "webhook", "status": "failed"}
        before = _sample("synditracker_alerts_dispatched_total", labels)
        get_metrics().record_dispatch("spike", "webhook", "failed")
        assert _sample("synditracker_alerts_dispatched_total", labels) == before + 1

    def test_start_server_uses_port(self):
        with patch("synditracker.observability.metrics.start_http_server") as start:
            get_metrics().start_server(port=9199)
        assert start.call_args.args[0] == 9199


class TestLogging:
    def test_setup_sets_level_and_quiets_libraries(self):
        settings = Settings(log_level="WARNING", environment="production")
        with patch("synditracker.observability.logging.get_settings", return_value=settings):
            setup_logging()
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_context_binding(self):
        import structlog

        bind_context(request_id="r-1")
        assert structlog.contextvars.get_contextvars()["request_id"] == "r-1"
        clear_context()
        assert "request_id" not in structlog.contextvars.get_contextvars()
