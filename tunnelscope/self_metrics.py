"""Self-monitoring metrics for the explorer using prometheus_client."""
from typing import Dict
from prometheus_client import (
    Counter, Gauge, Histogram,
    CollectorRegistry, start_http_server
)
import logging

from tunnelscope.config import SelfMetricsConfig

logger = logging.getLogger(__name__)


class SelfMetrics:
    """Counters and timings describing the ingestion pipeline itself."""

    def __init__(self, registry=None, prefix=""):
        if registry is None:
            # Custom registry keeps default Python/process collectors out
            registry = CollectorRegistry()
        self.registry = registry

        self.lines_decoded_total = Counter(
            f"{prefix}lines_decoded_total",
            "Total number of input lines decoded into samples",
            registry=registry
        )

        self.malformed_lines_total = Counter(
            f"{prefix}malformed_lines_total",
            "Total number of input lines skipped as malformed",
            registry=registry
        )

        self.datasets_loaded_total = Counter(
            f"{prefix}datasets_loaded_total",
            "Total number of datasets successfully parsed",
            registry=registry
        )

        self.parse_failures_total = Counter(
            f"{prefix}parse_failures_total",
            "Total number of parse attempts that produced no dataset",
            ["reason"],
            registry=registry
        )

        self.parse_duration_seconds = Histogram(
            f"{prefix}parse_duration_seconds",
            "Duration of a full parse in seconds",
            buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
            registry=registry
        )

        self.active_series = Gauge(
            f"{prefix}active_series",
            "Number of series in the loaded dataset",
            ["group"],
            registry=registry
        )

    def record_decoded(self, count: int):
        """Record decoded lines."""
        self.lines_decoded_total.inc(count)

    def record_malformed(self, count: int = 1):
        """Record skipped lines."""
        self.malformed_lines_total.inc(count)

    def record_parse_failure(self, reason: str):
        self.parse_failures_total.labels(reason=reason).inc()

    def record_parse_duration(self, duration: float):
        """Record parse duration."""
        self.parse_duration_seconds.observe(duration)

    def record_dataset(self, series_per_group: Dict[str, int]):
        """Record a newly published dataset and its per-group series counts."""
        self.datasets_loaded_total.inc()
        self.active_series.clear()
        for group, count in series_per_group.items():
            self.active_series.labels(group=group).set(count)


def start_self_metrics_server(config: SelfMetricsConfig, metrics: SelfMetrics):
    """Expose self-metrics over HTTP."""
    try:
        start_http_server(
            config.port,
            addr=config.bind_address,
            registry=metrics.registry
        )
        logger.info(
            f"Self-metrics listening on "
            f"{config.bind_address}:{config.port}/metrics"
        )
    except Exception as e:
        logger.error(f"Failed to start self-metrics HTTP server: {e}")
        raise
