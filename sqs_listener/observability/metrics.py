"""
Prometheus metrics for monitoring the listener engine.

Defines and exposes metrics for:
- Poll cycles and receive throughput
- Handler outcomes and latency
- Delete batches and dropped acknowledgements
- Visibility extensions and shed retry requests

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

from sqs_listener.config.settings import get_settings

logger = logging.getLogger(__name__)

# Buckets for latency histograms (in seconds)
LATENCY_BUCKETS = (0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0)


class MetricsCollector:
    """
    Prometheus metrics collector for the listener engine.

    Usage:
        metrics = get_metrics()
        metrics.start_server()

        metrics.record_handler_result("orders", succeeded=True, latency=0.12)
        metrics.record_delete_batch("orders", size=10, succeeded=True)
    """

    def __init__(self):
        """Initialize Prometheus metrics."""

        # Poll cycles
        self.poll_cycles = Counter(
            "sqs_listener_poll_cycles_total",
            "Total poll cycles run",
            ["queue", "status"],  # status: idle, completed, error, skipped
        )

        self.poll_cycle_latency = Histogram(
            "sqs_listener_poll_cycle_latency_seconds",
            "Wall time of a poll cycle",
            ["queue"],
            buckets=LATENCY_BUCKETS,
        )

        self.messages_received = Counter(
            "sqs_listener_messages_received_total",
            "Total messages received from the queue",
            ["queue"],
        )

        # Handler outcomes
        self.messages_processed = Counter(
            "sqs_listener_messages_processed_total",
            "Total handler invocations by outcome",
            ["queue", "status"],  # status: success, failure
        )

        self.handler_latency = Histogram(
            "sqs_listener_handler_latency_seconds",
            "Handler execution time per message",
            ["queue"],
            buckets=LATENCY_BUCKETS,
        )

        # Deletes
        self.deleted_messages = Counter(
            "sqs_listener_deleted_messages_total",
            "Receipt handles submitted in delete batches",
            ["queue", "status"],  # status: success, error
        )

        self.delete_buffer_dropped = Counter(
            "sqs_listener_delete_buffer_dropped_total",
            "Successful receipt handles dropped because the delete buffer was full",
            ["queue"],
        )

        self.pending_deletes = Gauge(
            "sqs_listener_pending_deletes",
            "Receipt handles waiting in the delete buffer",
            ["queue"],
        )

        # Visibility extensions
        self.visibility_extensions = Counter(
            "sqs_listener_visibility_extensions_total",
            "Visibility extensions issued for failed messages",
            ["queue", "status"],  # status: success, error
        )

        self.extensions_shed = Counter(
            "sqs_listener_visibility_extensions_shed_total",
            "Visibility extension requests discarded because the retry pool was full",
            ["queue"],
        )

        # Queue depth
        self.queue_depth = Gauge(
            "sqs_listener_queue_depth",
            "Approximate number of visible messages at the start of the last cycle",
            ["queue"],
        )

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
        queue: str,
        status: str,
        received: int = 0,
        depth: int | None = None,
        latency: float | None = None,
    ) -> None:
        """Record the end of a poll cycle."""
        self.poll_cycles.labels(queue=queue, status=status).inc()
        if received:
            self.messages_received.labels(queue=queue).inc(received)
        if depth is not None:
            self.queue_depth.labels(queue=queue).set(depth)
        if latency is not None:
            self.poll_cycle_latency.labels(queue=queue).observe(latency)

    def record_handler_result(self, queue: str, succeeded: bool, latency: float) -> None:
        """Record one handler invocation."""
        status = "success" if succeeded else "failure"
        self.messages_processed.labels(queue=queue, status=status).inc()
        self.handler_latency.labels(queue=queue).observe(latency)

    def record_delete_batch(self, queue: str, size: int, succeeded: bool) -> None:
        """Record a delete batch call."""
        status = "success" if succeeded else "error"
        self.deleted_messages.labels(queue=queue, status=status).inc(size)

    def record_delete_dropped(self, queue: str) -> None:
        self.delete_buffer_dropped.labels(queue=queue).inc()

    def set_pending_deletes(self, queue: str, count: int) -> None:
        self.pending_deletes.labels(queue=queue).set(count)

    def record_extension(self, queue: str, succeeded: bool) -> None:
        status = "success" if succeeded else "error"
        self.visibility_extensions.labels(queue=queue, status=status).inc()

    def record_extension_shed(self, queue: str) -> None:
        self.extensions_shed.labels(queue=queue).inc()


# Global metrics instance
_metrics: MetricsCollector | None = None


def get_metrics() -> MetricsCollector:
    """Get global metrics collector instance."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics
