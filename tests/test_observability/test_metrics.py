"""Tests for the Prometheus metrics collector."""

import pytest
from prometheus_client import REGISTRY

from conftest import FakeQueueService, make_messages
from sqs_listener.listener.engine import SqsListener
from sqs_listener.observability.metrics import get_metrics


def _sample(name: str, **labels) -> float:
    return REGISTRY.get_sample_value(name, labels) or 0.0


class TestMetricsCollector:
    """Tests for MetricsCollector convenience methods."""

    def test_get_metrics_is_singleton(self):
        assert get_metrics() is get_metrics()

    def test_record_cycle(self):
        queue = "metrics-cycle"
        get_metrics().record_cycle(queue, "completed", received=7, depth=12, latency=0.3)

        assert _sample("sqs_listener_poll_cycles_total", queue=queue, status="completed") == 1
        assert _sample("sqs_listener_messages_received_total", queue=queue) == 7
        assert _sample("sqs_listener_queue_depth", queue=queue) == 12

    def test_record_delete_batch_by_status(self):
        queue = "metrics-delete"
        metrics = get_metrics()
        metrics.record_delete_batch(queue, size=10, succeeded=True)
        metrics.record_delete_batch(queue, size=3, succeeded=False)

        assert _sample("sqs_listener_deleted_messages_total", queue=queue, status="success") == 10
        assert _sample("sqs_listener_deleted_messages_total", queue=queue, status="error") == 3

    @pytest.mark.asyncio
    async def test_run_once_records_outcomes(self, listener_config):
        queue = "metrics-engine"
        messages = make_messages(3)
        service = FakeQueueService(count=3, batches=[messages])

        def handler(body):
            if body.endswith("-0"):
                raise RuntimeError("bad")

        listener = SqsListener(queue, handler, service, listener_config)
        await listener.run_once()

        assert _sample("sqs_listener_messages_processed_total", queue=queue, status="success") == 2
        assert _sample("sqs_listener_messages_processed_total", queue=queue, status="failure") == 1
        assert _sample("sqs_listener_visibility_extensions_total", queue=queue, status="success") == 1
        assert _sample("sqs_listener_pending_deletes", queue=queue) == 2
