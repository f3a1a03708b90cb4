"""
Tests for OpenTelemetry tracing module.

Verifies:
- TracerProvider setup with InMemorySpanExporter
- Poll cycles produce a poll_cycle span with handle_message children
- Structlog processor adds trace_id/span_id to log entries
- traced() context manager creates spans and records exceptions
"""

from unittest.mock import MagicMock

import pytest
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from conftest import FakeQueueService, make_messages
from sqs_listener.listener.config import ListenerConfig
from sqs_listener.listener.dispatcher import Dispatcher
from sqs_listener.observability.tracing import (
    add_trace_context,
    get_tracer,
    is_tracing_enabled,
    setup_tracing,
    traced,
)

# Module-level exporter shared across all tests. OTel's global TracerProvider
# can only be set once per process, so we initialize it once and clear the
# exporter between tests.
_exporter = InMemorySpanExporter()
_provider = setup_tracing("test-service", exporter=_exporter)


@pytest.fixture(autouse=True)
def _clear_spans():
    """Clear exported spans before each test."""
    _exporter.clear()
    yield
    _exporter.clear()


class TestSetupTracing:
    """Tests for setup_tracing()."""

    def test_setup_enables_tracing(self):
        """setup_tracing should enable the tracing flag."""
        assert is_tracing_enabled()


class TestTracedContextManager:
    """Tests for the traced() convenience context manager."""

    def test_traced_creates_span(self):
        """traced() should create and finish a span."""
        tracer = get_tracer("test")

        with traced(tracer, "my_operation", {"key": "value"}):
            pass

        spans = _exporter.get_finished_spans()
        assert len(spans) == 1
        assert spans[0].name == "my_operation"
        assert spans[0].attributes.get("key") == "value"

    def test_traced_records_exception(self):
        """traced() should record exceptions and set error status."""
        tracer = get_tracer("test")

        with pytest.raises(ValueError, match="test error"):
            with traced(tracer, "failing_op"):
                raise ValueError("test error")

        spans = _exporter.get_finished_spans()
        assert len(spans) == 1
        assert spans[0].status.status_code.name == "ERROR"
        events = spans[0].events
        assert any(e.name == "exception" for e in events)


class TestPollCycleSpans:
    """Tests for spans emitted by the dispatcher."""

    @pytest.mark.asyncio
    async def test_cycle_span_parents_handler_spans(self):
        messages = make_messages(3)
        service = FakeQueueService(count=3, batches=[messages])
        config = ListenerConfig(parallelism=3)
        dispatcher = Dispatcher(service, "fake://q", lambda body: None, MagicMock(), config, queue_name="orders")

        await dispatcher.run_cycle()

        spans = _exporter.get_finished_spans()
        cycle = next(s for s in spans if s.name == "poll_cycle")
        handlers = [s for s in spans if s.name == "handle_message"]

        assert cycle.attributes.get("queue") == "orders"
        assert cycle.attributes.get("received") == 3
        assert len(handlers) == 3
        assert all(s.parent.span_id == cycle.context.span_id for s in handlers)
        assert {s.attributes.get("message_id") for s in handlers} == {m.message_id for m in messages}

    @pytest.mark.asyncio
    async def test_failed_handler_span_marked_error(self):
        service = FakeQueueService(count=1, batches=[make_messages(1)])
        config = ListenerConfig(parallelism=1)

        def handler(body):
            raise RuntimeError("boom")

        dispatcher = Dispatcher(service, "fake://q", handler, MagicMock(), config, queue_name="orders")
        await dispatcher.run_cycle()

        handler_span = next(s for s in _exporter.get_finished_spans() if s.name == "handle_message")
        assert handler_span.status.status_code.name == "ERROR"

    @pytest.mark.asyncio
    async def test_idle_cycle_has_no_handler_spans(self):
        dispatcher = Dispatcher(
            FakeQueueService(count=0), "fake://q", lambda body: None, MagicMock(), ListenerConfig()
        )

        await dispatcher.run_cycle()

        names = [s.name for s in _exporter.get_finished_spans()]
        assert names == ["poll_cycle"]


class TestStructlogProcessor:
    """Tests for the add_trace_context structlog processor."""

    def test_adds_trace_id_with_active_span(self):
        """Processor should add trace_id and span_id when span is active."""
        tracer = get_tracer("test")

        with tracer.start_as_current_span("log_test") as span:
            event_dict = {"event": "test message"}
            result = add_trace_context(None, "info", event_dict)

            expected_trace_id = f"{span.get_span_context().trace_id:032x}"
            expected_span_id = f"{span.get_span_context().span_id:016x}"

            assert result["trace_id"] == expected_trace_id
            assert result["span_id"] == expected_span_id

    def test_no_trace_id_without_span(self):
        """Processor should not add trace fields when no span is active."""
        result = add_trace_context(None, "info", {"event": "test message"})

        assert "trace_id" not in result

    def test_preserves_existing_fields(self):
        """Processor should not overwrite existing event_dict fields."""
        tracer = get_tracer("test")

        with tracer.start_as_current_span("test"):
            event_dict = {"event": "test", "custom_field": 42}
            result = add_trace_context(None, "info", event_dict)

            assert result["custom_field"] == 42
            assert result["event"] == "test"
