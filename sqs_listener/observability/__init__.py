"""Observability layer - logging, metrics, and tracing."""

from sqs_listener.observability.logging import setup_logging
from sqs_listener.observability.metrics import MetricsCollector, get_metrics
from sqs_listener.observability.tracing import get_tracer, setup_tracing

__all__ = ["setup_logging", "MetricsCollector", "get_metrics", "setup_tracing", "get_tracer"]
