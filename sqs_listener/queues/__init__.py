"""
Queue backends for the listener engine.

Classes:
    QueueService: Abstract async interface consumed by the engine
    SqsQueueService: Amazon SQS backend (boto3)
    InMemoryQueueService: In-process backend for local runs and tests
    VisibilityBackoff: Visibility timeout calculation for failed messages

Backends are selected explicitly by name, never by reflection:

    from sqs_listener.queues import create_queue_service

    service = create_queue_service("memory")
"""

from sqs_listener.config.settings import get_settings
from sqs_listener.listener.exceptions import ConfigurationError
from sqs_listener.queues.backoff import VisibilityBackoff, visibility_backoff
from sqs_listener.queues.base import QueueService
from sqs_listener.queues.memory import InMemoryQueueService
from sqs_listener.queues.sqs import SqsQueueService


def create_queue_service(backend: str | None = None) -> QueueService:
    """
    Build the queue backend named in settings (or explicitly).

    Args:
        backend: "sqs" or "memory" (defaults to Settings.queue_backend)

    Raises:
        ConfigurationError: If the backend name is unknown
    """
    settings = get_settings()
    backend = backend or settings.queue_backend

    if backend == "sqs":
        return SqsQueueService(
            region_name=settings.aws_region,
            endpoint_url=settings.sqs_endpoint_url,
        )
    if backend == "memory":
        return InMemoryQueueService()
    raise ConfigurationError(f"Unknown queue backend: {backend}")


__all__ = [
    "InMemoryQueueService",
    "QueueService",
    "SqsQueueService",
    "VisibilityBackoff",
    "create_queue_service",
    "visibility_backoff",
]
