"""
sqs-listener: a concurrent consumer engine for at-least-once message queues.

Polls a queue on a fixed cadence, fans messages out to a user handler with
bounded parallelism, deletes successes in batches and backs off failures by
extending their visibility timeout.

Usage:
    from sqs_listener import SqsListener, load_listener_config
    from sqs_listener.queues import create_queue_service

    def process(body: str) -> None:
        ...

    listener = SqsListener(
        "orders",
        process,
        queue_service=create_queue_service(),
        config=load_listener_config(parallelism=5),
    )
    await listener.start()
"""

from sqs_listener.listener import (
    ConfigurationError,
    ListenerConfig,
    ListenerError,
    QueueServiceError,
    SqsListener,
    load_listener_config,
)

__version__ = "0.1.0"

__all__ = [
    "ConfigurationError",
    "ListenerConfig",
    "ListenerError",
    "QueueServiceError",
    "SqsListener",
    "load_listener_config",
]
