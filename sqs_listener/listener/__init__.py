"""
Listener engine for at-least-once message queues.

This module provides:
- SqsListener: Engine running the poll and delete schedules
- Dispatcher: One poll cycle with bounded handler concurrency
- OutcomeRouter: Routes outcomes to deletion or visibility backoff
- DeleteBatcher: Drains acknowledged handles in batches of 10
- RetryScheduler: Bounded visibility-extension pool with overload shedding
- PendingDeleteSet: Bounded thread-safe buffer of receipt handles
- ListenerConfig: Configuration settings for the engine
"""

from sqs_listener.listener.config import ListenerConfig, load_listener_config
from sqs_listener.listener.deleter import DeleteBatcher
from sqs_listener.listener.dispatcher import Dispatcher
from sqs_listener.listener.engine import SqsListener
from sqs_listener.listener.exceptions import (
    ConfigurationError,
    ListenerError,
    QueueServiceError,
)
from sqs_listener.listener.pending import PendingDeleteSet
from sqs_listener.listener.retry import RetryScheduler
from sqs_listener.listener.router import OutcomeRouter
from sqs_listener.listener.schemas import CycleResult, Message, Outcome

__all__ = [
    "ConfigurationError",
    "CycleResult",
    "DeleteBatcher",
    "Dispatcher",
    "ListenerConfig",
    "ListenerError",
    "Message",
    "Outcome",
    "OutcomeRouter",
    "PendingDeleteSet",
    "QueueServiceError",
    "RetryScheduler",
    "SqsListener",
    "load_listener_config",
]
