"""
Abstract base class for queue backends consumed by the listener engine.

A backend resolves a queue name to a handle once, then serves the four calls
the engine needs on every cycle:
- Approximate message count (cheap idle short-circuit)
- Batched receive with long polling and a visibility timeout
- Batched delete of up to 10 receipt handles
- Visibility extension for a single receipt handle

All methods are async. Backends wrapping blocking SDKs run those calls in
worker threads so the event loop driving the schedules never blocks.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any

from sqs_listener.listener.config import MAX_DELETE_BATCH
from sqs_listener.listener.schemas import Message


class QueueService(ABC):
    """
    Abstract queue backend.

    Subclasses must implement:
        - lookup_queue(): Resolve a queue name to an addressable handle
        - approximate_count(): Best-effort visible message count
        - receive(): Fetch up to max_messages, may return fewer or none
        - delete(): Acknowledge up to 10 receipt handles as one call
        - extend_visibility(): Change one message's visibility timeout

    Usage:
        service = SqsQueueService(region_name="us-east-1")
        handle = await service.lookup_queue("orders")
        messages = await service.receive(handle, wait_seconds=10,
                                         max_messages=5, visibility_timeout=30)
    """

    name: str = "base"

    @abstractmethod
    async def lookup_queue(self, queue_name: str) -> Any:
        """
        Resolve a logical queue name.

        Returns:
            Backend-specific handle passed to every other call

        Raises:
            QueueServiceError: If the queue cannot be resolved
        """
        ...

    @abstractmethod
    async def approximate_count(self, handle: Any) -> int:
        """Get the approximate number of visible messages. May be stale."""
        ...

    @abstractmethod
    async def receive(
        self,
        handle: Any,
        wait_seconds: int,
        max_messages: int,
        visibility_timeout: int,
    ) -> list[Message]:
        """
        Receive a batch of messages.

        Args:
            handle: Queue handle from lookup_queue()
            wait_seconds: Long-poll wait (0-20)
            max_messages: Upper bound on messages returned (1-10)
            visibility_timeout: Seconds the messages stay hidden from other receivers

        Returns:
            Possibly empty list of messages
        """
        ...

    @abstractmethod
    async def delete(self, handle: Any, receipt_handles: Sequence[str]) -> None:
        """Delete up to 10 messages. Fails as a unit."""
        ...

    @abstractmethod
    async def extend_visibility(
        self,
        handle: Any,
        receipt_handle: str,
        timeout_seconds: int,
    ) -> None:
        """Set a new visibility timeout on a received message."""
        ...

    @staticmethod
    def _check_delete_batch(receipt_handles: Sequence[str]) -> None:
        if len(receipt_handles) > MAX_DELETE_BATCH:
            raise ValueError(
                f"Delete batch size can't be greater than {MAX_DELETE_BATCH}, "
                f"got {len(receipt_handles)}"
            )
