"""In-process queue backend for local runs and tests.

Mimics the SQS behaviours the engine relies on: visibility timeouts,
per-delivery receipt handles, receive counts and batched deletes. Nothing is
persisted and long polling is not emulated (receive returns immediately).
"""

import threading
import time
import uuid
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone

from sqs_listener.listener.exceptions import QueueServiceError
from sqs_listener.listener.schemas import Message
from sqs_listener.queues.base import QueueService


@dataclass
class _StoredMessage:
    message_id: str
    body: str
    receive_count: int = 0
    first_received_at: datetime | None = None
    invisible_until: float = 0.0
    receipt_handle: str | None = None


class InMemoryQueueService(QueueService):
    """
    QueueService backed by Python lists.

    The handle returned by lookup_queue() is the queue name.

    Usage:
        service = InMemoryQueueService()
        service.create_queue("orders")
        service.send("orders", '{"id": 1}')
    """

    name = "memory"

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._queues: dict[str, list[_StoredMessage]] = {}
        self._lock = threading.Lock()

    def create_queue(self, queue_name: str) -> str:
        with self._lock:
            self._queues.setdefault(queue_name, [])
        return queue_name

    def send(self, queue_name: str, body: str) -> str:
        """Enqueue a message and return its id."""
        message_id = str(uuid.uuid4())
        with self._lock:
            self._get_queue(queue_name).append(_StoredMessage(message_id=message_id, body=body))
        return message_id

    def size(self, queue_name: str) -> int:
        """Total messages stored, visible or not."""
        with self._lock:
            return len(self._get_queue(queue_name))

    async def lookup_queue(self, queue_name: str) -> str:
        with self._lock:
            self._get_queue(queue_name)
        return queue_name

    async def approximate_count(self, handle: str) -> int:
        now = self._clock()
        with self._lock:
            return sum(1 for m in self._get_queue(handle) if m.invisible_until <= now)

    async def receive(
        self,
        handle: str,
        wait_seconds: int,
        max_messages: int,
        visibility_timeout: int,
    ) -> list[Message]:
        now = self._clock()
        received: list[Message] = []
        with self._lock:
            for stored in self._get_queue(handle):
                if len(received) >= max_messages:
                    break
                if stored.invisible_until > now:
                    continue

                stored.receive_count += 1
                stored.receipt_handle = uuid.uuid4().hex
                stored.invisible_until = now + visibility_timeout
                if stored.first_received_at is None:
                    stored.first_received_at = datetime.now(timezone.utc)

                received.append(
                    Message(
                        message_id=stored.message_id,
                        body=stored.body,
                        receipt_handle=stored.receipt_handle,
                        receive_count=stored.receive_count,
                        first_received_at=stored.first_received_at,
                    )
                )
        return received

    async def delete(self, handle: str, receipt_handles: Sequence[str]) -> None:
        self._check_delete_batch(receipt_handles)
        targets = set(receipt_handles)
        with self._lock:
            queue = self._get_queue(handle)
            queue[:] = [m for m in queue if m.receipt_handle not in targets]

    async def extend_visibility(
        self,
        handle: str,
        receipt_handle: str,
        timeout_seconds: int,
    ) -> None:
        now = self._clock()
        with self._lock:
            for stored in self._get_queue(handle):
                if stored.receipt_handle == receipt_handle:
                    stored.invisible_until = now + timeout_seconds
                    return
        raise QueueServiceError(
            f"Receipt handle not in flight on queue {handle}",
            operation="change_message_visibility",
        )

    def _get_queue(self, queue_name: str) -> list[_StoredMessage]:
        try:
            return self._queues[queue_name]
        except KeyError as e:
            raise QueueServiceError(
                f"Queue does not exist: {queue_name}",
                operation="get_queue_url",
                cause=e,
            ) from e
