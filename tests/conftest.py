"""Pytest fixtures for sqs-listener tests."""

from collections import deque
from collections.abc import Sequence
from typing import Any

import pytest

from sqs_listener.listener.config import ListenerConfig
from sqs_listener.listener.schemas import Message
from sqs_listener.queues.base import QueueService


class FakeQueueService(QueueService):
    """
    Scripted queue backend that records every call.

    approximate_count() returns ``count``; receive() pops the next scripted
    batch (empty list once exhausted).
    """

    name = "fake"

    def __init__(
        self,
        count: int = 0,
        batches: Sequence[Sequence[Message]] | None = None,
    ):
        self.count = count
        self.batches: deque[list[Message]] = deque(list(b) for b in (batches or []))
        self.lookup_error: Exception | None = None
        self.count_error: Exception | None = None
        self.receive_error: Exception | None = None
        self.delete_error: Exception | None = None
        self.extend_error: Exception | None = None

        self.count_calls = 0
        self.receive_calls: list[dict[str, int]] = []
        self.delete_calls: list[list[str]] = []
        self.extend_calls: list[tuple[str, int]] = []

    async def lookup_queue(self, queue_name: str) -> Any:
        if self.lookup_error:
            raise self.lookup_error
        return f"fake://{queue_name}"

    async def approximate_count(self, handle: Any) -> int:
        self.count_calls += 1
        if self.count_error:
            raise self.count_error
        return self.count

    async def receive(
        self,
        handle: Any,
        wait_seconds: int,
        max_messages: int,
        visibility_timeout: int,
    ) -> list[Message]:
        self.receive_calls.append({
            "wait_seconds": wait_seconds,
            "max_messages": max_messages,
            "visibility_timeout": visibility_timeout,
        })
        if self.receive_error:
            raise self.receive_error
        if not self.batches:
            return []
        return self.batches.popleft()

    async def delete(self, handle: Any, receipt_handles: Sequence[str]) -> None:
        self._check_delete_batch(receipt_handles)
        self.delete_calls.append(list(receipt_handles))
        if self.delete_error:
            raise self.delete_error

    async def extend_visibility(self, handle: Any, receipt_handle: str, timeout_seconds: int) -> None:
        self.extend_calls.append((receipt_handle, timeout_seconds))
        if self.extend_error:
            raise self.extend_error

    @property
    def deleted_handles(self) -> list[str]:
        return [h for call in self.delete_calls for h in call]


def make_messages(
    count: int,
    prefix: str = "msg",
    receive_count: int = 1,
    body: str | None = None,
) -> list[Message]:
    """Build ``count`` messages with distinct ids and receipt handles."""
    return [
        Message(
            message_id=f"{prefix}-{i}",
            body=body if body is not None else f"body-{prefix}-{i}",
            receipt_handle=f"rh-{prefix}-{i}",
            receive_count=receive_count,
        )
        for i in range(count)
    ]


def chunked(messages: list[Message], size: int) -> list[list[Message]]:
    return [messages[i:i + size] for i in range(0, len(messages), size)]


@pytest.fixture
def fake_queue() -> FakeQueueService:
    return FakeQueueService()


@pytest.fixture
def listener_config() -> ListenerConfig:
    """Config with short intervals suited to tests."""
    return ListenerConfig(
        polling_interval_seconds=1,
        visibility_timeout_seconds=30,
        parallelism=5,
        delete_queue_capacity=1000,
        retry_workers=2,
        retry_queue_capacity=100,
        shutdown_timeout_seconds=5.0,
    )


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    """Keep developer environment variables out of config defaults."""
    for var in (
        "SQS_LISTENER_PARALLELISM",
        "SQS_LISTENER_POLLING_INTERVAL_SECONDS",
        "SQS_LISTENER_VISIBILITY_TIMEOUT_SECONDS",
        "SQS_LISTENER_DELETE_QUEUE_CAPACITY",
        "QUEUE_BACKEND",
    ):
        monkeypatch.delenv(var, raising=False)
