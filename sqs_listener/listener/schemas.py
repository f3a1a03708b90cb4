"""Data types passed between the listener components.

A Message lives for one poll cycle. Once its handler finishes it becomes an
Outcome, and only the receipt handle (plus the receive count, for failures)
travels on to the delete buffer or the retry scheduler.
"""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class Message:
    """
    A message received from the queue.

    Attributes:
        message_id: Stable identifier assigned by the queue.
        body: Opaque string payload handed to the handler.
        receipt_handle: Per-delivery token required to delete the message or
            change its visibility. Differs between redeliveries.
        receive_count: Number of times the queue has handed this message out,
            including this delivery.
        first_received_at: When the queue first delivered the message, if known.
    """

    message_id: str
    body: str
    receipt_handle: str
    receive_count: int = 1
    first_received_at: datetime | None = None


@dataclass(frozen=True)
class Outcome:
    """Result of running the handler on one message."""

    receipt_handle: str
    succeeded: bool
    receive_count: int
    message_id: str | None = None
    error: str | None = None

    @classmethod
    def success(cls, message: Message) -> "Outcome":
        return cls(
            receipt_handle=message.receipt_handle,
            succeeded=True,
            receive_count=message.receive_count,
            message_id=message.message_id,
        )

    @classmethod
    def failure(cls, message: Message, error: BaseException) -> "Outcome":
        return cls(
            receipt_handle=message.receipt_handle,
            succeeded=False,
            receive_count=message.receive_count,
            message_id=message.message_id,
            error=f"{type(error).__name__}: {error}",
        )


@dataclass
class CycleResult:
    """Counters for a single poll cycle."""

    approximate_count: int = 0
    receive_calls: int = 0
    received: int = 0
    succeeded: int = 0
    failed: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "approximate_count": self.approximate_count,
            "receive_calls": self.receive_calls,
            "received": self.received,
            "succeeded": self.succeeded,
            "failed": self.failed,
        }
