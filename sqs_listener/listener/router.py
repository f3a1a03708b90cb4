"""Routes handler outcomes to the delete buffer or the retry scheduler."""

import structlog

from sqs_listener.listener.pending import PendingDeleteSet
from sqs_listener.listener.retry import RetryScheduler
from sqs_listener.listener.schemas import Outcome
from sqs_listener.observability.metrics import get_metrics

logger = structlog.get_logger(__name__)


class OutcomeRouter:
    """
    Sends successes to the PendingDeleteSet and failures to the RetryScheduler.

    route() never raises, so one bad outcome cannot stop its siblings from
    being routed.
    """

    def __init__(
        self,
        pending: PendingDeleteSet,
        retry_scheduler: RetryScheduler,
        queue_name: str = "",
    ):
        self._pending = pending
        self._retry_scheduler = retry_scheduler
        self._queue_name = queue_name

    def route(self, outcome: Outcome) -> None:
        try:
            if outcome.succeeded:
                self._acknowledge(outcome)
            else:
                self._retry_scheduler.submit(outcome.receipt_handle, outcome.receive_count)
        except Exception as e:
            logger.error(
                "Failed to route outcome",
                queue=self._queue_name,
                message_id=outcome.message_id,
                succeeded=outcome.succeeded,
                error=str(e),
            )

    def _acknowledge(self, outcome: Outcome) -> None:
        if self._pending.offer(outcome.receipt_handle):
            return
        # Full buffer: the message is redelivered and reprocessed later
        get_metrics().record_delete_dropped(self._queue_name)
        logger.warning(
            "Delete buffer full, dropping receipt handle",
            queue=self._queue_name,
            message_id=outcome.message_id,
            capacity=self._pending.capacity,
        )
