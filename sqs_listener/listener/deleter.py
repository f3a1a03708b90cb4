"""Periodic drain of the pending-delete buffer into batched delete calls."""

import asyncio
import math
from typing import Any

import structlog

from sqs_listener.listener.config import MAX_DELETE_BATCH
from sqs_listener.listener.pending import PendingDeleteSet
from sqs_listener.observability.metrics import get_metrics
from sqs_listener.queues.base import QueueService

logger = structlog.get_logger(__name__)


class DeleteBatcher:
    """
    Deletes acknowledged messages in batches of at most 10.

    Each run splits the current buffer into ceil(pending / 10) batches and
    deletes every batch on its own task. Batches are independent: a failed
    delete is logged and its handles are not re-queued, because the
    messages reappear after their visibility timeout anyway.

    Usage:
        batcher = DeleteBatcher(queue_service, handle, pending)
        deleted = await batcher.run_once()
    """

    def __init__(
        self,
        queue_service: QueueService,
        handle: Any,
        pending: PendingDeleteSet,
        queue_name: str = "",
        batch_size: int = MAX_DELETE_BATCH,
    ):
        self._queue_service = queue_service
        self._handle = handle
        self._pending = pending
        self._queue_name = queue_name
        self._batch_size = batch_size

    async def run_once(self) -> int:
        """
        Drain the buffer once.

        Returns:
            Number of receipt handles successfully deleted
        """
        pending_count = len(self._pending)
        get_metrics().set_pending_deletes(self._queue_name, pending_count)
        if pending_count == 0:
            return 0

        num_batches = math.ceil(pending_count / self._batch_size)
        tasks = []
        for _ in range(num_batches):
            batch = self._pending.drain(self._batch_size)
            if not batch:
                break
            tasks.append(asyncio.create_task(self._delete_batch(batch)))

        results = await asyncio.gather(*tasks)
        deleted = sum(results)

        logger.info(
            "Delete cycle finished",
            queue=self._queue_name,
            pending=pending_count,
            batches=len(tasks),
            deleted=deleted,
        )
        return deleted

    async def _delete_batch(self, batch: list[str]) -> int:
        metrics = get_metrics()
        try:
            await self._queue_service.delete(self._handle, batch)
        except Exception as e:
            metrics.record_delete_batch(self._queue_name, size=len(batch), succeeded=False)
            logger.error(
                "Failed to delete batch",
                queue=self._queue_name,
                batch_size=len(batch),
                error=str(e),
            )
            return 0

        metrics.record_delete_batch(self._queue_name, size=len(batch), succeeded=True)
        return len(batch)
