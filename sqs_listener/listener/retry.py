"""
Visibility extension pool for failed messages.

A failed message is never deleted. Instead a small fixed set of worker tasks
pushes its visibility timeout out to base * (receive_count + 1) so the queue
redelivers it later. The request queue is bounded and submit() never waits:
under overload requests are shed, which only means the message reappears
after its current (shorter) visibility window.
"""

import asyncio
from dataclasses import dataclass
from typing import Any

import structlog

from sqs_listener.observability.metrics import get_metrics
from sqs_listener.queues.backoff import VisibilityBackoff
from sqs_listener.queues.base import QueueService

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ExtensionRequest:
    """A pending visibility extension."""

    receipt_handle: str
    receive_count: int


class RetryScheduler:
    """
    Bounded fire-and-forget pool issuing visibility extensions.

    Usage:
        scheduler = RetryScheduler(queue_service, handle, base_visibility_timeout=30)
        scheduler.start()
        scheduler.submit(receipt_handle, receive_count=1)  # extends to 60s
        ...
        await scheduler.stop()
    """

    def __init__(
        self,
        queue_service: QueueService,
        handle: Any,
        base_visibility_timeout: int,
        workers: int = 5,
        capacity: int = 1000,
        queue_name: str = "",
    ):
        """
        Initialize the retry scheduler.

        Args:
            queue_service: Backend used for extend_visibility calls
            handle: Queue handle from lookup_queue()
            base_visibility_timeout: Base seconds multiplied by (receive_count + 1)
            workers: Number of worker tasks
            capacity: Maximum queued requests before new ones are shed
            queue_name: Queue name used in logs and metric labels
        """
        self._queue_service = queue_service
        self._handle = handle
        self._backoff = VisibilityBackoff(base_seconds=base_visibility_timeout)
        self._num_workers = workers
        self._requests: asyncio.Queue[ExtensionRequest] = asyncio.Queue(maxsize=capacity)
        self._workers: list[asyncio.Task] = []
        self._queue_name = queue_name
        self._shed = 0

    @property
    def pending(self) -> int:
        """Requests waiting for a worker."""
        return self._requests.qsize()

    @property
    def shed_count(self) -> int:
        """Requests discarded since creation."""
        return self._shed

    @property
    def is_running(self) -> bool:
        return any(not w.done() for w in self._workers)

    def timeout_for(self, receive_count: int) -> int:
        return self._backoff.timeout_for(receive_count)

    def start(self) -> None:
        """Spawn the worker tasks. Must be called from a running event loop."""
        if self.is_running:
            return
        self._workers = [
            asyncio.create_task(self._worker(i), name=f"retry-worker-{i}")
            for i in range(self._num_workers)
        ]
        logger.debug("Retry scheduler started", workers=self._num_workers)

    def submit(self, receipt_handle: str, receive_count: int) -> bool:
        """
        Queue a visibility extension without blocking.

        Returns:
            True if queued, False if the request was shed
        """
        try:
            self._requests.put_nowait(ExtensionRequest(receipt_handle, receive_count))
        except asyncio.QueueFull:
            self._shed += 1
            get_metrics().record_extension_shed(self._queue_name)
            logger.warning(
                "Retry pool full, discarding visibility extension",
                queue=self._queue_name,
                receive_count=receive_count,
                shed_total=self._shed,
            )
            return False
        return True

    async def stop(self, timeout: float | None = None) -> None:
        """
        Stop the workers, first letting them finish queued requests.

        Args:
            timeout: Seconds to wait for the queue to drain (None waits forever)
        """
        if self._workers and self.is_running:
            try:
                await asyncio.wait_for(self._requests.join(), timeout=timeout)
            except asyncio.TimeoutError:
                logger.warning(
                    "Retry scheduler stopped with pending extensions",
                    queue=self._queue_name,
                    pending=self.pending,
                )

        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []

    async def _worker(self, index: int) -> None:
        while True:
            request = await self._requests.get()
            try:
                await self._extend(request)
            finally:
                self._requests.task_done()

    async def _extend(self, request: ExtensionRequest) -> None:
        timeout = self.timeout_for(request.receive_count)
        metrics = get_metrics()
        try:
            await self._queue_service.extend_visibility(
                self._handle, request.receipt_handle, timeout
            )
        except Exception as e:
            # The message reappears when its current window expires
            metrics.record_extension(self._queue_name, succeeded=False)
            logger.error(
                "Failed to extend visibility",
                queue=self._queue_name,
                receive_count=request.receive_count,
                timeout_seconds=timeout,
                error=str(e),
            )
            return

        metrics.record_extension(self._queue_name, succeeded=True)
        logger.debug(
            "Extended visibility for failed message",
            queue=self._queue_name,
            receive_count=request.receive_count,
            timeout_seconds=timeout,
        )
