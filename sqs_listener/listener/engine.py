"""
SqsListener - wires the dispatcher, delete batcher and retry scheduler onto
two fixed-rate schedules.

Runs as a long-lived service that:
1. Resolves the queue once at start (failure means the engine never starts)
2. Starts a poll cycle every polling interval
3. Drains acknowledged receipt handles every polling interval, offset by half
4. Extends visibility of failed messages on a small bounded pool
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import structlog

from sqs_listener.listener.config import ListenerConfig, load_listener_config
from sqs_listener.listener.deleter import DeleteBatcher
from sqs_listener.listener.dispatcher import Dispatcher
from sqs_listener.listener.handler import MessageHandler
from sqs_listener.listener.pending import PendingDeleteSet
from sqs_listener.listener.retry import RetryScheduler
from sqs_listener.listener.router import OutcomeRouter
from sqs_listener.listener.schemas import CycleResult
from sqs_listener.observability.metrics import get_metrics
from sqs_listener.queues.base import QueueService

logger = structlog.get_logger(__name__)

FaultReporter = Callable[[BaseException], None]


def log_fault(error: BaseException) -> None:
    """Default fault reporter: log the failed cycle with its traceback."""
    logger.error("Poll cycle failed", error=str(error), exc_info=error)


class SqsListener:
    """
    Concurrent consumer engine for one queue.

    Features:
    - Bounded handler parallelism (1-10) per cycle
    - Batched deletes, decoupled from processing
    - Visibility backoff for failures, shed under overload
    - Single-flight poll cycles unless allow_overlapping_cycles is set
    - Graceful shutdown with a final delete drain

    Usage:
        listener = SqsListener("orders", process, queue_service=SqsQueueService())
        await listener.start()  # Runs until stop()
    """

    def __init__(
        self,
        queue_name: str,
        handler: MessageHandler,
        queue_service: QueueService | None = None,
        config: ListenerConfig | None = None,
        fault_reporter: FaultReporter | None = None,
    ):
        """
        Initialize the listener.

        Args:
            queue_name: Logical queue name resolved via lookup_queue()
            handler: process(body) callable, sync or async
            queue_service: Queue backend (or create from settings)
            config: Engine configuration (or load from environment)
            fault_reporter: Receives exceptions that abort a poll cycle

        Raises:
            ConfigurationError: If the environment configuration is invalid
        """
        if queue_service is None:
            from sqs_listener.queues import create_queue_service

            queue_service = create_queue_service()

        self._queue_name = queue_name
        self._handler = handler
        self._queue_service = queue_service
        self._config = config or load_listener_config()
        self._fault_reporter = fault_reporter or log_fault

        self._pending = PendingDeleteSet(self._config.delete_queue_capacity)
        self._handle: Any = None
        self._retry_scheduler: RetryScheduler | None = None
        self._dispatcher: Dispatcher | None = None
        self._delete_batcher: DeleteBatcher | None = None

        self._running = False
        self._stop_event: asyncio.Event | None = None
        self._schedules: list[asyncio.Task] = []
        self._cycles: set[asyncio.Task] = set()

        logger.info(
            "SqsListener initialized",
            queue=queue_name,
            backend=queue_service.name,
            parallelism=self._config.parallelism,
            polling_interval_seconds=self._config.polling_interval_seconds,
            visibility_timeout_seconds=self._config.visibility_timeout_seconds,
        )

    @property
    def config(self) -> ListenerConfig:
        return self._config

    @property
    def queue_name(self) -> str:
        return self._queue_name

    @property
    def pending_deletes(self) -> int:
        return len(self._pending)

    @property
    def retry_scheduler(self) -> RetryScheduler | None:
        return self._retry_scheduler

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_connected(self) -> bool:
        return self._dispatcher is not None

    async def connect(self) -> None:
        """Resolve the queue and build the components. Idempotent."""
        if self.is_connected:
            return

        self._handle = await self._queue_service.lookup_queue(self._queue_name)
        self._retry_scheduler = RetryScheduler(
            self._queue_service,
            self._handle,
            base_visibility_timeout=self._config.visibility_timeout_seconds,
            workers=self._config.retry_workers,
            capacity=self._config.retry_queue_capacity,
            queue_name=self._queue_name,
        )
        router = OutcomeRouter(self._pending, self._retry_scheduler, self._queue_name)
        self._dispatcher = Dispatcher(
            self._queue_service,
            self._handle,
            self._handler,
            router,
            self._config,
            queue_name=self._queue_name,
        )
        self._delete_batcher = DeleteBatcher(
            self._queue_service,
            self._handle,
            self._pending,
            queue_name=self._queue_name,
        )

    async def start(self) -> None:
        """
        Start both schedules and run until stop() is called.

        Raises:
            QueueServiceError: If the queue cannot be resolved
        """
        await self.connect()
        self._stop_event = asyncio.Event()
        self._running = True
        self._retry_scheduler.start()

        interval = self._config.polling_interval_seconds
        self._schedules = [
            asyncio.create_task(
                self._run_periodically(self._poll_tick, 0.0, interval),
                name=f"poll-{self._queue_name}",
            ),
            asyncio.create_task(
                self._run_periodically(self._delete_tick, self._config.delete_offset_seconds, interval),
                name=f"delete-{self._queue_name}",
            ),
        ]
        logger.info("Starting listener", queue=self._queue_name)

        try:
            await self._stop_event.wait()
        finally:
            await self._shutdown()

    async def stop(self) -> None:
        """Ask a running start() to shut down gracefully."""
        logger.info("Stopping listener", queue=self._queue_name)
        self._running = False
        if self._stop_event is not None:
            self._stop_event.set()

    async def poll_once(self) -> CycleResult:
        """
        Run a single poll cycle now.

        Raises:
            QueueServiceError: If counting or receiving fails
        """
        await self.connect()
        return await self._dispatcher.run_cycle()

    async def delete_once(self) -> int:
        """Drain the delete buffer once. Returns handles deleted."""
        await self.connect()
        return await self._delete_batcher.run_once()

    async def run_once(self) -> dict[str, int]:
        """
        Poll, wait for visibility extensions, then delete.

        Useful for cron-style runs and smoke tests.
        """
        await self.connect()
        self._retry_scheduler.start()
        try:
            result = await self.poll_once()
        finally:
            await self._retry_scheduler.stop(timeout=self._config.shutdown_timeout_seconds)
        deleted = await self.delete_once()
        return {**result.to_dict(), "deleted": deleted}

    async def health_check(self) -> dict[str, Any]:
        """
        Check health of the listener.

        Returns:
            Dictionary with health status
        """
        queue_healthy = False
        depth = None
        if self.is_connected:
            try:
                depth = await self._queue_service.approximate_count(self._handle)
                queue_healthy = True
            except Exception as e:
                logger.warning("Queue health check failed", queue=self._queue_name, error=str(e))

        return {
            "running": self._running,
            "queue": self._queue_name,
            "queue_healthy": queue_healthy,
            "approximate_count": depth,
            "pending_deletes": self.pending_deletes,
            "pending_extensions": self._retry_scheduler.pending if self._retry_scheduler else 0,
            "in_flight_cycles": len(self._cycles),
        }

    async def _run_periodically(
        self,
        tick: Callable[[], Awaitable[None]],
        initial_delay: float,
        interval: float,
    ) -> None:
        """Call tick at a fixed rate. A late tick runs immediately, never twice."""
        loop = asyncio.get_running_loop()
        next_run = loop.time() + initial_delay
        while True:
            delay = next_run - loop.time()
            if delay > 0:
                await asyncio.sleep(delay)
            await tick()
            next_run = max(next_run + interval, loop.time())

    async def _poll_tick(self) -> None:
        if self._cycles and not self._config.allow_overlapping_cycles:
            get_metrics().record_cycle(self._queue_name, "skipped")
            logger.info(
                "Previous poll cycle still running, skipping tick",
                queue=self._queue_name,
                in_flight=len(self._cycles),
            )
            return

        task = asyncio.create_task(self._guarded_cycle())
        self._cycles.add(task)
        task.add_done_callback(self._cycles.discard)

    async def _guarded_cycle(self) -> None:
        try:
            await self._dispatcher.run_cycle()
        except Exception as e:
            get_metrics().record_cycle(self._queue_name, "error")
            self._report_fault(e)

    async def _delete_tick(self) -> None:
        try:
            await self._delete_batcher.run_once()
        except Exception as e:
            self._report_fault(e)

    def _report_fault(self, error: BaseException) -> None:
        try:
            self._fault_reporter(error)
        except Exception:
            logger.exception("Fault reporter raised", queue=self._queue_name)

    async def _shutdown(self) -> None:
        """Stop schedules, let in-flight cycles finish, flush deletes."""
        self._running = False

        for schedule in self._schedules:
            schedule.cancel()
        await asyncio.gather(*self._schedules, return_exceptions=True)
        self._schedules = []

        if self._cycles:
            done, still_running = await asyncio.wait(
                set(self._cycles), timeout=self._config.shutdown_timeout_seconds
            )
            for task in still_running:
                task.cancel()
            if still_running:
                await asyncio.gather(*still_running, return_exceptions=True)
                logger.warning(
                    "Cancelled poll cycles on shutdown",
                    queue=self._queue_name,
                    cancelled=len(still_running),
                )

        deleted = await self._delete_batcher.run_once()
        await self._retry_scheduler.stop(timeout=self._config.shutdown_timeout_seconds)
        logger.info("Listener stopped", queue=self._queue_name, final_deleted=deleted)
