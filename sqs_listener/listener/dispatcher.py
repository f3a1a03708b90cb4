"""
Dispatcher - one poll cycle of the listener engine.

Each cycle:
1. Reads the approximate message count and returns immediately at zero
2. Receives batches until the count is consumed or a receive comes back empty
3. Runs the handler once per message with bounded concurrency
4. Routes outcomes in completion order, so slow handlers never hold up
   acknowledgement of fast ones

Queue errors during count/receive abort the cycle and propagate. Handler
errors become failed outcomes and never leave the worker.
"""

import asyncio
import time
from typing import Any

import structlog

from sqs_listener.listener.config import ListenerConfig
from sqs_listener.listener.handler import MessageHandler, invoke_handler
from sqs_listener.listener.router import OutcomeRouter
from sqs_listener.listener.schemas import CycleResult, Message, Outcome
from sqs_listener.observability.metrics import get_metrics
from sqs_listener.observability.tracing import get_tracer, traced
from sqs_listener.queues.base import QueueService

logger = structlog.get_logger(__name__)
tracer = get_tracer(__name__)


class Dispatcher:
    """
    Pulls messages, fans them out to the handler and collects outcomes.

    Concurrent cycles are safe: each works on the disjoint batch the queue
    handed it and shares only the router's thread-safe sinks.

    Usage:
        dispatcher = Dispatcher(queue_service, handle, handler, router, config)
        result = await dispatcher.run_cycle()
    """

    def __init__(
        self,
        queue_service: QueueService,
        handle: Any,
        handler: MessageHandler,
        router: OutcomeRouter,
        config: ListenerConfig,
        queue_name: str = "",
    ):
        self._queue_service = queue_service
        self._handle = handle
        self._handler = handler
        self._router = router
        self._config = config
        self._queue_name = queue_name

    async def run_cycle(self) -> CycleResult:
        """
        Run one poll cycle.

        Returns:
            Counters for the cycle

        Raises:
            QueueServiceError: If counting or receiving fails
        """
        result = CycleResult()
        start_time = time.monotonic()
        metrics = get_metrics()

        with traced(tracer, "poll_cycle", {"queue": self._queue_name}) as span:
            total = await self._queue_service.approximate_count(self._handle)
            result.approximate_count = total
            logger.debug("Queue depth", queue=self._queue_name, approximate_count=total)

            if total == 0:
                metrics.record_cycle(self._queue_name, "idle", depth=0)
                return result

            while result.received < total:
                messages = await self._queue_service.receive(
                    self._handle,
                    wait_seconds=self._config.receive_wait_seconds,
                    max_messages=self._config.receive_batch_size,
                    visibility_timeout=self._config.visibility_timeout_seconds,
                )
                result.receive_calls += 1

                # The count is approximate; an empty receive means drained
                if not messages:
                    break

                remaining = total - result.received
                result.received += len(messages)
                await self._process_batch(messages, remaining, result)

            span.set_attribute("received", result.received)
            span.set_attribute("failed", result.failed)

        elapsed = time.monotonic() - start_time
        metrics.record_cycle(
            self._queue_name,
            "completed",
            received=result.received,
            depth=total,
            latency=elapsed,
        )
        logger.info(
            "Poll cycle finished",
            queue=self._queue_name,
            **result.to_dict(),
            elapsed_seconds=round(elapsed, 2),
        )
        return result

    async def _process_batch(
        self,
        messages: list[Message],
        remaining: int,
        result: CycleResult,
    ) -> None:
        """Run the handler over a batch and route outcomes as they complete."""
        pool_size = max(1, min(self._config.parallelism, remaining))
        semaphore = asyncio.Semaphore(pool_size)

        tasks = [
            asyncio.create_task(self._run_handler(message, semaphore))
            for message in messages
        ]

        try:
            for next_done in asyncio.as_completed(tasks):
                outcome = await next_done
                if outcome.succeeded:
                    result.succeeded += 1
                else:
                    result.failed += 1
                self._router.route(outcome)
        finally:
            # Cycle cancelled (shutdown): no handler may outlive it
            unfinished = [t for t in tasks if not t.done()]
            for task in unfinished:
                task.cancel()
            if unfinished:
                await asyncio.gather(*unfinished, return_exceptions=True)

    async def _run_handler(self, message: Message, semaphore: asyncio.Semaphore) -> Outcome:
        async with semaphore:
            start_time = time.monotonic()
            try:
                with traced(
                    tracer,
                    "handle_message",
                    {"message_id": message.message_id, "receive_count": message.receive_count},
                ):
                    await invoke_handler(self._handler, message.body)
            except asyncio.CancelledError as e:
                if asyncio.current_task().cancelling():
                    raise
                # Raised by the handler itself, not a cancellation of this task
                return self._handler_failed(message, e, start_time)
            except Exception as e:
                return self._handler_failed(message, e, start_time)

            get_metrics().record_handler_result(
                self._queue_name, succeeded=True, latency=time.monotonic() - start_time
            )
            return Outcome.success(message)

    def _handler_failed(self, message: Message, error: BaseException, start_time: float) -> Outcome:
        get_metrics().record_handler_result(
            self._queue_name, succeeded=False, latency=time.monotonic() - start_time
        )
        logger.error(
            "Handler failed",
            queue=self._queue_name,
            message_id=message.message_id,
            receive_count=message.receive_count,
            error=repr(error),
            exc_info=error,
        )
        return Outcome.failure(message, error)
