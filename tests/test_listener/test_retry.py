"""Tests for the visibility extension pool."""

import asyncio

import pytest

from conftest import FakeQueueService
from sqs_listener.listener.exceptions import QueueServiceError
from sqs_listener.listener.retry import RetryScheduler


@pytest.fixture
def service():
    return FakeQueueService()


class TestRetryScheduler:
    """Tests for RetryScheduler submission, backoff and shedding."""

    @pytest.mark.asyncio
    async def test_extends_with_backoff(self, service):
        scheduler = RetryScheduler(service, "fake://q", base_visibility_timeout=30, workers=2)
        scheduler.start()

        assert scheduler.submit("rh-1", receive_count=1)
        assert scheduler.submit("rh-3", receive_count=3)
        await scheduler.stop(timeout=5)

        assert sorted(service.extend_calls) == [("rh-1", 60), ("rh-3", 120)]

    def test_timeout_formula(self, service):
        scheduler = RetryScheduler(service, "fake://q", base_visibility_timeout=10)
        assert scheduler.timeout_for(0) == 10
        assert scheduler.timeout_for(1) == 20
        assert scheduler.timeout_for(4) == 50

    @pytest.mark.asyncio
    async def test_sheds_when_queue_full(self, service):
        """Submissions beyond capacity are dropped without blocking or raising."""
        scheduler = RetryScheduler(service, "fake://q", base_visibility_timeout=30, capacity=2)

        assert scheduler.submit("rh-1", 1)
        assert scheduler.submit("rh-2", 1)
        assert scheduler.submit("rh-3", 1) is False
        assert scheduler.submit("rh-4", 1) is False
        assert scheduler.shed_count == 2
        assert scheduler.pending == 2

        scheduler.start()
        await scheduler.stop(timeout=5)

        handles = [h for h, _ in service.extend_calls]
        assert sorted(handles) == ["rh-1", "rh-2"]

    @pytest.mark.asyncio
    async def test_extension_failure_is_swallowed(self, service):
        service.extend_error = QueueServiceError("boom", operation="change_message_visibility")
        scheduler = RetryScheduler(service, "fake://q", base_visibility_timeout=30, workers=1)
        scheduler.start()

        scheduler.submit("rh-1", 1)
        scheduler.submit("rh-2", 2)
        await scheduler.stop(timeout=5)

        # Both attempted, worker survived the first failure
        assert [h for h, _ in service.extend_calls] == ["rh-1", "rh-2"]

    @pytest.mark.asyncio
    async def test_stop_is_safe_without_start(self, service):
        scheduler = RetryScheduler(service, "fake://q", base_visibility_timeout=30)
        await scheduler.stop(timeout=1)
        assert not scheduler.is_running

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, service):
        scheduler = RetryScheduler(service, "fake://q", base_visibility_timeout=30, workers=3)
        scheduler.start()
        workers = list(scheduler._workers)
        scheduler.start()
        assert scheduler._workers == workers
        await scheduler.stop(timeout=1)

    @pytest.mark.asyncio
    async def test_stop_times_out_on_slow_backend(self, service):
        release = asyncio.Event()

        async def slow_extend(handle, receipt_handle, timeout_seconds):
            await release.wait()

        service.extend_visibility = slow_extend
        scheduler = RetryScheduler(service, "fake://q", base_visibility_timeout=30, workers=1)
        scheduler.start()
        scheduler.submit("rh-1", 1)
        scheduler.submit("rh-2", 1)

        await scheduler.stop(timeout=0.05)
        assert not scheduler.is_running
