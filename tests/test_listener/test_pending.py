"""Tests for the bounded pending-delete buffer."""

import threading

import pytest

from sqs_listener.listener.pending import PendingDeleteSet


class TestPendingDeleteSet:
    """Tests for offer/drain semantics."""

    def test_offer_and_drain_in_order(self):
        pending = PendingDeleteSet(capacity=5)
        for i in range(3):
            assert pending.offer(f"rh-{i}")

        assert len(pending) == 3
        assert pending.drain(10) == ["rh-0", "rh-1", "rh-2"]
        assert pending.is_empty()

    def test_drain_respects_max_items(self):
        pending = PendingDeleteSet(capacity=30)
        for i in range(25):
            pending.offer(f"rh-{i}")

        first = pending.drain(10)
        assert len(first) == 10
        assert len(pending) == 15

    def test_full_buffer_rejects_without_blocking(self):
        """A full buffer drops new handles instead of waiting."""
        pending = PendingDeleteSet(capacity=2)
        assert pending.offer("a")
        assert pending.offer("b")
        assert pending.offer("c") is False
        assert pending.drain(10) == ["a", "b"]

    def test_capacity_frees_after_drain(self):
        pending = PendingDeleteSet(capacity=1)
        pending.offer("a")
        pending.drain(1)
        assert pending.offer("b")

    def test_drain_empty(self):
        assert PendingDeleteSet(capacity=1).drain(10) == []

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            PendingDeleteSet(capacity=0)

    def test_concurrent_producers(self):
        """Offers from many threads never exceed capacity or lose accepted handles."""
        pending = PendingDeleteSet(capacity=500)
        accepted: list[str] = []
        lock = threading.Lock()

        def produce(worker: int) -> None:
            for i in range(100):
                handle = f"rh-{worker}-{i}"
                if pending.offer(handle):
                    with lock:
                        accepted.append(handle)

        threads = [threading.Thread(target=produce, args=(w,)) for w in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(accepted) == 500
        drained = pending.drain(1000)
        assert sorted(drained) == sorted(accepted)
