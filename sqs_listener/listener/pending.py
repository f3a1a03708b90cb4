"""Bounded buffer of receipt handles waiting to be deleted."""

import threading
from collections import deque


class PendingDeleteSet:
    """
    Bounded, thread-safe collection of receipt handles awaiting deletion.

    Producers call offer() once per successful outcome; the DeleteBatcher is
    the only consumer and removes handles with drain(). offer() never blocks:
    when the buffer is full the handle is rejected and the message will
    simply be redelivered once its visibility timeout expires.

    Usage:
        pending = PendingDeleteSet(capacity=1000)
        if not pending.offer(receipt_handle):
            ...  # dropped
        batch = pending.drain(10)
    """

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._capacity = capacity
        self._items: deque[str] = deque()
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def offer(self, receipt_handle: str) -> bool:
        """Add a handle without blocking. Returns False if the buffer is full."""
        with self._lock:
            if len(self._items) >= self._capacity:
                return False
            self._items.append(receipt_handle)
            return True

    def drain(self, max_items: int) -> list[str]:
        """Atomically remove and return up to max_items handles, oldest first."""
        with self._lock:
            count = min(max_items, len(self._items))
            return [self._items.popleft() for _ in range(count)]

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def is_empty(self) -> bool:
        return len(self) == 0
