"""
Thread-safe data structures shared by crawl workers.
"""

import threading
from typing import Iterable, List, Optional

from textbook_catalog.data.models import TextbookRecord


class ThreadSafeCounter:
    """Thread-safe counter with atomic operations."""

    def __init__(self, initial_value: int = 0):
        """
        Initialize counter with initial value.

        Args:
            initial_value: Starting value for the counter
        """
        self._value = initial_value
        self._lock = threading.Lock()

    def increment(self, amount: int = 1) -> int:
        """
        Atomically increment counter and return new value.

        Args:
            amount: Amount to increment by (default: 1)

        Returns:
            New counter value after increment
        """
        with self._lock:
            self._value += amount
            return self._value

    def get_value(self) -> int:
        """Get current counter value."""
        with self._lock:
            return self._value

    def __repr__(self) -> str:
        return f"ThreadSafeCounter(value={self.get_value()})"


class CountDownLatch:
    """
    Completion barrier counted down once per finished task.

    ``wait()`` blocks until the count reaches zero.
    """

    def __init__(self, count: int):
        if count < 0:
            raise ValueError("count must be non-negative")
        self._count = count
        self._condition = threading.Condition()

    def count_down(self) -> None:
        """Decrement the count, releasing waiters when it reaches zero."""
        with self._condition:
            if self._count > 0:
                self._count -= 1
                if self._count == 0:
                    self._condition.notify_all()

    def get_count(self) -> int:
        with self._condition:
            return self._count

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the count reaches zero.

        Args:
            timeout: Optional timeout in seconds

        Returns:
            True if the count reached zero, False on timeout
        """
        with self._condition:
            return self._condition.wait_for(lambda: self._count == 0, timeout=timeout)


class ResultAggregator:
    """
    Append-only collection of textbook records shared by all city tasks.

    Records are appended a whole batch at a time under a lock, so a batch
    from one district never interleaves with another task's batch.
    """

    def __init__(self):
        self._records: List[TextbookRecord] = []
        self._lock = threading.Lock()

    def append_batch(self, records: Iterable[TextbookRecord]) -> int:
        """
        Atomically append a batch of records.

        Args:
            records: Records extracted from one district page

        Returns:
            Number of records appended
        """
        batch = list(records)
        with self._lock:
            self._records.extend(batch)
        return len(batch)

    def snapshot(self) -> List[TextbookRecord]:
        """
        Copy of all records in append order.

        Meant to be called after every producer has joined.
        """
        with self._lock:
            return list(self._records)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
