"""
Thread-safe data structures shared by chapter workers.
"""

import threading
from typing import Dict, Optional


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

    def decrement(self, amount: int = 1) -> int:
        """
        Atomically decrement counter and return new value.

        Args:
            amount: Amount to decrement by (default: 1)

        Returns:
            New counter value after decrement
        """
        with self._lock:
            self._value -= amount
            return self._value

    def get_value(self) -> int:
        """Get current counter value."""
        with self._lock:
            return self._value

    def __repr__(self) -> str:
        return f"{type(self).__name__}(value={self.get_value()})"


class HighWaterCounter(ThreadSafeCounter):
    """Counter that also remembers the highest value it has reached."""

    def __init__(self, initial_value: int = 0):
        super().__init__(initial_value)
        self._peak = initial_value

    def increment(self, amount: int = 1) -> int:
        with self._lock:
            self._value += amount
            if self._value > self._peak:
                self._peak = self._value
            return self._value

    def get_peak(self) -> int:
        with self._lock:
            return self._peak


class ExpectedCountCache:
    """Chapter number -> link count computed earlier in the same run.

    Lives only as long as the process; nothing is written to disk.
    """

    def __init__(self, initial_items: Optional[Dict[int, int]] = None):
        self._counts: Dict[int, int] = dict(initial_items) if initial_items else {}
        self._lock = threading.Lock()

    def get(self, chapter_number: int) -> Optional[int]:
        with self._lock:
            return self._counts.get(chapter_number)

    def put(self, chapter_number: int, count: int) -> None:
        with self._lock:
            self._counts[chapter_number] = count

    def __contains__(self, chapter_number: object) -> bool:
        with self._lock:
            return chapter_number in self._counts

    def __len__(self) -> int:
        with self._lock:
            return len(self._counts)
