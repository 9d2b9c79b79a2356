"""
Snapshot Cell - single-slot latest-value exchange between threads

Producers swap in a new immutable value; consumers take a reference.
The lock is only held for the swap or the read, never while a consumer
encodes or writes the value.
"""

import threading
import time
from typing import Generic, TypeVar

T = TypeVar("T")


class SnapshotCell(Generic[T]):
    """Holds the most recent immutable value (frame, skeleton set)."""

    def __init__(self, initial: T | None = None):
        self._lock = threading.Lock()
        self._value: T | None = initial
        self._version = 0 if initial is None else 1
        self._updated_at: float | None = None if initial is None else time.monotonic()

    def publish(self, value: T) -> None:
        """Swap in a new value. The previous value is released."""
        with self._lock:
            self._value = value
            self._version += 1
            self._updated_at = time.monotonic()

    def snapshot(self) -> T | None:
        """Current value, or None if nothing was published yet."""
        with self._lock:
            return self._value

    @property
    def version(self) -> int:
        """Number of publishes so far."""
        return self._version

    @property
    def age_seconds(self) -> float | None:
        updated = self._updated_at
        if updated is None:
            return None
        return time.monotonic() - updated

    def clear(self) -> None:
        with self._lock:
            self._value = None
