from __future__ import annotations

import threading
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class LatestValue(Generic[T]):
    """
    Single-slot handoff between the dispatch loop and a consumer.

    Publishing overwrites whatever is pending, so the consumer only ever sees
    the newest snapshot and the producer never waits on it.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._value: Optional[T] = None
        self._pending = False
        self._version = 0

    def publish(self, value: T) -> None:
        with self._lock:
            self._value = value
            self._pending = True
            self._version += 1

    def latest(self) -> Optional[T]:
        with self._lock:
            return self._value

    def take(self) -> Optional[T]:
        """Return the value published since the last take, or None."""
        with self._lock:
            if not self._pending:
                return None
            self._pending = False
            return self._value

    def clear(self) -> None:
        with self._lock:
            self._value = None
            self._pending = False

    @property
    def version(self) -> int:
        with self._lock:
            return self._version
