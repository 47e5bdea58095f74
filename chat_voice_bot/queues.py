"""Bounded queues for chat backlog and display windows.

This module implements:
1. PendingQueue - the inbound chat queue with a collapse-to-newest policy
2. BoundedLog - newest-first most-recent-N window for observability
"""

import threading
from collections import deque
from dataclasses import dataclass, field
from typing import Generic, Iterator, Optional, TypeVar

from chat_voice_bot.interfaces.events import ChatEvent

T = TypeVar("T")


@dataclass
class PendingQueue:
    """Inbound chat queue that never holds more than one waiting event.

    When an event arrives while the queue still holds unprocessed backlog,
    the backlog is discarded so only the freshest message is answered.
    The event currently being processed is not in the queue, so at most
    one event is in flight and at most one is waiting.

    Usage:
        queue = PendingQueue()
        queue.put(event)          # from the admission filter
        event = queue.get_nowait()  # from the pipeline loop

    Thread-safe: All operations are protected by a lock.
    """

    _queue: deque = field(default_factory=deque)
    _lock: threading.Lock = field(default_factory=threading.Lock)
    _drop_count: int = 0

    def put(self, event: ChatEvent) -> bool:
        """Add an event, collapsing any waiting backlog.

        Args:
            event: The admitted chat event.

        Returns:
            True (the arriving event is always kept).
        """
        with self._lock:
            if self._queue:
                self._drop_count += len(self._queue)
                self._queue.clear()
            self._queue.append(event)
            return True

    def get_nowait(self) -> Optional[ChatEvent]:
        """Remove and return the waiting event, or None if empty."""
        with self._lock:
            if not self._queue:
                return None
            return self._queue.popleft()

    def clear(self) -> int:
        """Drop all waiting events.

        Returns:
            Number of events dropped.
        """
        with self._lock:
            dropped = len(self._queue)
            self._queue.clear()
            self._drop_count += dropped
            return dropped

    def qsize(self) -> int:
        """Return the current queue size."""
        with self._lock:
            return len(self._queue)

    def empty(self) -> bool:
        """Return True if nothing is waiting."""
        with self._lock:
            return not self._queue

    @property
    def drop_count(self) -> int:
        """Return total number of discarded events."""
        with self._lock:
            return self._drop_count


@dataclass
class BoundedLog(Generic[T]):
    """Most-recent-N window, newest first, oldest evicted.

    Usage:
        log = BoundedLog(maxlen=100)
        log.add(event)
        latest = log.items()[0]
    """

    maxlen: int = 100
    _items: deque = field(default=None)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def __post_init__(self):
        if self.maxlen < 1:
            raise ValueError(f"maxlen must be positive, got {self.maxlen}")
        if self._items is None:
            self._items = deque(maxlen=self.maxlen)

    def add(self, item: T) -> None:
        """Record an item as the newest entry."""
        with self._lock:
            self._items.appendleft(item)

    def items(self) -> list[T]:
        """Return a newest-first copy of the window."""
        with self._lock:
            return list(self._items)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(self.items())
