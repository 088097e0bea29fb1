"""Closable FIFO queue shared between two pipeline stages."""

import threading
from collections import deque


class _Sentinel:
    def __init__(self, name: str):
        self._name = name

    def __repr__(self) -> str:
        return self._name


EMPTY = _Sentinel("EMPTY")
CLOSED = _Sentinel("CLOSED")


class QueueClosedError(RuntimeError):
    """Raised when pushing to a queue that has already been closed."""


class BlockingQueue:
    """Thread-safe FIFO with a one-way "closed" state used for shutdown.

    ``blocking_pop`` keeps delivering queued items after ``close()``; it only
    returns ``CLOSED`` once the queue is both closed and drained. ``try_pop``
    never waits and returns ``EMPTY`` when nothing is queued.
    """

    def __init__(self):
        self._items: deque = deque()
        self._lock = threading.Lock()
        self._not_empty = threading.Condition(self._lock)
        self._closed = False

    def push(self, item) -> None:
        with self._not_empty:
            if self._closed:
                raise QueueClosedError("push on closed queue")
            self._items.append(item)
            self._not_empty.notify()

    def try_pop(self):
        with self._lock:
            if self._items:
                return self._items.popleft()
            return EMPTY

    def blocking_pop(self, timeout: float | None = None):
        """Wait for the next item.

        Returns the item, ``CLOSED`` when closed and drained, or ``EMPTY`` if
        *timeout* seconds pass with nothing to deliver.
        """
        with self._not_empty:
            if not self._not_empty.wait_for(lambda: self._items or self._closed, timeout):
                return EMPTY
            if self._items:
                return self._items.popleft()
            return CLOSED

    def close(self) -> None:
        with self._not_empty:
            self._closed = True
            self._not_empty.notify_all()

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    def is_empty(self) -> bool:
        with self._lock:
            return not self._items

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
