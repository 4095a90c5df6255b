"""Unbounded, order-preserving hand-off between the delivery thread and the consumer."""

from __future__ import annotations

import queue

from .events import StreamEvent


class EventQueue:
    """Thread-safe FIFO of stream events.

    Writers: subscription handlers and the error callback, on the transport's
    delivery thread. Reader: a single consumer thread calling pop().
    put() never blocks. pop() blocks until an event is available, with no
    timeout.
    """

    def __init__(self) -> None:
        self._queue: queue.SimpleQueue[StreamEvent] = queue.SimpleQueue()

    def put(self, event: StreamEvent) -> None:
        self._queue.put(event)

    def pop(self) -> StreamEvent:
        """Remove and return the oldest event, waiting for one if necessary."""
        return self._queue.get()

    def pop_nowait(self) -> StreamEvent | None:
        """Remove and return the oldest event, or None if the queue is empty."""
        try:
            return self._queue.get_nowait()
        except queue.Empty:
            return None

    def empty(self) -> bool:
        return self._queue.empty()

    def __len__(self) -> int:
        return self._queue.qsize()
