"""Bounded work queues feeding fetch and process workers."""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

from .constants import (
    DEFAULT_QUEUE_CAPACITY,
    DEFAULT_QUEUE_OVERFLOW,
    DEFAULT_QUEUE_PUT_TIMEOUT_SECONDS,
    QUEUE_OVERFLOW_POLICIES,
)
from .types import QueueItem


LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class EnqueueStatus(str, Enum):
    """Result status for queue put attempts."""

    ENQUEUED = "enqueued"
    SKIPPED_CANCELED = "skipped_canceled"
    SKIPPED_CLOSED = "skipped_closed"
    REJECTED_FULL = "rejected_full"


@dataclass(frozen=True, slots=True)
class EnqueueResult:
    """Outcome of one enqueue attempt."""

    status: EnqueueStatus
    item: QueueItem | None = None

    @property
    def accepted(self) -> bool:
        return self.status == EnqueueStatus.ENQUEUED


class WorkQueue(Generic[T]):
    """FIFO of `QueueItem`s with a hard capacity.

    - `put` honors the overflow policy: `block` waits up to `put_timeout`
      seconds for room, `reject` fails immediately.
    - Each accepted item takes one unit of its session's pending count; the
      consumer releases it once the item is fully handled.
    """

    def __init__(
        self,
        name: str,
        *,
        capacity: int = DEFAULT_QUEUE_CAPACITY,
        overflow: str = DEFAULT_QUEUE_OVERFLOW,
        put_timeout: float = DEFAULT_QUEUE_PUT_TIMEOUT_SECONDS,
    ) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be > 0")
        if overflow not in QUEUE_OVERFLOW_POLICIES:
            raise ValueError(f"overflow must be one of {QUEUE_OVERFLOW_POLICIES}")

        self.name = name
        self.capacity = capacity
        self.overflow = overflow
        self.put_timeout = put_timeout

        self._queue: queue.Queue[QueueItem[T]] = queue.Queue(maxsize=capacity)
        self._lock = threading.Lock()
        self._closed = False

        self._enqueued_count = 0
        self._dequeued_count = 0
        self._rejected_count = 0

    def put(self, item: QueueItem[T]) -> EnqueueResult:
        """Attempt to enqueue one item without ever raising on overflow."""

        if item.session.canceled:
            return EnqueueResult(EnqueueStatus.SKIPPED_CANCELED, item)
        if self.closed:
            return EnqueueResult(EnqueueStatus.SKIPPED_CLOSED, item)

        item.session.task_started()
        try:
            if self.overflow == "block":
                self._queue.put(item, block=True, timeout=self.put_timeout)
            else:
                self._queue.put(item, block=False)
        except queue.Full:
            item.session.task_finished()
            with self._lock:
                self._rejected_count += 1
            LOGGER.warning(
                "%s queue full (capacity=%d), dropping %r",
                self.name,
                self.capacity,
                item.payload if isinstance(item.payload, str) else type(item.payload).__name__,
            )
            return EnqueueResult(EnqueueStatus.REJECTED_FULL, item)

        with self._lock:
            self._enqueued_count += 1
        return EnqueueResult(EnqueueStatus.ENQUEUED, item)

    def take(self, *, timeout: float | None = None) -> QueueItem[T] | None:
        """Pop one item, or `None` if nothing arrives within `timeout`."""

        try:
            item = self._queue.get(block=True, timeout=timeout)
        except queue.Empty:
            return None

        with self._lock:
            self._dequeued_count += 1
        return item

    def done(self, item: QueueItem[T]) -> None:
        """Release an item taken with `take`."""

        self._queue.task_done()
        item.session.task_finished()

    def close(self) -> None:
        with self._lock:
            self._closed = True

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    def qsize(self) -> int:
        return self._queue.qsize()

    def empty(self) -> bool:
        return self._queue.empty()

    def snapshot(self) -> dict[str, int | bool | str]:
        with self._lock:
            return {
                "name": self.name,
                "closed": self._closed,
                "queue_size": self._queue.qsize(),
                "capacity": self.capacity,
                "enqueued": self._enqueued_count,
                "dequeued": self._dequeued_count,
                "rejected_full": self._rejected_count,
            }


__all__ = [
    "EnqueueResult",
    "EnqueueStatus",
    "WorkQueue",
]
