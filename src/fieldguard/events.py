"""Detection event queue: best-effort, batched telemetry.

Events are buffered in a bounded deque (oldest silently dropped past
capacity) and shipped to a sink in fixed-size batches.  A batch the sink
rejects is logged and discarded, never retried.

Usage:
    queue = DetectionQueue(HttpTelemetrySink(url, key))
    queue.enqueue(QueueItem("EMAIL", "example.com", Action.OBSERVED))
    queue.flush()       # usually driven by Sweeper
"""

from __future__ import annotations
import logging
import threading
from collections import deque
from typing import Protocol

from .types import QueueItem

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 100
DEFAULT_BATCH_SIZE = 10


class TelemetrySink(Protocol):
    """Accepts a batch of events; raises on delivery failure."""

    def send_batch(self, items: list[QueueItem]) -> None:
        ...


class DetectionQueue:
    """Bounded, batch-flushed event buffer."""

    __slots__ = ("_sink", "_items", "_batch_size", "_lock", "_flushing", "_dropped")

    def __init__(
        self,
        sink: TelemetrySink | None = None,
        *,
        capacity: int = DEFAULT_CAPACITY,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        if capacity < 1 or batch_size < 1:
            raise ValueError("capacity and batch_size must be positive")
        self._sink = sink
        self._items: deque[QueueItem] = deque(maxlen=capacity)
        self._batch_size = batch_size
        self._lock = threading.Lock()
        self._flushing = False
        self._dropped = 0

    def enqueue(self, item: QueueItem) -> None:
        with self._lock:
            if len(self._items) == self._items.maxlen:
                self._dropped += 1
            self._items.append(item)

    def flush(self) -> int:
        """Deliver everything queued.  Returns the number of items delivered.

        A call made while another flush is running returns 0 immediately.
        """
        with self._lock:
            if self._flushing or self._sink is None:
                return 0
            self._flushing = True
        delivered = 0
        try:
            while True:
                with self._lock:
                    if not self._items:
                        break
                    batch = [self._items.popleft() for _ in range(min(self._batch_size, len(self._items)))]
                try:
                    self._sink.send_batch(batch)
                except Exception as exc:
                    logger.warning("dropped telemetry batch of %d events: %s", len(batch), exc)
                    continue
                delivered += len(batch)
            if delivered:
                logger.debug("delivered %d telemetry events", delivered)
        finally:
            with self._lock:
                self._flushing = False
        return delivered

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def size(self) -> int:
        with self._lock:
            return len(self._items)

    @property
    def dropped(self) -> int:
        """Events evicted because the queue was full."""
        return self._dropped

    @property
    def capacity(self) -> int:
        return self._items.maxlen or 0
