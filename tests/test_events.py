"""Tests for the detection event queue."""

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

import pytest

from fieldguard.events import DetectionQueue
from fieldguard.types import Action, QueueItem


class RecordingSink:
    def __init__(self, fail_on=()):
        self.batches = []
        self.fail_on = set(fail_on)
        self.calls = 0

    def send_batch(self, items):
        self.calls += 1
        if self.calls in self.fail_on:
            raise ConnectionError("sink unavailable")
        self.batches.append(list(items))


def _item(i=0):
    return QueueItem(category="EMAIL", context=f"site{i}.example", action=Action.OBSERVED)


# ── Queue ────────────────────────────────────────────────────────────

def test_flush_delivers_in_batches():
    sink = RecordingSink()
    queue = DetectionQueue(sink, batch_size=10)
    for i in range(25):
        queue.enqueue(_item(i))
    assert queue.flush() == 25
    assert [len(b) for b in sink.batches] == [10, 10, 5]
    assert queue.size == 0


def test_capacity_drops_oldest():
    sink = RecordingSink()
    queue = DetectionQueue(sink, capacity=100)
    for i in range(105):
        queue.enqueue(_item(i))
    assert queue.size == 100
    assert queue.dropped == 5
    queue.flush()
    assert sink.batches[0][0].context == "site5.example"


def test_failed_batch_is_dropped_not_retried():
    sink = RecordingSink(fail_on={1})
    queue = DetectionQueue(sink, batch_size=10)
    for i in range(15):
        queue.enqueue(_item(i))
    assert queue.flush() == 5
    assert queue.size == 0
    assert sink.calls == 2
    assert queue.flush() == 0


def test_reentrant_flush_is_noop():
    queue = None
    nested = []

    class ReentrantSink:
        def send_batch(self, items):
            nested.append(queue.flush())

    queue = DetectionQueue(ReentrantSink())
    queue.enqueue(_item())
    assert queue.flush() == 1
    assert nested == [0]


def test_flush_without_sink_keeps_items():
    queue = DetectionQueue()
    queue.enqueue(_item())
    assert queue.flush() == 0
    assert queue.size == 1


def test_invalid_sizes_rejected():
    with pytest.raises(ValueError):
        DetectionQueue(capacity=0)


def test_queue_item_wire_format():
    item = QueueItem("CREDIT_CARD", "shop.example", Action.MASKED, {"source": "builtin"}, enqueued_at=1.5)
    assert item.to_dict() == {
        "type": "CREDIT_CARD",
        "domain": "shop.example",
        "action": "anonymized",
        "metadata": {"source": "builtin"},
        "timestamp": 1500,
    }
