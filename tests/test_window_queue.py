"""
Tests for the TimeWindowQueue hand-off between VAD and ASR.
"""

import threading
import time

import pytest
from subtitler.spans import TimeWindow
from subtitler.window_queue import TimeWindowQueue


@pytest.fixture
def queue():
    q = TimeWindowQueue()
    for w in (TimeWindow(5.0, 6.0), TimeWindow(0.0, 1.0), TimeWindow(2.0, 3.0)):
        q.enqueue(w)
    return q


def _dequeue_in_thread(q, current_sec):
    results = []
    t = threading.Thread(target=lambda: results.append(q.try_dequeue(current_sec)), daemon=True)
    t.start()
    return t, results


class TestSelectionPolicy:
    """Test which window try_dequeue picks."""

    def test_window_containing_current_time(self, queue):
        assert queue.try_dequeue(2.5) == TimeWindow(2.0, 3.0)

    def test_containing_beats_later_window(self, queue):
        queue.enqueue(TimeWindow(2.6, 2.7))
        assert queue.try_dequeue(2.5) == TimeWindow(2.0, 3.0)

    def test_earliest_window_after_current_time(self, queue):
        assert queue.try_dequeue(4.0) == TimeWindow(5.0, 6.0)

    def test_earliest_overall_when_all_behind(self, queue):
        assert queue.try_dequeue(10.0) == TimeWindow(0.0, 1.0)

    def test_selected_window_removed(self, queue):
        queue.try_dequeue(2.5)
        assert len(queue) == 2
        assert queue.try_dequeue(2.5) == TimeWindow(5.0, 6.0)


class TestDrain:
    """Test termination once producing has finished."""

    def test_empty_and_finished_returns_none(self):
        q = TimeWindowQueue()
        q.mark_producing_finished()
        assert q.try_dequeue(0.0) is None

    def test_drains_remaining_windows_after_finish(self, queue):
        queue.mark_producing_finished()
        drained = [queue.try_dequeue(0.0) for _ in range(3)]
        assert sorted(drained) == [
            TimeWindow(0.0, 1.0), TimeWindow(2.0, 3.0), TimeWindow(5.0, 6.0)
        ]
        assert queue.try_dequeue(0.0) is None


class TestBlocking:
    """Test blocking semantics with a concurrent producer."""

    def test_blocks_until_enqueue(self):
        q = TimeWindowQueue()
        t, results = _dequeue_in_thread(q, 0.0)
        time.sleep(0.1)
        assert t.is_alive()

        q.enqueue(TimeWindow(1.0, 2.0))
        t.join(timeout=2.0)
        assert not t.is_alive()
        assert results == [TimeWindow(1.0, 2.0)]

    def test_finish_wakes_blocked_consumer(self):
        q = TimeWindowQueue()
        t, results = _dequeue_in_thread(q, 0.0)
        time.sleep(0.1)

        q.mark_producing_finished()
        t.join(timeout=2.0)
        assert not t.is_alive()
        assert results == [None]

    def test_blocks_again_after_draining_unfinished_queue(self):
        q = TimeWindowQueue()
        q.enqueue(TimeWindow(0.0, 1.0))
        assert q.try_dequeue(0.0) == TimeWindow(0.0, 1.0)

        t, results = _dequeue_in_thread(q, 0.0)
        time.sleep(0.1)
        assert t.is_alive()

        q.mark_producing_finished()
        t.join(timeout=2.0)
        assert results == [None]

    def test_concurrent_producer_all_windows_consumed(self):
        q = TimeWindowQueue()
        windows = [TimeWindow(float(i), float(i) + 0.5) for i in range(50)]

        def produce():
            for w in reversed(windows):
                q.enqueue(w)
            q.mark_producing_finished()

        consumed = []
        producer = threading.Thread(target=produce)
        producer.start()
        while True:
            w = q.try_dequeue(25.2)
            if w is None:
                break
            consumed.append(w)
        producer.join()

        assert sorted(consumed) == windows
