"""Tests for the pending queue and bounded display log."""

import pytest

from chat_voice_bot.queues import BoundedLog, PendingQueue
from conftest import make_event


class TestPendingQueue:
    """Tests for collapse-to-newest queue behavior."""

    def test_put_into_empty_queue(self):
        queue = PendingQueue()
        event = make_event()
        assert queue.put(event) is True
        assert queue.qsize() == 1
        assert queue.drop_count == 0

    def test_put_collapses_backlog(self):
        """Admitting a new event while one waits leaves only the new one."""
        queue = PendingQueue()
        first, second, third = make_event(message="1"), make_event(message="2"), make_event(message="3")

        queue.put(first)
        queue.put(second)
        queue.put(third)

        assert queue.qsize() == 1
        assert queue.get_nowait() is third
        assert queue.drop_count == 2

    def test_length_is_one_after_every_put(self):
        queue = PendingQueue()
        for i in range(20):
            queue.put(make_event(message=str(i)))
            assert queue.qsize() == 1

    def test_same_event_twice_keeps_length_one(self):
        queue = PendingQueue()
        event = make_event()
        queue.put(event)
        queue.put(event)
        assert queue.qsize() == 1
        assert queue.get_nowait() is event

    def test_get_nowait_empty_returns_none(self):
        assert PendingQueue().get_nowait() is None

    def test_clear_counts_drops(self):
        queue = PendingQueue()
        queue.put(make_event())
        assert queue.clear() == 1
        assert queue.empty()
        assert queue.drop_count == 1
        assert queue.clear() == 0


class TestBoundedLog:
    """Tests for the newest-first window."""

    def test_newest_first(self):
        log = BoundedLog(maxlen=5)
        for i in range(3):
            log.add(i)
        assert log.items() == [2, 1, 0]

    def test_oldest_evicted(self):
        log = BoundedLog(maxlen=100)
        for i in range(150):
            log.add(i)
        items = log.items()
        assert len(log) == 100
        assert items[0] == 149
        assert items[-1] == 50

    def test_items_is_a_copy(self):
        log = BoundedLog(maxlen=3)
        log.add("a")
        items = log.items()
        items.append("b")
        assert log.items() == ["a"]

    def test_iteration(self):
        log = BoundedLog(maxlen=3)
        log.add("a")
        log.add("b")
        assert list(log) == ["b", "a"]

    def test_invalid_maxlen(self):
        with pytest.raises(ValueError):
            BoundedLog(maxlen=0)
