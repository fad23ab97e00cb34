"""Tests for the task scheduler."""

import threading

from iis_tail.scheduler import TaskScheduler


class TestCallLater:
    def test_runs_when_due(self, scheduler, clock):
        calls = []
        scheduler.call_later(5, lambda: calls.append("a"))
        assert scheduler.run_pending() == 0
        clock.advance(5)
        assert scheduler.run_pending() == 1
        assert calls == ["a"]
        clock.advance(5)
        assert scheduler.run_pending() == 0

    def test_due_order(self, scheduler, clock):
        calls = []
        scheduler.call_later(3, lambda: calls.append("late"))
        scheduler.call_later(1, lambda: calls.append("early"))
        clock.advance(3)
        scheduler.run_pending()
        assert calls == ["early", "late"]

    def test_cancel(self, scheduler, clock):
        calls = []
        handle = scheduler.call_later(1, lambda: calls.append("a"))
        handle.cancel()
        assert handle.cancelled
        assert scheduler.pending() == 0
        clock.advance(1)
        scheduler.run_pending()
        assert calls == []

    def test_task_can_rearm_itself(self, scheduler, clock):
        calls = []

        def task():
            calls.append(clock())
            scheduler.call_later(2, task)

        scheduler.call_later(2, task)
        for _ in range(3):
            clock.advance(2)
            scheduler.run_pending()
        assert calls == [1002.0, 1004.0, 1006.0]
        assert scheduler.pending() == 1


class TestCallEvery:
    def test_repeats(self, scheduler, clock):
        calls = []
        scheduler.call_every(10, lambda: calls.append(1))
        for _ in range(3):
            clock.advance(10)
            scheduler.run_pending()
        assert len(calls) == 3

    def test_cancel_stops_repeats(self, scheduler, clock):
        calls = []
        handle = scheduler.call_every(10, lambda: calls.append(1))
        clock.advance(10)
        scheduler.run_pending()
        handle.cancel()
        clock.advance(10)
        scheduler.run_pending()
        assert len(calls) == 1


class TestErrors:
    def test_failing_task_does_not_stop_others(self, scheduler, clock, caplog):
        calls = []

        def boom():
            raise RuntimeError("boom")

        scheduler.call_later(1, boom, name="boom")
        scheduler.call_later(1, lambda: calls.append("ok"))
        clock.advance(1)
        assert scheduler.run_pending() == 2
        assert calls == ["ok"]
        assert "Task boom failed" in caplog.text

    def test_failing_repeating_task_keeps_repeating(self, scheduler, clock):
        calls = []

        def flaky():
            calls.append(1)
            raise OSError("disk")

        scheduler.call_every(1, flaky)
        for _ in range(2):
            clock.advance(1)
            scheduler.run_pending()
        assert len(calls) == 2


class TestDispatcher:
    def test_background_thread_runs_tasks(self):
        scheduler = TaskScheduler()
        done = threading.Event()
        scheduler.start()
        try:
            scheduler.call_later(0.01, done.set)
            assert done.wait(timeout=2)
        finally:
            scheduler.stop()

    def test_stop_cancels_pending(self, scheduler, clock):
        handle = scheduler.call_every(1, lambda: None)
        scheduler.stop()
        assert handle.cancelled
        assert scheduler.pending() == 0
