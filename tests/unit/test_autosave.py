"""
Unit Tests for the periodic auto-save task
"""
import threading
import time

import pytest

from diagnostic_engine.core.workflow import AutoSaveTask


def _wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()


class TestAutoSaveTask:

    def test_rejects_non_positive_interval(self):
        with pytest.raises(ValueError):
            AutoSaveTask(0, lambda: None)
        with pytest.raises(ValueError):
            AutoSaveTask(-1, lambda: None)

    def test_ticks_until_cancelled(self):
        calls = []
        task = AutoSaveTask(0.01, lambda: calls.append(1))
        task.start()
        assert task.running
        assert _wait_for(lambda: len(calls) >= 3)
        task.cancel()
        assert not task.running
        settled = len(calls)
        time.sleep(0.05)
        assert len(calls) == settled

    def test_start_twice_is_single_thread(self):
        task = AutoSaveTask(10, lambda: None, name="once")
        task.start()
        thread = task._thread
        task.start()
        assert task._thread is thread
        task.cancel()

    def test_cancel_wakes_sleeping_thread(self):
        task = AutoSaveTask(60, lambda: None)
        task.start()
        started = time.monotonic()
        task.cancel(timeout=2.0)
        assert time.monotonic() - started < 1.0
        assert not task.running

    def test_failing_callback_does_not_stop_task(self):
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("disk full")

        task = AutoSaveTask(0.01, flaky)
        task.start()
        assert _wait_for(lambda: len(calls) >= 2)
        assert task.running
        task.cancel()

    def test_restart_after_cancel(self):
        ticked = threading.Event()
        task = AutoSaveTask(0.01, ticked.set)
        task.start()
        task.cancel()
        ticked.clear()
        task.start()
        assert ticked.wait(1.0)
        task.cancel()

    def test_cancel_without_start(self):
        task = AutoSaveTask(1, lambda: None)
        task.cancel()
        assert not task.running
