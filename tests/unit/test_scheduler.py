"""
Unit tests for the in-process job scheduler.
"""

import threading
import time

import pytest

from ai_traffic_logger.pipeline import JobScheduler, PeriodicTask


class TestPeriodicTask:
    """Tests for PeriodicTask."""

    def test_run_once_records_result(self):
        task = PeriodicTask("job", 60, lambda: 42)

        assert task.run_once() == 42
        assert task.run_count == 1
        assert task.last_error is None

    def test_run_once_logs_exceptions(self, caplog):
        """A failing job should be logged, not raised."""

        def fail():
            raise RuntimeError("boom")

        task = PeriodicTask("job", 60, fail)

        assert task.run_once() is None
        assert task.last_error == "boom"
        assert "job" in caplog.text

    def test_invalid_interval(self):
        with pytest.raises(ValueError):
            PeriodicTask("job", 0, lambda: None)

    def test_thread_runs_periodically(self):
        """The background thread should invoke the job repeatedly."""
        calls = threading.Event()
        counter = {"n": 0}

        def job():
            counter["n"] += 1
            if counter["n"] >= 3:
                calls.set()

        task = PeriodicTask("job", 0.01, job, initial_delay=0)
        task.start()
        try:
            assert calls.wait(timeout=5)
        finally:
            task.stop()

        assert not task.is_running

    def test_runs_never_overlap(self):
        """A slow run must finish before the next one starts."""
        active = {"now": 0, "max": 0}
        lock = threading.Lock()
        done = threading.Event()

        def slow_job():
            with lock:
                active["now"] += 1
                active["max"] = max(active["max"], active["now"])
            time.sleep(0.02)
            with lock:
                active["now"] -= 1
            done.set()

        task = PeriodicTask("slow", 0.001, slow_job, initial_delay=0)
        task.start()
        try:
            done.wait(timeout=5)
            # Manual run from another thread shares the same lock
            task.run_once()
            time.sleep(0.05)
        finally:
            task.stop()

        assert active["max"] == 1


class TestJobScheduler:
    """Tests for JobScheduler."""

    def test_schedule_is_idempotent(self):
        """Scheduling an existing name should be a no-op."""
        scheduler = JobScheduler()

        assert scheduler.schedule("process_log_queue", 300, lambda: None)
        assert not scheduler.schedule("process_log_queue", 300, lambda: None)
        assert scheduler.task_names() == ["process_log_queue"]

    def test_unschedule(self):
        scheduler = JobScheduler()
        scheduler.schedule("cleanup_old_logs", 86400, lambda: None)

        assert scheduler.unschedule("cleanup_old_logs")
        assert not scheduler.unschedule("cleanup_old_logs")
        assert not scheduler.is_scheduled("cleanup_old_logs")

    def test_run_now(self):
        scheduler = JobScheduler()
        scheduler.schedule("job", 300, lambda: "ran")

        assert scheduler.run_now("job") == "ran"
        assert scheduler.get_task("job").run_count == 1

    def test_run_now_unknown_task(self):
        with pytest.raises(KeyError):
            JobScheduler().run_now("missing")

    def test_start_and_stop(self):
        """Tasks scheduled after start should start immediately."""
        scheduler = JobScheduler()
        scheduler.start()
        assert scheduler.is_started
        try:
            scheduler.schedule("job", 300, lambda: None)
            assert scheduler.get_task("job").is_running
        finally:
            scheduler.stop()

        assert not scheduler.get_task("job").is_running
        status = scheduler.get_status()
        assert status["started"] is False
        assert status["tasks"][0]["name"] == "job"

    def test_clear_removes_tasks(self):
        scheduler = JobScheduler()
        scheduler.schedule("a", 300, lambda: None)
        scheduler.schedule("b", 300, lambda: None)

        scheduler.clear()

        assert scheduler.task_names() == []
