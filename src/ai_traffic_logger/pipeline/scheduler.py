"""
In-process scheduler for the periodic pipeline jobs.

Each named task runs on its own daemon thread, so a task never overlaps
with itself; run_now() shares the same per-task lock.
"""

import logging
import threading
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class PeriodicTask:
    """A named callable invoked every interval_seconds on a daemon thread."""

    def __init__(
        self,
        name: str,
        interval_seconds: float,
        func: Callable[[], Any],
        initial_delay: Optional[float] = None,
    ):
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got {interval_seconds}")

        self.name = name
        self.interval_seconds = interval_seconds
        self.func = func
        self.initial_delay = interval_seconds if initial_delay is None else initial_delay
        self.run_count = 0
        self.last_result: Any = None
        self.last_error: Optional[str] = None
        self._stop_event = threading.Event()
        self._run_lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the background thread."""
        if self.is_running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._loop, daemon=True, name=f"ai-traffic-{self.name}"
        )
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        """Signal the thread to stop and wait for the current run to end."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def run_once(self) -> Any:
        """Invoke the task in the calling thread. Exceptions are logged."""
        with self._run_lock:
            try:
                self.last_result = self.func()
                self.last_error = None
            except Exception as e:
                self.last_result = None
                self.last_error = str(e)
                logger.exception(f"Scheduled task {self.name} failed: {e}")
            self.run_count += 1
            return self.last_result

    def _loop(self) -> None:
        delay = self.initial_delay
        while not self._stop_event.wait(delay):
            self.run_once()
            delay = self.interval_seconds

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "interval_seconds": self.interval_seconds,
            "running": self.is_running,
            "run_count": self.run_count,
            "last_error": self.last_error,
        }


class JobScheduler:
    """
    Registry of named periodic tasks.

    Example:
        scheduler = JobScheduler()
        scheduler.schedule("process_log_queue", 300, flush_job.run)
        scheduler.start()
        ...
        scheduler.stop()
    """

    def __init__(self):
        self._tasks: dict[str, PeriodicTask] = {}
        self._lock = threading.Lock()
        self._started = False

    @property
    def is_started(self) -> bool:
        return self._started

    def schedule(
        self,
        name: str,
        interval_seconds: float,
        func: Callable[[], Any],
        initial_delay: Optional[float] = None,
    ) -> bool:
        """
        Register a task unless one with the same name already exists.

        Returns:
            True if the task was added, False if it was already scheduled
        """
        with self._lock:
            if name in self._tasks:
                return False
            task = PeriodicTask(name, interval_seconds, func, initial_delay)
            self._tasks[name] = task
            if self._started:
                task.start()

        logger.info(f"Scheduled {name} every {interval_seconds}s")
        return True

    def unschedule(self, name: str) -> bool:
        """
        Remove a task, stopping its thread.

        Returns:
            True if a task was removed
        """
        with self._lock:
            task = self._tasks.pop(name, None)

        if task is None:
            return False

        task.stop()
        logger.info(f"Unscheduled {name}")
        return True

    def is_scheduled(self, name: str) -> bool:
        with self._lock:
            return name in self._tasks

    def get_task(self, name: str) -> Optional[PeriodicTask]:
        with self._lock:
            return self._tasks.get(name)

    def task_names(self) -> list[str]:
        with self._lock:
            return list(self._tasks)

    def run_now(self, name: str) -> Any:
        """
        Run a scheduled task immediately in the calling thread.

        Raises:
            KeyError: If no task with that name is scheduled
        """
        task = self.get_task(name)
        if task is None:
            raise KeyError(f"No scheduled task named '{name}'")
        return task.run_once()

    def start(self) -> None:
        """Start all registered task threads."""
        with self._lock:
            self._started = True
            tasks = list(self._tasks.values())
        for task in tasks:
            task.start()

    def stop(self, timeout: float = 5.0) -> None:
        """Stop all task threads; tasks stay registered."""
        with self._lock:
            self._started = False
            tasks = list(self._tasks.values())
        for task in tasks:
            task.stop(timeout=timeout)

    def clear(self) -> None:
        """Stop and remove every task."""
        for name in self.task_names():
            self.unschedule(name)

    def get_status(self) -> dict:
        with self._lock:
            tasks = list(self._tasks.values())
        return {
            "started": self._started,
            "tasks": [task.to_dict() for task in tasks],
        }
