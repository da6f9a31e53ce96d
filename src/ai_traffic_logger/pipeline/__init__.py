"""Background pipeline: queue flush, retention sweep and scheduling."""

from .flush_job import BatchConflictError, BatchFlushJob, FlushResult
from .retention import RetentionSweep, SweepResult
from .runner import TrafficPipeline, setup_logging
from .scheduler import JobScheduler, PeriodicTask

__all__ = [
    # Jobs
    "BatchConflictError",
    "BatchFlushJob",
    "FlushResult",
    "RetentionSweep",
    "SweepResult",
    # Scheduling
    "JobScheduler",
    "PeriodicTask",
    # Composition
    "TrafficPipeline",
    "setup_logging",
]
