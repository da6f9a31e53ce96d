"""
Traffic pipeline: wires storage, the ingestion gate and the periodic jobs.

Usage:
    from ai_traffic_logger.config import get_settings
    from ai_traffic_logger.pipeline import TrafficPipeline

    with TrafficPipeline(get_settings()) as pipeline:
        app = pipeline.wsgi_middleware(app)
        ...
"""

import logging
import sys
from pathlib import Path
from typing import Optional

from ..config.constants import JOB_CLEANUP_OLD_LOGS, JOB_PROCESS_LOG_QUEUE
from ..config.settings import Settings
from ..ingestion import AITrafficMiddleware, IngestionGate
from ..monitoring import CircuitBreaker
from ..storage import StorageBackend, get_backend
from .flush_job import BatchFlushJob, FlushResult
from .retention import RetentionSweep, SweepResult
from .scheduler import JobScheduler

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: int = logging.INFO, log_file: Optional[Path] = None) -> None:
    """
    Configure root logging for CLI scripts.

    Args:
        level: Logging level
        log_file: Optional file to write logs to in addition to stderr
    """
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)


class TrafficPipeline:
    """
    Composition root for the AI traffic logger.

    start() creates the schema and (re)establishes the flush and
    retention jobs; stop() removes them again.
    """

    def __init__(
        self,
        settings: Settings,
        backend: Optional[StorageBackend] = None,
        scheduler: Optional[JobScheduler] = None,
    ):
        """
        Initialize the pipeline.

        Args:
            settings: Application settings
            backend: Pre-built StorageBackend (optional; created from
                settings and closed by stop() when omitted)
            scheduler: Scheduler to register the jobs with (optional)

        Raises:
            ValueError: If the settings are invalid
        """
        errors = settings.validate()
        if errors:
            raise ValueError(f"Invalid settings: {'; '.join(errors)}")

        self.settings = settings

        if backend:
            self.backend = backend
            self._owns_backend = False
        else:
            self.backend = get_backend(
                settings.storage_backend, db_path=settings.sqlite_db_path
            )
            self._owns_backend = True

        self.gate = IngestionGate(self.backend, settings)
        self.circuit_breaker = CircuitBreaker(
            failure_threshold=settings.jobs.flush_failure_threshold,
            recovery_timeout_seconds=settings.jobs.flush_recovery_seconds,
        )
        self.flush_job = BatchFlushJob(
            self.backend,
            batch_size=settings.jobs.flush_batch_size,
            circuit_breaker=self.circuit_breaker,
        )
        self.retention_sweep = RetentionSweep(
            self.backend, settings.traffic.retention_days
        )
        self.scheduler = scheduler or JobScheduler()
        self._initialized = False

        logger.info(
            f"TrafficPipeline initialized with {self.backend.backend_type} backend"
        )

    def initialize(self) -> None:
        """Initialize the backend (create tables if needed)."""
        if not self._initialized:
            self.backend.initialize()
            self._initialized = True

    def schedule_jobs(self) -> list[str]:
        """
        Register any missing periodic jobs.

        Returns:
            Names of the jobs that were newly scheduled
        """
        added = []
        if self.scheduler.schedule(
            JOB_PROCESS_LOG_QUEUE,
            self.settings.jobs.flush_interval_seconds,
            self.flush_job.run,
        ):
            added.append(JOB_PROCESS_LOG_QUEUE)
        if self.scheduler.schedule(
            JOB_CLEANUP_OLD_LOGS,
            self.settings.jobs.retention_interval_seconds,
            self.retention_sweep.run,
        ):
            added.append(JOB_CLEANUP_OLD_LOGS)
        return added

    def unschedule_jobs(self) -> None:
        """Remove both periodic jobs."""
        self.scheduler.unschedule(JOB_PROCESS_LOG_QUEUE)
        self.scheduler.unschedule(JOB_CLEANUP_OLD_LOGS)

    def start(self) -> None:
        """Initialize storage and start the periodic jobs."""
        self.initialize()
        added = self.schedule_jobs()
        if added:
            logger.info(f"Registered jobs: {', '.join(added)}")
        self.scheduler.start()

    def stop(self) -> None:
        """Stop and remove the periodic jobs; close an owned backend."""
        self.unschedule_jobs()
        self.scheduler.stop()
        if self._owns_backend:
            self.backend.close()
        self._initialized = False

    def __enter__(self) -> "TrafficPipeline":
        """Context manager entry."""
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.stop()

    def flush(self) -> FlushResult:
        """Run one flush tick now."""
        self.initialize()
        return self.flush_job.run()

    def sweep(self) -> SweepResult:
        """Run one retention sweep now."""
        self.initialize()
        return self.retention_sweep.run()

    def wsgi_middleware(self, app) -> AITrafficMiddleware:
        """Wrap a WSGI application with the ingestion gate."""
        return AITrafficMiddleware(
            app, self.gate, self.settings.internal_path_prefixes
        )

    def get_status(self) -> dict:
        """
        Get pipeline status.

        Returns:
            Dictionary with settings, storage health, gate counters,
            circuit breaker and scheduler state
        """
        self.initialize()
        return {
            "settings": self.settings.to_dict(),
            "storage": self.backend.health_check(),
            "gate": self.gate.stats.to_dict(),
            "flush_circuit": self.circuit_breaker.get_state(),
            "scheduler": self.scheduler.get_status(),
        }
