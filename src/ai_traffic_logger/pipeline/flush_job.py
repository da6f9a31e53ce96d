"""
Batch flush job: move queued hits into the logs table.

One tick fetches the oldest queued hits, then in a single transaction
deletes exactly those queue ids and bulk-inserts them into the logs
table. The delete comes first and must remove every fetched id; if
another process flushed some of them in the meantime the transaction is
rolled back and the tick is skipped, so a hit is never logged twice.
If the insert fails, the delete is rolled back too and the same rows
are retried on the next tick.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from ..config.constants import DEFAULT_FLUSH_BATCH_SIZE
from ..monitoring import CircuitBreaker
from ..storage import StorageBackend

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BatchConflictError(Exception):
    """Some fetched queue rows were gone by the time the tick deleted them."""

    pass


@dataclass
class FlushResult:
    """Result of one flush tick."""

    success: bool = True
    skipped: bool = False
    fetched: int = 0
    flushed: int = 0
    started_at: datetime = field(default_factory=_utcnow)
    completed_at: Optional[datetime] = None
    errors: list[str] = field(default_factory=list)

    @property
    def duration_seconds(self) -> Optional[float]:
        """Get tick duration in seconds."""
        if self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def to_dict(self) -> dict:
        """Convert to dictionary for logging/serialization."""
        return {
            "success": self.success,
            "skipped": self.skipped,
            "fetched": self.fetched,
            "flushed": self.flushed,
            "started_at": self.started_at.isoformat(),
            "completed_at": (
                self.completed_at.isoformat() if self.completed_at else None
            ),
            "duration_seconds": self.duration_seconds,
            "errors": self.errors,
        }


class BatchFlushJob:
    """
    Drains the queue table into the logs table.

    Ticks never overlap: a tick that starts while another is running
    returns immediately with skipped=True.
    """

    def __init__(
        self,
        backend: StorageBackend,
        batch_size: int = DEFAULT_FLUSH_BATCH_SIZE,
        circuit_breaker: Optional[CircuitBreaker] = None,
    ):
        """
        Initialize the flush job.

        Args:
            backend: Storage backend holding both tables
            batch_size: Maximum queued hits moved per tick
            circuit_breaker: Optional breaker that pauses ticks after
                repeated insert failures
        """
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")

        self._backend = backend
        self.batch_size = batch_size
        self.circuit_breaker = circuit_breaker
        self._run_lock = threading.Lock()

    def run(self) -> FlushResult:
        """
        Run one flush tick.

        Returns:
            FlushResult; errors are recorded there and never raised
        """
        result = FlushResult()

        if not self._run_lock.acquire(blocking=False):
            logger.warning("Flush tick already running, skipping")
            result.skipped = True
            result.completed_at = _utcnow()
            return result

        try:
            if self.circuit_breaker is not None and self.circuit_breaker.is_open:
                logger.warning("Flush circuit open, leaving queue for a later tick")
                result.skipped = True
                return result

            self._flush(result)

            if self.circuit_breaker is not None:
                if result.success:
                    self.circuit_breaker.record_success()
                else:
                    self.circuit_breaker.record_failure()
        finally:
            result.completed_at = _utcnow()
            self._run_lock.release()

        return result

    def _flush(self, result: FlushResult) -> None:
        try:
            batch = self._backend.fetch_queue_batch(self.batch_size)
        except Exception as e:
            result.success = False
            result.errors.append(f"fetch failed: {e}")
            logger.error(f"Flush tick failed to read queue: {e}")
            return

        result.fetched = len(batch)
        if not batch:
            logger.debug("Flush tick found an empty queue")
            return

        queue_ids = [queued.id for queued in batch]
        try:
            with self._backend.transaction():
                deleted = self._backend.delete_queue_ids(queue_ids)
                if deleted != len(queue_ids):
                    raise BatchConflictError(
                        f"{len(queue_ids) - deleted} of {len(queue_ids)} "
                        "queued hits were already flushed elsewhere"
                    )
                self._backend.insert_records([queued.hit for queued in batch])
        except BatchConflictError as e:
            result.skipped = True
            logger.warning(f"Flush tick rolled back, batch taken by another job: {e}")
            return
        except Exception as e:
            result.success = False
            result.errors.append(f"flush failed: {e}")
            logger.error(
                f"Flush tick failed, {len(batch)} queued hits kept for retry: {e}"
            )
            return

        result.flushed = len(batch)
        logger.info(f"Flushed {result.flushed} hits to the logs table")
