"""Retention sweep: delete logs older than the retention horizon."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional

from ..config.settings import clamp_retention_days
from ..schemas import to_utc
from ..storage import StorageBackend

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    """Result of one retention sweep."""

    success: bool = True
    skipped: bool = False
    retention_days: int = 0
    cutoff: Optional[datetime] = None
    deleted: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Convert to dictionary for logging/serialization."""
        return {
            "success": self.success,
            "skipped": self.skipped,
            "retention_days": self.retention_days,
            "cutoff": self.cutoff.isoformat() if self.cutoff else None,
            "deleted": self.deleted,
            "errors": self.errors,
        }


class RetentionSweep:
    """Deletes logs observed before now - retention_days. Zero disables it."""

    def __init__(self, backend: StorageBackend, retention_days: int):
        self._backend = backend
        self.retention_days = clamp_retention_days(retention_days)

    def run(self, now: Optional[datetime] = None) -> SweepResult:
        """
        Run one sweep.

        Args:
            now: Reference time (defaults to the current UTC time)

        Returns:
            SweepResult; errors are recorded there and never raised
        """
        result = SweepResult(retention_days=self.retention_days)

        if self.retention_days <= 0:
            logger.debug("Retention disabled, sweep skipped")
            result.skipped = True
            return result

        now = to_utc(now) if now else datetime.now(timezone.utc)
        result.cutoff = now - timedelta(days=self.retention_days)

        try:
            result.deleted = self._backend.delete_records_before(result.cutoff)
        except Exception as e:
            result.success = False
            result.errors.append(str(e))
            logger.error(f"Retention sweep failed: {e}")
            return result

        logger.info(
            f"Retention sweep deleted {result.deleted} logs older than "
            f"{result.cutoff.isoformat()}"
        )
        return result
