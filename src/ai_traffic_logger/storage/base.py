"""
Abstract base class for storage backends.

A backend owns two tables with the same columns: the queue table that
request handlers append to, and the durable table written by the batch
flush job and read by reporting.
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, Optional, Sequence

from ..schemas import QueuedHit, TrafficHit, TrafficRecord


class StorageBackend(ABC):
    """
    Abstract base class for storage backends.

    All storage implementations must implement this interface to ensure
    consistent behavior across backends.
    """

    @property
    @abstractmethod
    def backend_type(self) -> str:
        """Return the backend type identifier (e.g., 'sqlite')."""
        pass

    @abstractmethod
    def initialize(self) -> None:
        """
        Initialize the storage backend.

        Creates tables and indexes if they don't exist.
        Should be idempotent - safe to call multiple times.
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """
        Close connections and release resources.

        Should be called when the backend is no longer needed.
        """
        pass

    @contextmanager
    def transaction(self) -> Iterator["StorageBackend"]:
        """
        Group several operations into one atomic unit.

        Backends without transactions run the operations as-is.
        """
        yield self

    # =========================================================================
    # Queue table
    # =========================================================================

    @abstractmethod
    def enqueue_hit(self, hit: TrafficHit) -> int:
        """
        Append a hit to the queue table.

        Returns:
            The queue id assigned to the hit.

        Raises:
            StorageError: If the insert fails.
        """
        pass

    @abstractmethod
    def fetch_queue_batch(self, limit: int) -> list[QueuedHit]:
        """
        Fetch up to limit queued hits, oldest first (ascending id).
        """
        pass

    @abstractmethod
    def delete_queue_ids(self, ids: Sequence[int]) -> int:
        """
        Delete queued hits by id.

        Ids that no longer exist are ignored.

        Returns:
            Number of rows actually deleted.
        """
        pass

    @abstractmethod
    def queue_count(self) -> int:
        """Return the number of hits waiting in the queue."""
        pass

    # =========================================================================
    # Durable table
    # =========================================================================

    @abstractmethod
    def insert_records(self, hits: Sequence[TrafficHit]) -> int:
        """
        Insert hits into the durable table as one all-or-nothing write.

        Returns:
            Number of records inserted.

        Raises:
            StorageError: If insertion fails; no rows are written.
        """
        pass

    @abstractmethod
    def fetch_records(
        self,
        *,
        bot_category: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[TrafficRecord]:
        """
        Fetch durable records, newest first.

        Args:
            bot_category: Exact category filter
            start: Inclusive lower bound on observed_at
            end: Inclusive upper bound on observed_at
            limit: Maximum rows to return (None = all)
            offset: Rows to skip
        """
        pass

    @abstractmethod
    def count_records(
        self,
        *,
        bot_category: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> int:
        """Count durable records matching the filters."""
        pass

    @abstractmethod
    def distinct_categories(self) -> list[str]:
        """Return the category labels present in the durable table, sorted."""
        pass

    @abstractmethod
    def delete_records_before(self, cutoff: datetime) -> int:
        """
        Delete durable records observed strictly before cutoff.

        Returns:
            Number of rows deleted.
        """
        pass

    @abstractmethod
    def clear_records(self) -> int:
        """
        Delete every durable record.

        Returns:
            Number of rows deleted.
        """
        pass

    def record_count(self) -> int:
        """Return the total number of durable records."""
        return self.count_records()

    def fetch_records_since(self, start: datetime) -> list[TrafficRecord]:
        """Fetch all durable records observed at or after start."""
        return self.fetch_records(start=start)

    def health_check(self) -> dict:
        """
        Perform a health check on the storage backend.

        Returns:
            Dictionary with health status information:
            {
                "healthy": bool,
                "backend_type": str,
                "message": str,
                "details": dict
            }
        """
        try:
            queued = self.queue_count()
            return {
                "healthy": True,
                "backend_type": self.backend_type,
                "message": "Backend is operational",
                "details": {"queue_count": queued},
            }
        except Exception as e:
            return {
                "healthy": False,
                "backend_type": self.backend_type,
                "message": f"Health check failed: {str(e)}",
                "details": {"error": str(e)},
            }

    def __enter__(self) -> "StorageBackend":
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit - ensures resources are released."""
        self.close()


class StorageError(Exception):
    """Base exception for storage backend errors."""

    pass


class StorageConnectionError(StorageError):
    """Raised when connection to storage backend fails."""

    pass


class QueryError(StorageError):
    """Raised when a query fails to execute."""

    pass


class SchemaError(StorageError):
    """Raised when there's a schema-related error."""

    pass
