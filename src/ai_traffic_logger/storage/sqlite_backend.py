"""
SQLite storage backend implementation.

Holds the queue table (cheap appends from request handlers) and the
durable logs table (bulk inserts from the flush job, reads from
reporting) in one database file, so a flush can insert into the logs
table and delete from the queue in a single transaction.
"""

import logging
import sqlite3
import threading
from contextlib import contextmanager, nullcontext
from datetime import datetime
from pathlib import Path
from typing import Any, Iterator, Optional, Sequence

from ..config.constants import (
    DEFAULT_DB_PATH,
    TABLE_TRAFFIC_LOG_QUEUE,
    TABLE_TRAFFIC_LOGS,
)
from ..schemas import (
    HIT_COLUMNS,
    QueuedHit,
    TrafficHit,
    TrafficRecord,
    format_timestamp,
)
from .base import QueryError, SchemaError, StorageBackend, StorageConnectionError

logger = logging.getLogger(__name__)

MEMORY_DB = ":memory:"


# =============================================================================
# SQLite Schema Definitions
# =============================================================================

LOGS_TABLE_SCHEMA = f"""
CREATE TABLE IF NOT EXISTS {TABLE_TRAFFIC_LOGS} (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    observed_at TEXT NOT NULL,
    user_agent TEXT NOT NULL,
    referrer TEXT,
    ip_hash TEXT,
    request_path TEXT NOT NULL,
    method TEXT NOT NULL DEFAULT 'GET',
    bot_category TEXT NOT NULL
)
"""

QUEUE_TABLE_SCHEMA = f"""
CREATE TABLE IF NOT EXISTS {TABLE_TRAFFIC_LOG_QUEUE} (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    observed_at TEXT NOT NULL,
    user_agent TEXT NOT NULL,
    referrer TEXT,
    ip_hash TEXT,
    request_path TEXT NOT NULL,
    method TEXT NOT NULL DEFAULT 'GET',
    bot_category TEXT NOT NULL
)
"""

# Index definitions for query performance
INDEX_DEFINITIONS = [
    # Logs table: date range scans, category filter, visitor correlation
    f"CREATE INDEX IF NOT EXISTS idx_logs_observed_at ON {TABLE_TRAFFIC_LOGS}(observed_at)",
    f"CREATE INDEX IF NOT EXISTS idx_logs_bot_category ON {TABLE_TRAFFIC_LOGS}(bot_category)",
    f"CREATE INDEX IF NOT EXISTS idx_logs_ip_hash ON {TABLE_TRAFFIC_LOGS}(ip_hash)",
    # Queue table
    f"CREATE INDEX IF NOT EXISTS idx_queue_observed_at ON {TABLE_TRAFFIC_LOG_QUEUE}(observed_at)",
]

_COLUMN_LIST = ", ".join(HIT_COLUMNS)
_PARAM_LIST = ", ".join(f":{column}" for column in HIT_COLUMNS)


# =============================================================================
# Validation Helpers
# =============================================================================

# Valid table names in our schema
VALID_TABLES = frozenset([TABLE_TRAFFIC_LOGS, TABLE_TRAFFIC_LOG_QUEUE])


def _validate_identifier(value: str, valid_set: frozenset, name: str) -> str:
    """
    Validate an identifier against a whitelist to prevent SQL injection.

    Args:
        value: The identifier to validate
        valid_set: Set of valid identifiers
        name: Human-readable name for error messages

    Returns:
        The validated identifier

    Raises:
        ValueError: If identifier is not in the valid set
    """
    if value not in valid_set:
        raise ValueError(
            f"Invalid {name}: '{value}'. Must be one of: {sorted(valid_set)}"
        )
    return value


def _build_record_filter(
    bot_category: Optional[str],
    start: Optional[datetime],
    end: Optional[datetime],
) -> tuple[str, dict[str, Any]]:
    """Build a WHERE clause and parameters for durable record filters."""
    clauses = []
    params: dict[str, Any] = {}

    if bot_category:
        clauses.append("bot_category = :bot_category")
        params["bot_category"] = bot_category
    if start is not None:
        clauses.append("observed_at >= :start")
        params["start"] = format_timestamp(start)
    if end is not None:
        clauses.append("observed_at <= :end")
        params["end"] = format_timestamp(end)

    where_sql = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    return where_sql, params


# =============================================================================
# SQLite Backend Implementation
# =============================================================================


class SQLiteBackend(StorageBackend):
    """
    SQLite storage backend.

    File databases give every thread its own connection, so a queue
    append never waits behind a reporting read or another thread's
    transaction beyond SQLite's own single-writer lock. An in-memory
    database exists only inside one connection, which is then shared
    by all threads under a re-entrant lock.
    """

    def __init__(
        self,
        db_path: Path | str = DEFAULT_DB_PATH,
        *,
        check_same_thread: bool = False,
        timeout: float = 30.0,
    ):
        """
        Initialize SQLite backend.

        Args:
            db_path: Path to SQLite database file, or ":memory:"
            check_same_thread: SQLite check_same_thread parameter
            timeout: Seconds to wait for another connection's write lock
        """
        self._in_memory = str(db_path) == MEMORY_DB
        self.db_path = Path(db_path)
        self._check_same_thread = check_same_thread
        self._timeout = timeout

        # Per-thread connection and transaction flag
        self._local = threading.local()
        # Every open connection, so close() can reach other threads' ones
        self._connections: list[sqlite3.Connection] = []
        self._connections_lock = threading.Lock()
        # Bumped by close(); thread-local connections from older generations are stale
        self._generation = 0
        # Serializes the single :memory: connection
        self._memory_lock = threading.RLock()

        # Ensure parent directory exists
        if not self._in_memory:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def backend_type(self) -> str:
        """Return backend type identifier."""
        return "sqlite"

    def _connect(self) -> sqlite3.Connection:
        target = MEMORY_DB if self._in_memory else str(self.db_path)
        try:
            conn = sqlite3.connect(
                target,
                check_same_thread=self._check_same_thread,
                timeout=self._timeout,
            )
            conn.row_factory = sqlite3.Row
            if not self._in_memory:
                # Readers and the single writer proceed concurrently
                conn.execute("PRAGMA journal_mode = WAL")
        except sqlite3.Error as e:
            raise StorageConnectionError(
                f"Failed to connect to SQLite database: {e}"
            ) from e

        with self._connections_lock:
            self._connections.append(conn)
        logger.debug(f"Connected to SQLite database: {target}")
        return conn

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create the connection for the calling thread."""
        if self._in_memory:
            with self._connections_lock:
                existing = self._connections[0] if self._connections else None
            return existing or self._connect()

        conn = getattr(self._local, "connection", None)
        if conn is None or getattr(self._local, "generation", None) != self._generation:
            conn = self._connect()
            self._local.connection = conn
            self._local.generation = self._generation
            self._local.in_transaction = False
        return conn

    def _guard(self):
        return self._memory_lock if self._in_memory else nullcontext()

    @property
    def _in_transaction(self) -> bool:
        return getattr(self._local, "in_transaction", False)

    @_in_transaction.setter
    def _in_transaction(self, value: bool) -> None:
        self._local.in_transaction = value

    @contextmanager
    def _cursor(self):
        """Context manager for database cursor with automatic commit/rollback."""
        with self._guard():
            conn = self._get_connection()
            cursor = conn.cursor()
            try:
                yield cursor
                if not self._in_transaction:
                    conn.commit()
            except sqlite3.Error as e:
                if not self._in_transaction:
                    conn.rollback()
                raise QueryError(f"SQLite query failed: {e}") from e
            finally:
                cursor.close()

    @contextmanager
    def transaction(self) -> Iterator["SQLiteBackend"]:
        """
        Run several operations in one transaction.

        Commits when the block exits normally; rolls back everything on
        any exception. Nested calls join the outer transaction. The
        transaction belongs to the calling thread's connection.
        """
        with self._guard():
            if self._in_transaction:
                yield self
                return

            conn = self._get_connection()
            self._in_transaction = True
            try:
                yield self
                conn.commit()
            except Exception:
                conn.rollback()
                raise
            finally:
                self._in_transaction = False

    def initialize(self) -> None:
        """
        Initialize database with all required tables and indexes.

        Safe to call multiple times - uses IF NOT EXISTS.
        """
        logger.info(f"Initializing SQLite database: {self.db_path}")

        with self._cursor() as cursor:
            cursor.execute(LOGS_TABLE_SCHEMA)
            cursor.execute(QUEUE_TABLE_SCHEMA)

            for index_sql in INDEX_DEFINITIONS:
                cursor.execute(index_sql)

        logger.info("SQLite database initialized successfully")

    def close(self) -> None:
        """Close every connection opened by this backend."""
        with self._guard(), self._connections_lock:
            connections, self._connections = self._connections, []
            self._generation += 1
        for conn in connections:
            conn.close()
        if connections:
            logger.debug(f"Closed {len(connections)} SQLite connection(s)")


    # =========================================================================
    # Generic SQL helpers
    # =========================================================================

    def query(
        self,
        sql: str,
        params: Optional[dict] = None,
    ) -> list[dict]:
        """
        Execute query and return results as list of dictionaries.

        Args:
            sql: SQL query (use :param_name for parameters)
            params: Optional parameter dictionary

        Returns:
            List of result rows as dictionaries
        """
        with self._cursor() as cursor:
            cursor.execute(sql, params or {})
            columns = [desc[0] for desc in cursor.description or []]
            rows = cursor.fetchall()
            return [dict(zip(columns, row)) for row in rows]

    def execute(
        self,
        sql: str,
        params: Optional[dict] = None,
    ) -> int:
        """
        Execute statement (INSERT, UPDATE, DELETE, DDL).

        Args:
            sql: SQL statement
            params: Optional parameter dictionary

        Returns:
            Number of affected rows
        """
        with self._cursor() as cursor:
            cursor.execute(sql, params or {})
            return cursor.rowcount

    def table_exists(self, table_name: str) -> bool:
        """Check if a table exists."""
        sql = """
            SELECT name FROM sqlite_master
            WHERE type='table' AND name=:table_name
        """
        result = self.query(sql, {"table_name": table_name})
        return len(result) > 0

    def get_table_row_count(self, table_name: str) -> int:
        """Get total row count for a table."""
        _validate_identifier(table_name, VALID_TABLES, "table name")
        if not self.table_exists(table_name):
            raise SchemaError(f"Table '{table_name}' does not exist")

        sql = f"SELECT COUNT(*) as count FROM {table_name}"
        result = self.query(sql)
        return result[0]["count"] if result else 0

    # =========================================================================
    # Queue table
    # =========================================================================

    def enqueue_hit(self, hit: TrafficHit) -> int:
        """Append one hit to the queue table and return its queue id."""
        sql = f"""
            INSERT INTO {TABLE_TRAFFIC_LOG_QUEUE} ({_COLUMN_LIST})
            VALUES ({_PARAM_LIST})
        """
        with self._cursor() as cursor:
            cursor.execute(sql, hit.to_row())
            return int(cursor.lastrowid)

    def fetch_queue_batch(self, limit: int) -> list[QueuedHit]:
        """Fetch up to limit queued hits in ascending id order."""
        rows = self.query(
            f"""
            SELECT id, {_COLUMN_LIST}
            FROM {TABLE_TRAFFIC_LOG_QUEUE}
            ORDER BY id ASC
            LIMIT :limit
            """,
            {"limit": int(limit)},
        )
        return [QueuedHit.from_row(row) for row in rows]

    def delete_queue_ids(self, ids: Sequence[int]) -> int:
        """Delete queued hits by id; unknown ids are ignored."""
        if not ids:
            return 0

        sql = f"DELETE FROM {TABLE_TRAFFIC_LOG_QUEUE} WHERE id = ?"
        with self._cursor() as cursor:
            cursor.executemany(sql, [(int(queue_id),) for queue_id in ids])
            return max(cursor.rowcount, 0)

    def queue_count(self) -> int:
        """Return the number of queued hits."""
        return self.get_table_row_count(TABLE_TRAFFIC_LOG_QUEUE)

    # =========================================================================
    # Durable table
    # =========================================================================

    def insert_records(self, hits: Sequence[TrafficHit]) -> int:
        """
        Insert hits into the logs table in a single transaction.

        Args:
            hits: Hits to persist

        Returns:
            Number of records inserted
        """
        if not hits:
            return 0

        sql = f"""
            INSERT INTO {TABLE_TRAFFIC_LOGS} ({_COLUMN_LIST})
            VALUES ({_PARAM_LIST})
        """
        rows = [hit.to_row() for hit in hits]

        with self._cursor() as cursor:
            cursor.executemany(sql, rows)
            # executemany may not set rowcount correctly; use len instead
            return len(rows)

    def fetch_records(
        self,
        *,
        bot_category: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[TrafficRecord]:
        """Fetch durable records matching the filters, newest first."""
        where_sql, params = _build_record_filter(bot_category, start, end)

        sql = f"""
            SELECT id, {_COLUMN_LIST}
            FROM {TABLE_TRAFFIC_LOGS}
            {where_sql}
            ORDER BY observed_at DESC, id DESC
        """
        if limit is not None:
            sql += " LIMIT :limit OFFSET :offset"
            params["limit"] = int(limit)
            params["offset"] = max(int(offset), 0)

        return [TrafficRecord.from_row(row) for row in self.query(sql, params)]

    def count_records(
        self,
        *,
        bot_category: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> int:
        """Count durable records matching the filters."""
        where_sql, params = _build_record_filter(bot_category, start, end)
        result = self.query(
            f"SELECT COUNT(*) as count FROM {TABLE_TRAFFIC_LOGS} {where_sql}",
            params,
        )
        return result[0]["count"] if result else 0

    def distinct_categories(self) -> list[str]:
        """Return category labels present in the logs table."""
        rows = self.query(
            f"""
            SELECT DISTINCT bot_category
            FROM {TABLE_TRAFFIC_LOGS}
            ORDER BY bot_category
            """
        )
        return [row["bot_category"] for row in rows]

    def delete_records_before(self, cutoff: datetime) -> int:
        """Delete logs observed strictly before cutoff."""
        return self.execute(
            f"DELETE FROM {TABLE_TRAFFIC_LOGS} WHERE observed_at < :cutoff",
            {"cutoff": format_timestamp(cutoff)},
        )

    def clear_records(self) -> int:
        """Delete every row in the logs table."""
        return self.execute(f"DELETE FROM {TABLE_TRAFFIC_LOGS}")

    def health_check(self) -> dict:
        """Extended health check with SQLite-specific info."""
        base_check = super().health_check()

        if base_check["healthy"]:
            try:
                db_size = (
                    self.db_path.stat().st_size
                    if not self._in_memory and self.db_path.exists()
                    else 0
                )
                base_check["details"].update(
                    {
                        "db_path": MEMORY_DB if self._in_memory else str(self.db_path),
                        "db_size_bytes": db_size,
                        "record_count": self.record_count(),
                    }
                )
            except Exception as e:
                base_check["details"]["warning"] = str(e)

        return base_check
