"""
Read-side queries over the logs table for the admin UI and exports.

Log browsing is paginated in SQL; statistics load the requested window
into a pandas DataFrame and aggregate there.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from pathlib import Path
from typing import Any, Optional

import pandas as pd

from ..config.constants import DEFAULT_PAGE_SIZE, TOP_BOTS_LIMIT
from ..schemas import HIT_COLUMNS, TrafficRecord, to_utc
from ..storage import StorageBackend, get_backend

logger = logging.getLogger(__name__)

DEFAULT_STATS_DAYS = 30
REFERRER_TYPE_DIRECT = "Direct"
REFERRER_TYPE_AI = "AI Referral"

RECORD_COLUMNS = ["id"] + HIT_COLUMNS


@dataclass
class LogFilter:
    """
    Filters for browsing logs.

    date_from and date_to are inclusive calendar days in UTC.
    """

    bot_category: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None

    @property
    def start(self) -> Optional[datetime]:
        if self.date_from is None:
            return None
        return datetime.combine(self.date_from, time.min, tzinfo=timezone.utc)

    @property
    def end(self) -> Optional[datetime]:
        if self.date_to is None:
            return None
        return datetime.combine(self.date_to, time(23, 59, 59), tzinfo=timezone.utc)

    def to_kwargs(self) -> dict[str, Any]:
        return {
            "bot_category": self.bot_category or None,
            "start": self.start,
            "end": self.end,
        }


@dataclass
class LogPage:
    """One page of log records, newest first."""

    records: list[TrafficRecord]
    total: int
    page: int
    per_page: int

    @property
    def total_pages(self) -> int:
        if self.total == 0:
            return 0
        return math.ceil(self.total / self.per_page)

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    def to_dict(self) -> dict:
        return {
            "records": [record.to_dict() for record in self.records],
            "total": self.total,
            "page": self.page,
            "per_page": self.per_page,
            "total_pages": self.total_pages,
        }


@dataclass
class TrafficStatistics:
    """Aggregated AI traffic over the last N days."""

    days: int
    total_visits: int = 0
    unique_bots: int = 0
    top_bots: pd.DataFrame = field(
        default_factory=lambda: pd.DataFrame(columns=["bot_category", "visits", "percentage"])
    )
    daily_trend: pd.DataFrame = field(
        default_factory=lambda: pd.DataFrame(columns=["date", "visits"])
    )
    referrer_split: pd.DataFrame = field(
        default_factory=lambda: pd.DataFrame(columns=["referrer_type", "visits"])
    )

    @property
    def avg_daily_visits(self) -> float:
        return self.total_visits / self.days if self.days > 0 else 0.0

    def to_dict(self) -> dict:
        """Convert to dictionary for logging/serialization."""
        trend = self.daily_trend.copy()
        trend["date"] = trend["date"].astype(str)
        return {
            "days": self.days,
            "total_visits": self.total_visits,
            "unique_bots": self.unique_bots,
            "avg_daily_visits": round(self.avg_daily_visits, 1),
            "top_bots": self.top_bots.to_dict(orient="records"),
            "daily_trend": trend.to_dict(orient="records"),
            "referrer_split": self.referrer_split.to_dict(orient="records"),
        }


class TrafficQueries:
    """
    Query interface over the AI traffic logs.

    Example:
        with TrafficQueries(db_path=Path("data/ai-traffic.db")) as queries:
            page = queries.get_logs(LogFilter(bot_category="GPTBot"), page=1)
            stats = queries.get_statistics(days=30)
    """

    def __init__(
        self,
        backend: Optional[StorageBackend] = None,
        backend_type: str = "sqlite",
        db_path: Optional[Path] = None,
    ):
        """
        Initialize traffic queries.

        Args:
            backend: Pre-initialized StorageBackend (optional)
            backend_type: Backend type if creating new ('sqlite')
            db_path: Path to SQLite database (for sqlite backend)
        """
        if backend:
            self._backend = backend
            self._owns_backend = False
        else:
            self._backend = get_backend(backend_type, db_path=db_path)
            self._owns_backend = True

        self._initialized = False

    def initialize(self) -> None:
        """Initialize the backend."""
        if not self._initialized:
            self._backend.initialize()
            self._initialized = True

    def close(self) -> None:
        """Close the backend connection."""
        if self._owns_backend:
            self._backend.close()

    def __enter__(self) -> "TrafficQueries":
        """Context manager entry."""
        self.initialize()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.close()

    # =========================================================================
    # LOG BROWSING
    # =========================================================================

    def get_logs(
        self,
        log_filter: Optional[LogFilter] = None,
        page: int = 1,
        per_page: int = DEFAULT_PAGE_SIZE,
    ) -> LogPage:
        """
        Get one page of logs, newest first.

        Args:
            log_filter: Category and date range filters
            page: 1-based page number
            per_page: Records per page

        Returns:
            LogPage with the records and total count
        """
        self.initialize()
        log_filter = log_filter or LogFilter()
        page = max(1, int(page))
        per_page = max(1, int(per_page))

        kwargs = log_filter.to_kwargs()
        total = self._backend.count_records(**kwargs)
        records = self._backend.fetch_records(
            **kwargs, limit=per_page, offset=(page - 1) * per_page
        )
        return LogPage(records=records, total=total, page=page, per_page=per_page)

    def count_logs(self, log_filter: Optional[LogFilter] = None) -> int:
        """Count logs matching the filter."""
        self.initialize()
        return self._backend.count_records(**(log_filter or LogFilter()).to_kwargs())

    def get_bot_categories(self) -> list[str]:
        """Get the category labels present in the logs."""
        self.initialize()
        return self._backend.distinct_categories()

    def get_queue_depth(self) -> int:
        """Get the number of hits waiting for the next flush."""
        self.initialize()
        return self._backend.queue_count()

    def clear_logs(self) -> int:
        """
        Delete every log record.

        Returns:
            Number of records deleted
        """
        self.initialize()
        deleted = self._backend.clear_records()
        logger.warning(f"Cleared all AI traffic logs ({deleted} records)")
        return deleted

    # =========================================================================
    # EXPORT
    # =========================================================================

    def to_dataframe(self, log_filter: Optional[LogFilter] = None) -> pd.DataFrame:
        """
        Load all logs matching the filter into a DataFrame, newest first.

        observed_at is returned as a timezone-aware datetime column.
        """
        self.initialize()
        records = self._backend.fetch_records(**(log_filter or LogFilter()).to_kwargs())
        return self._records_to_dataframe(records)

    @staticmethod
    def _records_to_dataframe(records: list[TrafficRecord]) -> pd.DataFrame:
        if not records:
            return pd.DataFrame(columns=RECORD_COLUMNS)

        df = pd.DataFrame([record.to_dict() for record in records], columns=RECORD_COLUMNS)
        df["observed_at"] = pd.to_datetime(df["observed_at"], format="ISO8601", utc=True)
        return df

    # =========================================================================
    # STATISTICS
    # =========================================================================

    def get_statistics(
        self,
        days: int = DEFAULT_STATS_DAYS,
        now: Optional[datetime] = None,
    ) -> TrafficStatistics:
        """
        Aggregate traffic over the last N days.

        Args:
            days: Window size in days (minimum 1)
            now: Reference time (defaults to the current UTC time)

        Returns:
            TrafficStatistics with totals, top bots, daily trend and
            referrer split
        """
        self.initialize()
        days = max(1, int(days))
        now = to_utc(now) if now else datetime.now(timezone.utc)
        since = now - timedelta(days=days)

        df = self._records_to_dataframe(self._backend.fetch_records_since(since))
        stats = TrafficStatistics(days=days)
        if df.empty:
            return stats

        stats.total_visits = len(df)
        stats.unique_bots = int(df["bot_category"].nunique())

        top = (
            df.groupby("bot_category")
            .size()
            .reset_index(name="visits")
            .sort_values(["visits", "bot_category"], ascending=[False, True])
            .head(TOP_BOTS_LIMIT)
            .reset_index(drop=True)
        )
        top["percentage"] = (top["visits"] / stats.total_visits * 100).round(1)
        stats.top_bots = top

        stats.daily_trend = (
            df.assign(date=df["observed_at"].dt.date)
            .groupby("date")
            .size()
            .reset_index(name="visits")
            .sort_values("date", ascending=False)
            .reset_index(drop=True)
        )

        has_referrer = df["referrer"].fillna("").astype(str) != ""
        referrer_type = has_referrer.map(
            {True: REFERRER_TYPE_AI, False: REFERRER_TYPE_DIRECT}
        )
        stats.referrer_split = (
            df.assign(referrer_type=referrer_type)
            .groupby("referrer_type")
            .size()
            .reset_index(name="visits")
            .sort_values("visits", ascending=False)
            .reset_index(drop=True)
        )

        logger.debug(
            f"Statistics over {days} days: {stats.total_visits} visits, "
            f"{stats.unique_bots} bots"
        )
        return stats
