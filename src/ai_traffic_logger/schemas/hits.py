"""
Traffic hit records flowing through the queue and durable tables.

Both tables share the same columns:
    id, observed_at, user_agent, referrer, ip_hash, request_path,
    method, bot_category
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from dateutil import parser as date_parser

from ..config.constants import (
    DEFAULT_REQUEST_METHOD,
    MAX_METHOD_LENGTH,
    MAX_REFERRER_LENGTH,
    MAX_REQUEST_PATH_LENGTH,
    MAX_USER_AGENT_LENGTH,
)

HIT_COLUMNS = [
    "observed_at",
    "user_agent",
    "referrer",
    "ip_hash",
    "request_path",
    "method",
    "bot_category",
]


def _truncate(value: Optional[str], max_length: int) -> str:
    """Truncate to max_length characters; None becomes an empty string."""
    if not value:
        return ""
    return value[:max_length]


def to_utc(value: datetime) -> datetime:
    """Normalize a datetime to UTC; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Format a datetime as the ISO8601 UTC string stored in SQLite."""
    return to_utc(value).isoformat(timespec="seconds")


def parse_timestamp(value: Any) -> datetime:
    """
    Parse a stored timestamp back to an aware UTC datetime.

    Raises:
        ValueError: If the value cannot be parsed
    """
    if isinstance(value, datetime):
        return to_utc(value)
    try:
        return to_utc(date_parser.isoparse(str(value)))
    except (ValueError, OverflowError) as e:
        raise ValueError(f"Invalid timestamp: {value!r}") from e


@dataclass(frozen=True)
class TrafficHit:
    """
    One request recognized as AI crawler or AI-referred traffic.

    Only constructed after classification succeeded and the sampling
    gate accepted the request, so bot_category is always set.
    """

    observed_at: datetime
    user_agent: str
    request_path: str
    bot_category: str
    method: str = DEFAULT_REQUEST_METHOD
    referrer: Optional[str] = None
    ip_hash: Optional[str] = None

    @classmethod
    def create(
        cls,
        *,
        bot_category: str,
        user_agent: Optional[str],
        request_path: Optional[str],
        referrer: Optional[str] = None,
        method: Optional[str] = None,
        ip_hash: Optional[str] = None,
        observed_at: Optional[datetime] = None,
    ) -> "TrafficHit":
        """
        Build a hit, applying field length limits.

        An empty referrer is stored as None; a missing method defaults
        to GET. observed_at is kept to whole seconds, the stored precision.
        """
        if not bot_category:
            raise ValueError("bot_category is required")

        observed_at = to_utc(observed_at or datetime.now(timezone.utc))

        return cls(
            observed_at=observed_at.replace(microsecond=0),
            user_agent=_truncate(user_agent, MAX_USER_AGENT_LENGTH),
            referrer=_truncate(referrer, MAX_REFERRER_LENGTH) or None,
            ip_hash=ip_hash or None,
            request_path=_truncate(request_path, MAX_REQUEST_PATH_LENGTH),
            method=(
                _truncate(method, MAX_METHOD_LENGTH).upper() or DEFAULT_REQUEST_METHOD
            ),
            bot_category=bot_category,
        )

    def to_row(self) -> dict[str, Any]:
        """Convert to a parameter dictionary for SQL inserts."""
        return {
            "observed_at": format_timestamp(self.observed_at),
            "user_agent": self.user_agent,
            "referrer": self.referrer,
            "ip_hash": self.ip_hash,
            "request_path": self.request_path,
            "method": self.method,
            "bot_category": self.bot_category,
        }

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return self.to_row()

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "TrafficHit":
        """Create from a database row."""
        return cls(
            observed_at=parse_timestamp(row["observed_at"]),
            user_agent=row.get("user_agent") or "",
            referrer=row.get("referrer") or None,
            ip_hash=row.get("ip_hash") or None,
            request_path=row.get("request_path") or "",
            method=row.get("method") or DEFAULT_REQUEST_METHOD,
            bot_category=row["bot_category"],
        )


@dataclass(frozen=True)
class QueuedHit:
    """A hit waiting in the queue table, keyed by its queue id."""

    id: int
    hit: TrafficHit

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "QueuedHit":
        """Create from a queue table row."""
        return cls(id=int(row["id"]), hit=TrafficHit.from_row(row))


@dataclass(frozen=True)
class TrafficRecord:
    """A durable record of AI traffic."""

    id: int
    hit: TrafficHit

    @property
    def observed_at(self) -> datetime:
        return self.hit.observed_at

    @property
    def bot_category(self) -> str:
        return self.hit.bot_category

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary, including the record id."""
        return {"id": self.id, **self.hit.to_dict()}

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "TrafficRecord":
        """Create from a durable table row."""
        return cls(id=int(row["id"]), hit=TrafficHit.from_row(row))
