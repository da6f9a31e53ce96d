"""Record schemas for the queue and durable traffic tables."""

from .hits import (
    HIT_COLUMNS,
    QueuedHit,
    TrafficHit,
    TrafficRecord,
    format_timestamp,
    parse_timestamp,
    to_utc,
)

__all__ = [
    "HIT_COLUMNS",
    "TrafficHit",
    "QueuedHit",
    "TrafficRecord",
    "format_timestamp",
    "parse_timestamp",
    "to_utc",
]
