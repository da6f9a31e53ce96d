"""Reporting queries over the AI traffic logs."""

from .traffic_queries import (
    LogFilter,
    LogPage,
    TrafficQueries,
    TrafficStatistics,
)

__all__ = [
    "LogFilter",
    "LogPage",
    "TrafficQueries",
    "TrafficStatistics",
]
