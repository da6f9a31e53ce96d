"""
Request-path ingestion for AI traffic.

Usage:
    from ai_traffic_logger.ingestion import IngestionGate, RequestContext

    gate = IngestionGate(backend, settings)
    gate.handle(RequestContext(user_agent=ua, referrer=ref, request_path="/"))
"""

from .context import BACKGROUND_ENVIRON_KEY, RequestContext, is_internal_path
from .gate import GateStats, IngestionGate
from .middleware import AITrafficMiddleware

__all__ = [
    "RequestContext",
    "is_internal_path",
    "BACKGROUND_ENVIRON_KEY",
    "IngestionGate",
    "GateStats",
    "AITrafficMiddleware",
]
