"""
Storage abstraction layer for AI traffic logging.

Provides the queue table and the durable logs table behind one
interface.

Usage:
    from ai_traffic_logger.storage import get_backend

    # Get backend from configuration
    backend = get_backend()

    # Or explicitly specify backend
    backend = get_backend('sqlite', db_path='data/ai-traffic.db')

    # Use as context manager
    with get_backend('sqlite', db_path=':memory:') as backend:
        backend.initialize()
        backend.queue_count()
"""

from .base import (
    QueryError,
    SchemaError,
    StorageBackend,
    StorageConnectionError,
    StorageError,
)
from .factory import (
    get_backend,
    is_backend_available,
    list_available_backends,
    register_backend,
)

__all__ = [
    # Base classes and exceptions
    "StorageBackend",
    "StorageError",
    "StorageConnectionError",
    "QueryError",
    "SchemaError",
    # Factory functions
    "get_backend",
    "register_backend",
    "list_available_backends",
    "is_backend_available",
]
