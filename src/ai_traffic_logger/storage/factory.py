"""
Storage backend registry.

Backends register under a short name; get_backend() builds one by name,
taking the name and database path from settings when not given.
"""

import logging
from typing import Optional

from .base import StorageBackend, StorageError

logger = logging.getLogger(__name__)

_BACKEND_REGISTRY: dict[str, type[StorageBackend]] = {}

# Backends shipped with the package, imported on first use
_BUILTIN_BACKENDS = ("sqlite",)


def register_backend(backend_type: str, backend_class: type[StorageBackend]) -> None:
    """Make a StorageBackend subclass available to get_backend()."""
    _BACKEND_REGISTRY[backend_type.lower()] = backend_class
    logger.debug(f"Registered storage backend: {backend_type}")


def _ensure_builtin(backend_type: str) -> None:
    if backend_type in _BACKEND_REGISTRY:
        return
    if backend_type == "sqlite":
        from .sqlite_backend import SQLiteBackend

        register_backend("sqlite", SQLiteBackend)


def get_backend(backend_type: Optional[str] = None, **kwargs) -> StorageBackend:
    """
    Build a storage backend.

    Args:
        backend_type: Registered backend name; defaults to
            settings.storage_backend
        **kwargs: Constructor arguments (db_path for sqlite). Arguments
            left as None fall back to settings.

    Returns:
        An uninitialized StorageBackend; call initialize() before use.

    Raises:
        StorageError: For an unknown backend or a failed construction.

    Examples:
        backend = get_backend("sqlite", db_path="data/ai-traffic.db")
        backend = get_backend("sqlite", db_path=":memory:")
    """
    kwargs = {key: value for key, value in kwargs.items() if value is not None}

    if backend_type is None or (backend_type == "sqlite" and "db_path" not in kwargs):
        from ..config.settings import get_settings

        settings = get_settings()
        backend_type = backend_type or settings.storage_backend
        if backend_type == "sqlite":
            kwargs.setdefault("db_path", settings.sqlite_db_path)

    backend_type = backend_type.lower()
    _ensure_builtin(backend_type)

    backend_class = _BACKEND_REGISTRY.get(backend_type)
    if backend_class is None:
        raise StorageError(
            f"Unknown storage backend: '{backend_type}'. "
            f"Available backends: {', '.join(list_available_backends())}"
        )

    try:
        backend = backend_class(**kwargs)
    except Exception as e:
        raise StorageError(f"Failed to create {backend_type} backend: {e}") from e

    logger.info(f"Created {backend_type} storage backend")
    return backend


def list_available_backends() -> list[str]:
    """Names of all backends get_backend() can build."""
    for backend_type in _BUILTIN_BACKENDS:
        _ensure_builtin(backend_type)
    return sorted(_BACKEND_REGISTRY)


def is_backend_available(backend_type: str) -> bool:
    backend_type = backend_type.lower()
    _ensure_builtin(backend_type)
    return backend_type in _BACKEND_REGISTRY
