"""
Pytest configuration and shared fixtures for unit tests.
"""

import pytest

from ai_traffic_logger.config import Settings
from ai_traffic_logger.storage import get_backend


@pytest.fixture
def settings():
    """Default settings with IP hashing enabled and a site secret."""
    return Settings(sqlite_db_path=":memory:", site_secret="unit-test-secret")


@pytest.fixture
def memory_backend():
    """Initialized in-memory SQLite backend."""
    backend = get_backend("sqlite", db_path=":memory:")
    backend.initialize()
    yield backend
    backend.close()
