"""Pytest configuration and shared fixtures for all tests."""

import os
import sys
from pathlib import Path

# Minimal environment for Settings; tests never touch Postgres or Redis
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("REDIS_HOST", "localhost")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_FILE", "")

# Add project root to PYTHONPATH
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from unittest.mock import AsyncMock, MagicMock

import pytest


@pytest.fixture
def mock_session():
    """Mock AsyncSession for tests without a database."""
    session = AsyncMock()
    session.execute = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.flush = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()

    # begin_nested() is an async context manager; __aexit__ records the
    # exception type a savepoint was left with and never suppresses it
    savepoint = MagicMock()
    savepoint.__aenter__ = AsyncMock(return_value=savepoint)
    savepoint.__aexit__ = AsyncMock(return_value=False)
    session.begin_nested = MagicMock(return_value=savepoint)
    return session


@pytest.fixture
def savepoint_exits(mock_session):
    """Exception types the mock session's savepoints were left with."""

    def _savepoint_exits() -> list[type[BaseException] | None]:
        savepoint = mock_session.begin_nested.return_value
        return [call.args[0] for call in savepoint.__aexit__.await_args_list]

    return _savepoint_exits


@pytest.fixture
def mock_redis_client():
    """Mock async Redis client with a lock factory."""
    client = AsyncMock()
    redis_lock = MagicMock()
    redis_lock.acquire = AsyncMock(return_value=True)
    redis_lock.release = AsyncMock()
    client.lock = MagicMock(return_value=redis_lock)
    return client
