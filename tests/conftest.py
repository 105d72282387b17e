"""Pytest configuration and fixtures."""
from unittest.mock import AsyncMock, Mock, patch

import pytest

from chatrelay.core.kv_store import MemoryKeyValueStore


@pytest.fixture
def mock_redis():
    """Mock Redis client."""
    mock = Mock()
    mock.ping.return_value = True
    mock.get.return_value = None
    mock.set.return_value = True
    mock.exists.return_value = 0
    mock.delete.return_value = 1
    mock.scan_iter.return_value = iter([])
    return mock


@pytest.fixture
def memory_store():
    """Empty in-memory key-value store."""
    return MemoryKeyValueStore()


@pytest.fixture
def no_sleep():
    """Skip retry backoff waits; the mock records the requested delays."""
    with patch("chatrelay.core.retry.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        yield mock_sleep


@pytest.fixture
def user_hi():
    return [{"role": "user", "content": "Hi"}]
