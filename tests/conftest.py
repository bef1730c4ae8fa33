"""
Shared pytest fixtures for Termalime tests.

Provides:
- Settings fixtures (isolated from the process environment)
- Terminal fixtures backed by real /bin/sh PTYs
- Mock model server client
"""

import asyncio
import os
import sys
import time
from collections.abc import Callable
from unittest.mock import AsyncMock, MagicMock

import pytest

from termalime.config import TermalimeSettings, get_settings
from termalime.services.ollama_client import OllamaClient

TEST_SHELL = "/bin/sh"

requires_pty = pytest.mark.skipif(
    sys.platform == "win32" or not os.path.exists(TEST_SHELL),
    reason="needs POSIX pseudo-terminals and /bin/sh",
)


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Each test sees settings built from its own environment"""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def test_settings() -> TermalimeSettings:
    return TermalimeSettings(
        environment="testing",
        default_shell=TEST_SHELL,
        ollama_base_url="http://ollama.test",
        session_close_timeout=1.0,
        registry_lock_timeout=1.0,
    )


@pytest.fixture
def mock_ollama_client() -> MagicMock:
    """Mock model server client"""
    client = MagicMock(spec=OllamaClient)
    client.base_url = "http://ollama.test"
    client.chat = AsyncMock()
    client.check_server = AsyncMock(return_value=True)
    client.list_models = AsyncMock(return_value=[])
    return client


def wait_until(predicate: Callable[[], bool], timeout: float = 5.0, interval: float = 0.02) -> bool:
    """Poll ``predicate`` from synchronous code"""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


async def async_wait_until(predicate: Callable[[], bool], timeout: float = 5.0, interval: float = 0.02) -> bool:
    """Poll ``predicate`` without blocking the event loop"""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        await asyncio.sleep(interval)
    return predicate()
