"""
Shared fixtures.
"""

from typing import Any, Callable

import httpx
import pytest

from nexarest.core.config import get_config
from nexarest.utils.logger import MemoryHandler, get_logger


@pytest.fixture(autouse=True)
def config():
    """Global configuration, with runtime overrides dropped after each test."""
    config = get_config()
    yield config
    config.reset()


@pytest.fixture
def log_records():
    handler = MemoryHandler()
    logger = get_logger("nexarest")
    logger.add_handler(handler)
    yield handler
    logger.remove_handler(handler)


@pytest.fixture
def client_for() -> Callable[[Any], httpx.AsyncClient]:
    """Build an httpx client talking to an ASGI app in-process."""
    def factory(app: Any) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")
    return factory
