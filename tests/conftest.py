"""Pytest configuration and fixtures."""
from unittest.mock import AsyncMock, MagicMock

import pytest

from pagelens.config import Settings


@pytest.fixture
def settings():
    """Settings with short budgets so mocked waits never matter."""
    return Settings(
        query_timeout_ms=100,
        load_timeout_ms=100,
        default_max_depth=3,
    )


@pytest.fixture
def mock_page():
    """A Playwright page double with the async methods the components call."""
    page = MagicMock()
    page.evaluate = AsyncMock()
    page.wait_for_load_state = AsyncMock()
    page.wait_for_selector = AsyncMock()
    page.query_selector_all = AsyncMock(return_value=[])
    page.expose_function = AsyncMock()
    page.content = AsyncMock(return_value="<html><body></body></html>")
    page.title = AsyncMock(return_value="")
    return page
