"""Shared test fixtures.

Provides mocked aiohttp sessions and a mocked browser session manager so
adapters can be exercised without network access or a real browser.
"""

from collections.abc import Callable
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

FIXTURES_DIR = Path(__file__).parent / "fixtures"

ENV_VARS = (
    "EBAY_CLIENT_ID",
    "EBAY_CLIENT_SECRET",
    "EBAY_MARKETPLACE_ID",
    "CHROME_PATH",
    "BROWSER_HEADLESS",
    "MARKETPLACES",
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep developer credentials out of the tests."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def fixture_text() -> Callable[[str], str]:
    def read(name: str) -> str:
        return (FIXTURES_DIR / name).read_text(encoding="utf-8")

    return read


def _response(status: int = 200, payload: Any = None, text: str = "") -> MagicMock:
    response = MagicMock()
    response.status = status
    response.json = AsyncMock(return_value=payload)
    response.text = AsyncMock(return_value=text)
    return response


def _context(response: MagicMock) -> MagicMock:
    context = MagicMock()
    context.__aenter__.return_value = response
    context.__aexit__.return_value = False
    return context


@pytest.fixture
def make_response() -> Callable[..., MagicMock]:
    """Build a mocked aiohttp response with status, JSON payload and text."""
    return _response


@pytest.fixture
def make_session() -> Callable[..., MagicMock]:
    """Build a mocked aiohttp session.

    ``get`` and ``post`` take either a list of responses, returned in call
    order, or a callable ``(url, **kwargs) -> response``.
    """

    def build(get: Any = (), post: Any = ()) -> MagicMock:
        session = MagicMock()
        session.__aenter__.return_value = session
        session.__aexit__.return_value = False

        for method, responses in (("get", get), ("post", post)):
            if callable(responses):
                handler = responses
                getattr(session, method).side_effect = (
                    lambda url, _handler=handler, **kwargs: _context(_handler(url, **kwargs))
                )
            else:
                getattr(session, method).side_effect = [_context(r) for r in responses]
        return session

    return build


@pytest.fixture
def mock_page() -> MagicMock:
    page = MagicMock()
    page.goto = AsyncMock()
    page.evaluate = AsyncMock()
    page.content = AsyncMock(return_value="<html></html>")
    page.wait_for_selector = AsyncMock()
    return page


@pytest.fixture
def mock_browser(mock_page) -> MagicMock:
    """Browser session manager whose page() yields ``mock_page``."""
    browser = MagicMock()

    @asynccontextmanager
    async def page():
        yield mock_page

    browser.page = page
    return browser
