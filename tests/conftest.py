"""Shared fakes for Playwright pages and the Playwright driver."""

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.browser.extractor import FETCH_CANDIDATE_JS, RESOURCE_ENTRIES_JS


def make_element(text: str) -> MagicMock:
    element = MagicMock()
    element.inner_text = AsyncMock(return_value=text)
    return element


def make_page(
    dom: dict[str, list[str]] | None = None,
    entries: list[dict[str, str]] | None = None,
    responses: dict[str, Any] | None = None,
    body: str = "",
) -> MagicMock:
    """Build a fake loaded page.

    Args:
        dom: Selector -> texts of matching elements, in document order.
        entries: Resource-timing entries returned by the page.
        responses: URL -> fetch result dict, an Exception to raise, or an
            async callable awaited in place of the fetch.
        body: Visible body text.
    """
    dom = dom or {}
    responses = responses or {}

    async def evaluate(script: str, arg: Any = None) -> Any:
        if script == RESOURCE_ENTRIES_JS:
            return entries or []
        if script == FETCH_CANDIDATE_JS:
            response = responses[arg]
            if isinstance(response, Exception):
                raise response
            if callable(response):
                return await response()
            return response
        raise AssertionError(f"unexpected script: {script}")

    page = MagicMock()
    page.url = "https://platform.minimaxi.com/user-center/basic-information"
    page.query_selector_all = AsyncMock(
        side_effect=lambda selector: [make_element(t) for t in dom.get(selector, [])]
    )
    page.evaluate = AsyncMock(side_effect=evaluate)
    page.inner_text = AsyncMock(return_value=body)
    page.goto = AsyncMock()
    page.wait_for_selector = AsyncMock()
    return page


def json_response(body: str, status: int = 200) -> dict[str, Any]:
    return {"ok": 200 <= status < 300, "status": status, "body": body}


class FakePlaywright:
    """Mocked async_playwright() factory with handles to every object."""

    def __init__(self, page: MagicMock | None = None, launch_error: Exception | None = None):
        self.page = page or make_page()
        self.context = MagicMock()
        self.context.add_cookies = AsyncMock()
        self.context.new_page = AsyncMock(return_value=self.page)
        self.browser = MagicMock()
        self.browser.new_context = AsyncMock(return_value=self.context)
        self.browser.close = AsyncMock()
        self.driver = MagicMock()
        self.driver.chromium.launch = AsyncMock(
            return_value=self.browser, side_effect=launch_error
        )
        self.driver.stop = AsyncMock()
        self.factory = MagicMock(
            return_value=MagicMock(start=AsyncMock(return_value=self.driver))
        )


@pytest.fixture
def fake_playwright():
    return FakePlaywright()
