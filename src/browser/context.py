"""Browser session management with Playwright.

This module provides a BrowserManager that launches an isolated headless
Chromium per run, injects the session cookies, loads the target page and
guarantees the browser is closed on every exit path.
"""

from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, TypeVar

import structlog
from playwright.async_api import (
    Browser,
    Error as PlaywrightError,
    Page,
    Playwright,
    async_playwright,
)

from src.config import Settings
from src.models import Credential

logger = structlog.get_logger(__name__)

T = TypeVar("T")

CHROMIUM_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
]


class BrowserSessionError(Exception):
    """Base class for fatal browser session failures."""

    pass


class LaunchError(BrowserSessionError):
    """Raised when the browser cannot be launched."""

    pass


class NavigationError(BrowserSessionError):
    """Raised when the target page cannot be loaded within its timeouts."""

    pass


class BrowserManager:
    """Owns the lifecycle of one headless browser per authenticated page load.

    Usage:
        manager = BrowserManager.from_settings(settings)
        async with manager.authenticated_page(credential, url) as page:
            ...  # page is loaded and authenticated
        # browser is closed here, whatever happened inside the block
    """

    def __init__(
        self,
        *,
        headless: bool = True,
        executable_path: str | None = None,
        launch_timeout_ms: int = 30000,
        navigation_timeout_ms: int = 30000,
        dom_ready_timeout_ms: int = 10000,
        playwright_factory: Callable[[], Any] = async_playwright,
    ) -> None:
        self.headless = headless
        self.executable_path = executable_path
        self.launch_timeout_ms = launch_timeout_ms
        self.navigation_timeout_ms = navigation_timeout_ms
        self.dom_ready_timeout_ms = dom_ready_timeout_ms
        self._playwright_factory = playwright_factory

    @classmethod
    def from_settings(cls, settings: Settings) -> "BrowserManager":
        return cls(
            headless=settings.browser_headless,
            executable_path=settings.browser_executable_path,
            launch_timeout_ms=settings.browser_launch_timeout_ms,
            navigation_timeout_ms=settings.navigation_timeout_ms,
            dom_ready_timeout_ms=settings.dom_ready_timeout_ms,
        )

    @asynccontextmanager
    async def authenticated_page(
        self, credential: Credential, target_url: str
    ) -> AsyncIterator[Page]:
        """Yield a page loaded at target_url with the credential's cookies.

        Raises:
            LaunchError: If Playwright or Chromium fails to start.
            NavigationError: If navigation or the DOM-ready wait fails or times out.
        """
        playwright, browser = await self._launch()
        try:
            try:
                context = await browser.new_context()
                await context.add_cookies(credential.to_browser_cookies())
                logger.debug(
                    "cookies_injected",
                    count=len(credential.cookies),
                    domain=credential.domain,
                )
                page = await context.new_page()
            except PlaywrightError as e:
                logger.error("browser_context_setup_failed", error=str(e))
                raise LaunchError(f"Failed to prepare browser context: {e}") from e

            await self._navigate_and_wait(page, target_url)

            yield page

        finally:
            await self._shutdown(playwright, browser)

    async def with_authenticated_page(
        self,
        credential: Credential,
        target_url: str,
        fn: Callable[[Page], Awaitable[T]],
    ) -> T:
        """Run fn against an authenticated page and return its result."""
        async with self.authenticated_page(credential, target_url) as page:
            return await fn(page)

    async def _launch(self) -> tuple[Playwright, Browser]:
        logger.info(
            "launching_browser",
            headless=self.headless,
            executable_path=self.executable_path,
        )

        try:
            playwright = await self._playwright_factory().start()
        except Exception as e:
            logger.error("playwright_start_failed", error=str(e), exc_info=True)
            raise LaunchError(f"Failed to start Playwright: {e}") from e

        try:
            browser = await playwright.chromium.launch(
                headless=self.headless,
                executable_path=self.executable_path,
                args=CHROMIUM_ARGS,
                timeout=self.launch_timeout_ms,
            )
        except Exception as e:
            logger.error("browser_launch_failed", error=str(e), exc_info=True)
            await self._stop_playwright(playwright)
            raise LaunchError(f"Failed to launch browser: {e}") from e

        logger.info("browser_launched")
        return playwright, browser

    async def _navigate_and_wait(self, page: Page, url: str) -> None:
        """Navigate to URL, wait for network idle, then for <body>.

        Raises:
            NavigationError: If either wait fails or times out.
        """
        logger.info("navigating_to_url", url=url)
        try:
            await page.goto(
                url, wait_until="networkidle", timeout=self.navigation_timeout_ms
            )
        except PlaywrightError as e:
            logger.error("navigation_failed", url=url, error=str(e))
            raise NavigationError(f"Failed to load {url}: {e}") from e

        try:
            await page.wait_for_selector("body", timeout=self.dom_ready_timeout_ms)
        except PlaywrightError as e:
            logger.error("dom_ready_wait_failed", url=url, error=str(e))
            raise NavigationError(f"Page body not ready at {url}: {e}") from e

        logger.info("navigation_complete", url=page.url)

    async def _shutdown(self, playwright: Playwright, browser: Browser) -> None:
        logger.info("closing_browser")
        try:
            await browser.close()
        except Exception as e:
            logger.warning("error_closing_browser", error=str(e))
        finally:
            await self._stop_playwright(playwright)

        logger.info("browser_shutdown_complete")

    async def _stop_playwright(self, playwright: Playwright) -> None:
        try:
            await playwright.stop()
        except Exception as e:
            logger.warning("error_stopping_playwright", error=str(e))
