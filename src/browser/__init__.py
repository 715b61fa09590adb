"""Browser automation module for MiniMax balance extraction.

This module provides credential resolution, browser session management and
balance extraction using Playwright with cookie-injected sessions.
"""

from src.browser.context import BrowserManager, LaunchError, NavigationError
from src.browser.credentials import MissingCredentialError, SessionProvider
from src.browser.extractor import BalanceExtractor

__all__ = [
    "BrowserManager",
    "LaunchError",
    "NavigationError",
    "MissingCredentialError",
    "SessionProvider",
    "BalanceExtractor",
]
