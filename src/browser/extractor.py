"""Balance extraction from an authenticated MiniMax page.

This module provides the BalanceExtractor class, which turns a loaded page
into an ExtractionResult by running an ordered chain of strategies:

1. DOM heuristic scan over prioritized selectors
2. Re-fetch of the page's own balance-like API calls (resource timing)
3. Truncated body text for manual inspection
4. Empty, when the page has no text at all

The first strategy that yields something wins. Extraction never raises; any
failure inside a strategy degrades to the next one.
"""

import asyncio
import json
import re
from decimal import Decimal, InvalidOperation
from typing import Any

import structlog
from playwright.async_api import Page

from src.models import Empty, ExtractionResult, RawContentSample, StructuredBalance

logger = structlog.get_logger(__name__)

DEFAULT_HEURISTICS: dict[str, Any] = {
    "dom_selectors": [
        '[class*="balance"]',
        '[class*="credit"]',
        '[class*="amount"]',
        '[class*="quota"]',
        "span",
        "div",
    ],
    "currency_glyphs": {"¥": "CNY", "￥": "CNY", "元": "CNY", "$": "USD"},
    "max_candidate_text_length": 80,
    "resource_window": 10,
    "api_url_keywords": ["balance", "credit", "quota"],
    "amount_keys": ["balance", "amount", "credit", "quota"],
    "preview_length": 500,
}

# Dotted dates and version strings (2026.10.19, 1.2.30) are not amounts
DECIMAL_AMOUNT = re.compile(r"(?<![\d.])\d[\d,]*\.\d{2}(?![\d.])")
NUMBER = r"-?\d[\d,]*(?:\.\d+)?"

# Most recent fetch/XHR resource-timing entries, oldest first
RESOURCE_ENTRIES_JS = """(limit) => performance.getEntriesByType('resource')
    .filter(r => r.initiatorType === 'fetch'
        || r.initiatorType === 'xmlhttprequest'
        || r.initiatorType === 'xhr')
    .map(r => ({ name: r.name, type: r.initiatorType }))
    .slice(-limit)"""

# Same-session re-fetch; cookies ride along with credentials: 'include'
FETCH_CANDIDATE_JS = """async (url) => {
    const res = await fetch(url, { credentials: 'include' });
    return { ok: res.ok, status: res.status, body: await res.text() };
}"""


class FetchCandidateError(Exception):
    """Raised when re-fetching a single intercepted API candidate fails."""

    pass


class BalanceExtractor:
    """Extracts a balance observation from an authenticated page.

    Attributes:
        heuristics: Extraction settings loaded from selectors.yaml, merged
            over DEFAULT_HEURISTICS.
        fetch_timeout_ms: Upper bound for each candidate re-fetch.
    """

    def __init__(
        self,
        heuristics: dict[str, Any] | None = None,
        fetch_timeout_ms: int = 30000,
    ) -> None:
        self.heuristics = {**DEFAULT_HEURISTICS, **(heuristics or {})}
        self.fetch_timeout_ms = fetch_timeout_ms
        self._glyphs: dict[str, str] = self.heuristics["currency_glyphs"]

    async def extract(self, page: Page) -> ExtractionResult:
        """Run the strategy chain against a loaded page.

        Args:
            page: A page already navigated and authenticated.

        Returns:
            StructuredBalance, RawContentSample or Empty. Never raises.
        """
        logger.info("balance_extraction_started")

        for strategy in (self._scan_dom, self._probe_network):
            try:
                result = await strategy(page)
            except Exception as e:
                logger.warning(
                    "extraction_strategy_failed",
                    strategy=strategy.__name__,
                    error=str(e),
                    exc_info=True,
                )
                continue
            if result is not None:
                logger.info(
                    "balance_extracted",
                    strategy=result.strategy,
                    amount=str(result.amount) if result.amount is not None else None,
                    currency=result.currency,
                )
                return result

        return await self._snapshot(page)

    async def _scan_dom(self, page: Page) -> StructuredBalance | None:
        """Return the first balance-like element text in selector priority order."""
        for selector in self.heuristics["dom_selectors"]:
            elements = await page.query_selector_all(selector)
            for element in elements:
                try:
                    text = (await element.inner_text()).strip()
                except Exception as e:
                    logger.debug("element_text_unavailable", selector=selector, error=str(e))
                    continue

                balance = self.parse_balance_text(text)
                if balance is not None:
                    logger.info("dom_candidate_found", selector=selector, text=text)
                    return balance

        logger.info("dom_scan_no_match")
        return None

    def parse_balance_text(self, text: str) -> StructuredBalance | None:
        """Accept text carrying a currency glyph or a two-decimal amount.

        Args:
            text: Rendered element text.

        Returns:
            StructuredBalance with the parsed amount, or None if rejected.
        """
        if not text or len(text) > self.heuristics["max_candidate_text_length"]:
            return None

        for glyph, currency in self._glyphs.items():
            if glyph not in text:
                continue
            amount = self._amount_near_glyph(text, glyph)
            if amount is not None:
                return StructuredBalance(
                    amount=amount, currency=currency, source=text, strategy="dom"
                )

        match = DECIMAL_AMOUNT.search(text)
        if match:
            return StructuredBalance(
                amount=self._parse_decimal(match.group(0)),
                source=text,
                strategy="dom",
            )

        return None

    def _amount_near_glyph(self, text: str, glyph: str) -> Decimal | None:
        escaped = re.escape(glyph)
        for pattern in (rf"{escaped}\s*({NUMBER})", rf"({NUMBER})\s*{escaped}"):
            match = re.search(pattern, text)
            if match:
                return self._parse_decimal(match.group(1))
        return None

    async def _probe_network(self, page: Page) -> StructuredBalance | None:
        """Re-fetch the page's own balance-like API calls; first JSON body wins."""
        entries = await page.evaluate(
            RESOURCE_ENTRIES_JS, self.heuristics["resource_window"]
        )
        logger.info("api_calls_observed", calls=entries)

        keywords = self.heuristics["api_url_keywords"]
        candidates = [
            entry["name"]
            for entry in entries or []
            if any(keyword in entry.get("name", "") for keyword in keywords)
        ]
        if not candidates:
            logger.info("no_api_candidates")
            return None

        for url in candidates:
            try:
                data = await self._fetch_candidate(page, url)
            except FetchCandidateError as e:
                logger.warning("api_candidate_failed", url=url, error=str(e))
                continue

            logger.info("api_candidate_parsed", url=url)
            return StructuredBalance(
                amount=self.find_amount(data),
                source=json.dumps(data, ensure_ascii=False),
                strategy="network",
                url=url,
            )

        return None

    async def _fetch_candidate(self, page: Page, url: str) -> Any:
        """Re-fetch url inside the page and parse the body as JSON.

        Raises:
            FetchCandidateError: On timeout, script failure, HTTP error or non-JSON body.
        """
        try:
            response = await asyncio.wait_for(
                page.evaluate(FETCH_CANDIDATE_JS, url),
                timeout=self.fetch_timeout_ms / 1000,
            )
        except asyncio.TimeoutError as e:
            raise FetchCandidateError(
                f"no response within {self.fetch_timeout_ms}ms"
            ) from e
        except Exception as e:
            raise FetchCandidateError(f"fetch failed: {e}") from e

        if not response or not response.get("ok"):
            status = response.get("status") if response else None
            raise FetchCandidateError(f"HTTP status {status}")

        try:
            return json.loads(response.get("body") or "")
        except ValueError as e:
            raise FetchCandidateError(f"response is not JSON: {e}") from e

    def find_amount(self, data: Any) -> Decimal | None:
        """Depth-first search for the first numeric value under an amount-like key."""
        keys = self.heuristics["amount_keys"]

        if isinstance(data, dict):
            for key, value in data.items():
                if any(k in str(key).lower() for k in keys):
                    amount = self._numeric(value)
                    if amount is not None:
                        return amount
                if isinstance(value, (dict, list)):
                    amount = self.find_amount(value)
                    if amount is not None:
                        return amount
        elif isinstance(data, list):
            for item in data:
                amount = self.find_amount(item)
                if amount is not None:
                    return amount

        return None

    def _numeric(self, value: Any) -> Decimal | None:
        if isinstance(value, bool):
            return None
        if isinstance(value, (int, float)):
            return Decimal(str(value))
        if isinstance(value, str) and re.fullmatch(NUMBER, value.strip()):
            return self._parse_decimal(value.strip())
        return None

    async def _snapshot(self, page: Page) -> RawContentSample | Empty:
        """Fall back to the leading page text, or Empty if there is none."""
        try:
            text = (await page.inner_text("body")).strip()
        except Exception as e:
            logger.warning("body_text_unavailable", error=str(e))
            text = ""

        if not text:
            logger.warning("page_has_no_text")
            return Empty()

        preview = text[: self.heuristics["preview_length"]]
        logger.info("raw_content_captured", length=len(preview))
        return RawContentSample(content_preview=preview)

    def _parse_decimal(self, text: str) -> Decimal | None:
        try:
            return Decimal(text.replace(",", ""))
        except InvalidOperation:
            logger.warning("amount_parse_failed", text=text)
            return None
