"""Balance check entry point for the MiniMax Balance Monitor.

This module runs one balance check: resolve the session cookie, load the
user center in a headless browser, extract the balance, prepend it to the
markdown log and publish the log with git. Scheduling is external (cron).

Run with: python -m src.runner
"""

import asyncio
import logging
import sys
from pathlib import Path

import structlog

from src.browser.context import BrowserManager, BrowserSessionError
from src.browser.credentials import MissingCredentialError, SessionProvider
from src.browser.extractor import BalanceExtractor
from src.config import Settings, load_selectors, settings
from src.models import Observation
from src.recorder.git_sync import GitSync
from src.recorder.markdown_log import ObservationRecorder, PersistenceError

EXIT_OK = 0
EXIT_MISSING_CREDENTIAL = 2
EXIT_BROWSER_SESSION = 3
EXIT_PERSISTENCE = 4

logger = structlog.get_logger(__name__)


# Configure structlog
def configure_logging(config: Settings = settings) -> None:
    """Configure structlog for JSON or console output."""
    if config.log_format == "json":
        processors = [
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(ensure_ascii=False),
        ]
    else:
        processors = [
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ]

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, config.log_level.upper(), logging.INFO)
        ),
        cache_logger_on_first_use=True,
    )


async def run(
    config: Settings = settings,
    *,
    provider: SessionProvider | None = None,
    browser: BrowserManager | None = None,
    extractor: BalanceExtractor | None = None,
    recorder: ObservationRecorder | None = None,
    sync: GitSync | None = None,
) -> int:
    """Run one balance check and return the process exit code.

    Collaborators default to instances built from config; tests inject their own.

    Returns:
        EXIT_OK for any completed run (degraded extraction and failed sync
        included), otherwise the code of the fatal failure.
    """
    logger.info("balance_check_started", target_url=config.target_url)

    provider = provider or SessionProvider.from_settings(config)
    try:
        credential = provider.resolve_credential()
    except MissingCredentialError as e:
        logger.error("balance_check_aborted", reason="missing_credential", error=str(e))
        return EXIT_MISSING_CREDENTIAL

    browser = browser or BrowserManager.from_settings(config)
    extractor = extractor or BalanceExtractor(
        load_selectors(config.selectors_path),
        fetch_timeout_ms=config.navigation_timeout_ms,
    )
    try:
        result = await browser.with_authenticated_page(
            credential, config.target_url, extractor.extract
        )
    except BrowserSessionError as e:
        logger.error(
            "balance_check_aborted",
            reason=type(e).__name__,
            error=str(e),
        )
        return EXIT_BROWSER_SESSION

    observation = Observation.now(result)
    logger.info(
        "balance_observed",
        timestamp=observation.formatted_timestamp,
        data=observation.result.model_dump(mode="json"),
    )

    log_path = Path(config.balance_log_path)
    recorder = recorder or ObservationRecorder()
    try:
        recorder.record(observation, log_path)
    except PersistenceError as e:
        logger.error("balance_check_aborted", reason="persistence", error=str(e))
        return EXIT_PERSISTENCE

    if config.sync_enabled:
        sync = sync or GitSync.from_settings(config)
        outcome = sync.publish(log_path, observation.formatted_timestamp)
        logger.info("balance_log_sync", status=outcome.status, reason=outcome.reason)
    else:
        logger.info("balance_log_sync_disabled")

    logger.info("balance_check_completed", kind=observation.result.kind)
    return EXIT_OK


def main() -> None:
    configure_logging()
    sys.exit(asyncio.run(run()))


if __name__ == "__main__":
    main()
