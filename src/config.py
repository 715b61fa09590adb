"""Application configuration management using Pydantic Settings.

This module provides a centralized configuration class that loads settings
from environment variables (.env file). The session cookie is handled
securely using Pydantic's SecretStr type.
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SELECTORS_PATH = Path(__file__).parent / "selectors.yaml"


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings are loaded from the .env file or environment variables.
    The session cookie is wrapped in SecretStr to prevent accidental
    logging or exposure.
    """

    # MiniMax Authentication
    minimax_cookie: SecretStr = Field(
        default=SecretStr(""),
        description="Raw MiniMax cookie header, used when no cookie file exists",
    )
    cookie_file_path: str = Field(
        default="minimax-cookie.json",
        description='JSON file holding {"cookie": "..."}; takes precedence over env',
    )
    cookie_domain: str = Field(
        default=".minimaxi.com", description="Domain the injected cookies are scoped to"
    )
    target_url: str = Field(
        default="https://platform.minimaxi.com/user-center/basic-information",
        description="User center page that displays the account balance",
    )

    # Browser Configuration
    browser_headless: bool = Field(
        default=True, description="Run browser in headless mode"
    )
    browser_executable_path: str | None = Field(
        default=None,
        description="Optional system Chromium binary (e.g. /usr/bin/chromium)",
    )
    browser_launch_timeout_ms: int = Field(
        default=30000, description="Browser launch timeout in milliseconds"
    )
    navigation_timeout_ms: int = Field(
        default=30000, description="Page navigation timeout in milliseconds"
    )
    dom_ready_timeout_ms: int = Field(
        default=10000, description="Timeout waiting for <body> in milliseconds"
    )

    # Balance Log Configuration
    balance_log_path: str = Field(
        default="MINIMAX_BALANCE.md", description="Markdown balance log path"
    )

    # Git Sync Configuration
    sync_enabled: bool = Field(
        default=True, description="Commit and push the balance log after each run"
    )
    git_repo_dir: str = Field(
        default=".", description="Working tree the balance log is committed from"
    )
    git_remote: str = Field(default="origin", description="Remote to push to")
    git_branch: str = Field(default="main", description="Branch to push to")
    git_timeout_seconds: int = Field(
        default=60, description="Timeout for each git command in seconds"
    )

    # Logging Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    log_format: str = Field(
        default="console", description="Log output format (json or console)"
    )

    # Selector Configuration
    selectors_path: str = Field(
        default=str(DEFAULT_SELECTORS_PATH),
        description="Path to extraction heuristics YAML configuration file",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


def load_selectors(selectors_path: str | None = None) -> dict[str, Any]:
    """Load balance extraction heuristics from selectors.yaml.

    Args:
        selectors_path: Path to selectors YAML file. If None, uses settings default.

    Returns:
        The ``extraction`` mapping (selectors, glyphs, URL keywords, limits).

    Raises:
        FileNotFoundError: If the selectors file does not exist.
    """
    path = Path(selectors_path) if selectors_path else Path(settings.selectors_path)
    if not path.exists():
        raise FileNotFoundError(f"Selectors config not found: {path}")

    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    return data.get("extraction", {})


# Singleton instance - import this to access settings throughout the application
settings = Settings()
