"""Session credential resolution for the MiniMax platform.

This module resolves the session cookie used to authenticate the browser.
There is no interactive login: the cookie is supplied out of band.

Resolution order: cookie file (JSON) → MINIMAX_COOKIE environment variable
"""

import json
from pathlib import Path

import structlog
from pydantic import SecretStr

from src.config import Settings
from src.models import Credential

logger = structlog.get_logger(__name__)


class MissingCredentialError(Exception):
    """Raised when no session cookie is available from any source."""

    pass


class SessionProvider:
    """Resolves the session Credential from the configured sources.

    The cookie file wins over the environment when both are present. A file
    that is missing, unreadable or malformed falls through to the environment.
    """

    def __init__(
        self,
        cookie_file: Path,
        env_cookie: SecretStr | None,
        domain: str,
    ) -> None:
        self.cookie_file = cookie_file
        self.env_cookie = env_cookie
        self.domain = domain

    @classmethod
    def from_settings(cls, settings: Settings) -> "SessionProvider":
        return cls(
            cookie_file=Path(settings.cookie_file_path),
            env_cookie=settings.minimax_cookie,
            domain=settings.cookie_domain,
        )

    def resolve_credential(self) -> Credential:
        """Resolve the session Credential.

        Returns:
            A non-empty Credential.

        Raises:
            MissingCredentialError: If neither source yields a usable cookie.
        """
        raw = self._read_cookie_file()
        source = "file"
        if not raw:
            raw = self.env_cookie.get_secret_value().strip() if self.env_cookie else ""
            source = "env"

        if not raw:
            logger.error("credential_missing", cookie_file=str(self.cookie_file))
            raise MissingCredentialError(
                f"No MiniMax cookie found in {self.cookie_file} or MINIMAX_COOKIE"
            )

        try:
            credential = Credential.from_cookie_header(raw, self.domain, source)
        except ValueError as e:
            logger.error("credential_unparseable", source=source, error=str(e))
            raise MissingCredentialError(f"Cookie from {source} is unusable: {e}") from e

        logger.info(
            "credential_resolved",
            source=source,
            cookie_names=credential.names,
        )
        return credential

    def _read_cookie_file(self) -> str:
        """Read the raw cookie string from the cookie file, or "" if unusable."""
        if not self.cookie_file.exists():
            logger.debug("cookie_file_absent", path=str(self.cookie_file))
            return ""

        try:
            data = json.loads(self.cookie_file.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(
                "cookie_file_unreadable",
                path=str(self.cookie_file),
                error=str(e),
            )
            return ""

        cookie = data.get("cookie") if isinstance(data, dict) else None
        if not isinstance(cookie, str) or not cookie.strip():
            logger.warning("cookie_file_missing_field", path=str(self.cookie_file))
            return ""

        return cookie.strip()
