"""Newest-first markdown log of balance observations.

Each run prepends one section; prior content is kept verbatim below the
separator so the latest balance is always at the top of the file.
"""

import json
import os
import shutil
import tempfile
from pathlib import Path

import structlog

from src.models import Observation

logger = structlog.get_logger(__name__)

SECTION_SEPARATOR = "\n---\n\n"


class PersistenceError(Exception):
    """Raised when the balance log cannot be read or written."""

    pass


def render_section(observation: Observation) -> str:
    """Render an observation as a markdown section with a JSON body."""
    body = json.dumps(observation.to_record(), indent=2, ensure_ascii=False)
    return f"## {observation.formatted_timestamp}\n{body}\n"


class ObservationRecorder:
    """Prepends observations to the markdown balance log."""

    def record(self, observation: Observation, log_path: Path) -> None:
        """Prepend observation to the log at log_path.

        Args:
            observation: The observation to record.
            log_path: Log file; a missing file is treated as an empty log.

        Raises:
            PersistenceError: If the log cannot be read or written.
        """
        log_path = Path(log_path)
        prior = self._read_prior(log_path)
        content = render_section(observation) + SECTION_SEPARATOR + prior

        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            self._write_atomic(log_path, content)
        except OSError as e:
            logger.error(
                "balance_log_write_failed",
                path=str(log_path),
                error=str(e),
                exc_info=True,
            )
            raise PersistenceError(f"Failed to write {log_path}: {e}") from e

        logger.info(
            "balance_log_updated",
            path=str(log_path),
            timestamp=observation.formatted_timestamp,
            kind=observation.result.kind,
        )

    def _read_prior(self, log_path: Path) -> str:
        if not log_path.exists():
            logger.debug("balance_log_absent", path=str(log_path))
            return ""
        try:
            return log_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.error("balance_log_read_failed", path=str(log_path), error=str(e))
            raise PersistenceError(f"Failed to read {log_path}: {e}") from e

    def _write_atomic(self, log_path: Path, content: str) -> None:
        fd, tmp_name = tempfile.mkstemp(
            dir=log_path.parent, prefix=f".{log_path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
                f.write(content)
            # mkstemp creates 0600; keep the existing log's permissions
            if log_path.exists():
                shutil.copymode(log_path, tmp_name)
            os.replace(tmp_name, log_path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise
