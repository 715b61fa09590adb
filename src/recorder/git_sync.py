"""Best-effort publishing of the balance log to a git remote.

Stages, commits and pushes the working tree. Failures are reported through
SyncOutcome and logged; they never raise, because the local log write is
the source of truth.
"""

import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

import structlog

from src.config import Settings

logger = structlog.get_logger(__name__)

COMMIT_MESSAGE = "docs: update MiniMax balance - {timestamp}"


@dataclass(frozen=True)
class SyncOutcome:
    status: Literal["success", "skipped_no_change", "failed"]
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.status != "failed"


class GitCommandError(Exception):
    """Raised internally when a git step exits non-zero or cannot run."""

    pass


class GitSync:
    """Commits and pushes the balance log with the git CLI."""

    def __init__(
        self,
        repo_dir: Path,
        remote: str = "origin",
        branch: str = "main",
        timeout_seconds: int = 60,
    ) -> None:
        self.repo_dir = repo_dir
        self.remote = remote
        self.branch = branch
        self.timeout_seconds = timeout_seconds

    @classmethod
    def from_settings(cls, settings: Settings) -> "GitSync":
        return cls(
            repo_dir=Path(settings.git_repo_dir),
            remote=settings.git_remote,
            branch=settings.git_branch,
            timeout_seconds=settings.git_timeout_seconds,
        )

    def publish(self, log_path: Path, observed_at: str) -> SyncOutcome:
        """Stage all changes, commit with the observation timestamp and push.

        Args:
            log_path: The balance log that was just written.
            observed_at: Formatted observation timestamp for the commit message.

        Returns:
            SyncOutcome describing what happened. Never raises.
        """
        logger.info("git_sync_started", log_path=str(log_path), remote=self.remote)

        try:
            self._git("add", "-A")

            staged = self._git("diff", "--cached", "--quiet", check=False)
            if staged.returncode == 0:
                logger.info("git_sync_skipped_no_change")
                return SyncOutcome(status="skipped_no_change")

            self._git("commit", "-m", COMMIT_MESSAGE.format(timestamp=observed_at))
            self._git("push", self.remote, self.branch)

        except GitCommandError as e:
            logger.warning("git_sync_failed", error=str(e))
            return SyncOutcome(status="failed", reason=str(e))

        logger.info("git_sync_completed", remote=self.remote, branch=self.branch)
        return SyncOutcome(status="success")

    def _git(self, *args: str, check: bool = True) -> subprocess.CompletedProcess:
        cmd = ["git", *args]
        try:
            result = subprocess.run(
                cmd,
                cwd=self.repo_dir,
                check=False,
                capture_output=True,
                text=True,
                timeout=self.timeout_seconds,
            )
        except FileNotFoundError as e:
            raise GitCommandError("git executable not found") from e
        except (subprocess.TimeoutExpired, OSError) as e:
            raise GitCommandError(f"{' '.join(cmd)}: {e}") from e

        if check and result.returncode != 0:
            stderr = result.stderr.strip() or result.stdout.strip()
            raise GitCommandError(
                f"{' '.join(cmd[:2])} exited {result.returncode}: {stderr}"
            )
        return result
