"""Tests for best-effort git publishing of the balance log."""

import subprocess
from pathlib import Path

import pytest

from src.recorder import git_sync
from src.recorder.git_sync import GitSync


class FakeGit:
    """Records git invocations and returns scripted exit codes."""

    def __init__(self, returncodes: dict[str, int] | None = None, missing: bool = False):
        self.returncodes = returncodes or {}
        self.missing = missing
        self.calls: list[list[str]] = []

    def __call__(self, cmd, **kwargs):
        if self.missing:
            raise FileNotFoundError(2, "No such file or directory", "git")
        self.calls.append(cmd)
        step = cmd[1]
        code = self.returncodes.get(step, 1 if step == "diff" else 0)
        stderr = "fatal: unable to access remote" if code and step != "diff" else ""
        return subprocess.CompletedProcess(cmd, code, stdout="", stderr=stderr)


@pytest.fixture
def sync(tmp_path):
    return GitSync(repo_dir=tmp_path, remote="origin", branch="main")


def test_publish_commits_and_pushes(monkeypatch, sync):
    """Test the add, commit and push sequence on a dirty tree."""
    fake = FakeGit()
    monkeypatch.setattr(git_sync.subprocess, "run", fake)

    outcome = sync.publish(Path("MINIMAX_BALANCE.md"), "2026-10-19 08:00:05 UTC")

    assert outcome.status == "success"
    assert fake.calls == [
        ["git", "add", "-A"],
        ["git", "diff", "--cached", "--quiet"],
        ["git", "commit", "-m", "docs: update MiniMax balance - 2026-10-19 08:00:05 UTC"],
        ["git", "push", "origin", "main"],
    ]


def test_publish_skips_when_nothing_staged(monkeypatch, sync):
    """Test no commit is made when the tree is clean."""
    fake = FakeGit(returncodes={"diff": 0})
    monkeypatch.setattr(git_sync.subprocess, "run", fake)

    outcome = sync.publish(Path("MINIMAX_BALANCE.md"), "2026-10-19 08:00:05 UTC")

    assert outcome.status == "skipped_no_change"
    assert outcome.ok
    assert [c[1] for c in fake.calls] == ["add", "diff"]


def test_push_failure_is_reported_not_raised(monkeypatch, sync):
    """Test a failing push yields a failed outcome with the git error."""
    monkeypatch.setattr(git_sync.subprocess, "run", FakeGit(returncodes={"push": 128}))

    outcome = sync.publish(Path("MINIMAX_BALANCE.md"), "2026-10-19 08:00:05 UTC")

    assert outcome.status == "failed"
    assert not outcome.ok
    assert "git push exited 128" in outcome.reason
    assert "unable to access remote" in outcome.reason


def test_missing_git_binary_is_reported(monkeypatch, sync):
    """Test a missing git executable is a failed outcome."""
    monkeypatch.setattr(git_sync.subprocess, "run", FakeGit(missing=True))

    outcome = sync.publish(Path("MINIMAX_BALANCE.md"), "2026-10-19 08:00:05 UTC")

    assert outcome.status == "failed"
    assert "not found" in outcome.reason


def test_git_timeout_is_reported(monkeypatch, sync):
    """Test a hung git command is a failed outcome."""

    def hang(cmd, **kwargs):
        raise subprocess.TimeoutExpired(cmd, kwargs["timeout"])

    monkeypatch.setattr(git_sync.subprocess, "run", hang)

    outcome = sync.publish(Path("MINIMAX_BALANCE.md"), "2026-10-19 08:00:05 UTC")

    assert outcome.status == "failed"
