"""
Pytest configuration and shared fixtures.

Most tests run against real git repositories: a bare "remote" seeded with
one commit on main, plus one or two clones of it standing in for machines
that sync with each other.
"""

import subprocess
from collections.abc import Callable
from pathlib import Path

import pytest

from reposync.core.config.models import SyncConfig

GitRunner = Callable[..., str]


def _run_git(cwd: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", *args],
        cwd=cwd,
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout.strip()


# ==============================================================================
# Environment isolation
# ==============================================================================


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """
    Keep tests away from the developer's git and reposync configuration.

    HOME and XDG_CONFIG_HOME point into tmp_path, and git identity comes from
    the environment so commits work in every clone (including the ones the
    code under test creates commits in).
    """
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(home / ".config"))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Test User")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "test@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Test User")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "test@example.com")
    for name in (
        "REPOSYNC_INTERVAL",
        "REPOSYNC_REMOTE",
        "REPOSYNC_BRANCH",
        "REPOSYNC_LOCK_MAX_WAIT",
        "REPOSYNC_NETWORK_TIMEOUT",
        "REPOSYNC_LOG_FILE",
    ):
        monkeypatch.delenv(name, raising=False)
    return home


# ==============================================================================
# Git fixtures
# ==============================================================================


@pytest.fixture
def git() -> GitRunner:
    """Run a git command in a directory and return its stripped stdout."""
    return _run_git


@pytest.fixture
def remote_repo(tmp_path: Path) -> Path:
    """A bare repository on main with one commit (README.md)."""
    bare = tmp_path / "remote.git"
    _run_git(tmp_path, "init", "--bare", "--initial-branch=main", str(bare))

    seed = tmp_path / "seed"
    _run_git(tmp_path, "init", "--initial-branch=main", str(seed))
    (seed / "README.md").write_text("# Shared notes\n")
    _run_git(seed, "add", "README.md")
    _run_git(seed, "commit", "-m", "Initial commit")
    _run_git(seed, "remote", "add", "origin", str(bare))
    _run_git(seed, "push", "origin", "main")

    return bare


@pytest.fixture
def local_clone(tmp_path: Path, remote_repo: Path) -> Path:
    """The working copy the daemon syncs."""
    clone = tmp_path / "local"
    _run_git(tmp_path, "clone", str(remote_repo), str(clone))
    return clone


@pytest.fixture
def other_clone(tmp_path: Path, remote_repo: Path) -> Path:
    """A second machine pushing to the same remote."""
    clone = tmp_path / "other"
    _run_git(tmp_path, "clone", str(remote_repo), str(clone))
    return clone


@pytest.fixture
def push_from_other(other_clone: Path) -> Callable[[str, str], str]:
    """Commit a file in other_clone and push it; returns the new commit sha."""

    def _push(name: str, content: str) -> str:
        (other_clone / name).write_text(content)
        _run_git(other_clone, "add", name)
        _run_git(other_clone, "commit", "-m", f"Edit {name} elsewhere")
        _run_git(other_clone, "push", "origin", "main")
        return _run_git(other_clone, "rev-parse", "HEAD")

    return _push


@pytest.fixture
def make_config() -> Callable[..., SyncConfig]:
    """SyncConfig for a repository with fast polling suited to tests."""

    def _make(repo: Path, **overrides) -> SyncConfig:
        values = {
            "repo_path": repo,
            "interval_seconds": 0.05,
            "lock_poll_seconds": 0.05,
            "network_timeout_seconds": 30.0,
        }
        values.update(overrides)
        return SyncConfig(**values)

    return _make
