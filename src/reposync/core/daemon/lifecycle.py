"""
Daemon lifecycle: validate the environment, wire dependencies, run the loop.

Usage:
    >>> daemon = SyncDaemon.from_config(repo_path=Path("~/notes").expanduser())
    >>> for result in daemon.run():
    ...     print(result.summary())

    # Or a single cycle (cron-style):
    >>> result = daemon.run_once()
"""

from __future__ import annotations

import logging
from collections.abc import Generator
from pathlib import Path
from typing import Any

from reposync.core.config.loader import load_config
from reposync.core.config.models import SyncConfig
from reposync.core.daemon.interrupt import InterruptHandler
from reposync.core.daemon.orchestrator import SyncOrchestrator
from reposync.core.exceptions import ConfigurationError
from reposync.core.sync.lock import ensure_lock_directory
from reposync.core.sync.models import CycleResult
from reposync.core.vcs.git import GitAdapter

logger = logging.getLogger(__name__)


def find_repository_root(path: Path) -> Path:
    """Root of the working tree containing path, or path itself outside one."""
    git = GitAdapter(path)
    return git.toplevel() if git.is_repository() else path


def resolve_repository_root(config: SyncConfig, git: GitAdapter) -> SyncConfig:
    """
    Anchor config at the root of the working tree it points into.

    A path inside the tree resolves to the root, so every daemon on one
    working tree shares one lock and one stage-all scope.
    """
    root = git.toplevel()
    if root.resolve() == config.repo_path.resolve():
        return config
    logger.info("%s is inside %s; syncing from the repository root", config.repo_path, root)
    return config.model_copy(update={"repo_path": root})


class SyncDaemon:
    """
    Owns one sync loop for one repository.

    Create via ``from_config``; use the constructor directly to inject a
    GitAdapter or InterruptHandler (e.g. in tests).
    """

    def __init__(
        self,
        *,
        config: SyncConfig,
        git: GitAdapter,
        interrupt_handler: InterruptHandler | None = None,
    ) -> None:
        self.config = config
        self.git = git
        self.interrupt_handler = interrupt_handler or InterruptHandler()
        self.orchestrator = SyncOrchestrator(
            config=config,
            git=git,
            interrupt_handler=self.interrupt_handler,
        )
        self._validated = False

    @classmethod
    def from_config(
        cls,
        config: SyncConfig | None = None,
        *,
        repo_path: Path | None = None,
        overrides: dict[str, Any] | None = None,
    ) -> SyncDaemon:
        """
        Build a daemon from configuration.

        Args:
            config: Pre-loaded configuration. If None, loads it with the
                standard layered loader for the working tree containing
                repo_path.
            repo_path: Repository to sync. Defaults to cwd.
            overrides: CLI-level overrides passed to the loader.

        Raises:
            ConfigurationError: If the merged configuration is invalid.
        """
        if config is None:
            config = load_config(find_repository_root(repo_path or Path.cwd()), overrides)
        git = GitAdapter(config.repo_path, network_timeout=config.network_timeout_seconds)
        return cls(config=config, git=git)

    def validate(self) -> None:
        """
        Check that the loop can run at all. Called before the first cycle.

        Raises:
            ConfigurationError: Not a git working copy, detached HEAD, unknown
                remote, or an unwritable lock directory.
        """
        repo = self.config.repo_path
        if not self.git.is_repository():
            raise ConfigurationError(f"{repo} is not a git working copy")

        rooted = resolve_repository_root(self.config, self.git)
        if rooted is not self.config:
            self._rebind(rooted)
            repo = rooted.repo_path

        branch = self.git.current_branch()
        if branch is None:
            raise ConfigurationError(f"HEAD is detached in {repo}; check out a branch to sync")

        if self.git.remote_url(self.config.remote) is None:
            raise ConfigurationError(f"Remote '{self.config.remote}' is not configured in {repo}")

        ensure_lock_directory(self.config.lock_directory)

        upstream = self.config.upstream_branch or branch
        logger.info(
            "Syncing %s (%s -> %s/%s) every %ss",
            repo,
            branch,
            self.config.remote,
            upstream,
            self.config.interval_seconds,
        )
        self._validated = True

    def _rebind(self, config: SyncConfig) -> None:
        self.config = config
        self.git = GitAdapter(config.repo_path, network_timeout=self.git.network_timeout)
        self.orchestrator = SyncOrchestrator(
            config=config,
            git=self.git,
            interrupt_handler=self.interrupt_handler,
        )

    def run(self) -> Generator[CycleResult, None, None]:
        """
        Validate, install signal handlers, and run cycles until shutdown.

        Signal handlers are restored when the generator finishes or is closed.
        """
        if not self._validated:
            self.validate()

        self.interrupt_handler.register()
        try:
            yield from self.orchestrator.execute()
        finally:
            self.interrupt_handler.unregister()

    def run_once(self) -> CycleResult:
        """Validate and run exactly one cycle (no signal handlers, no sleep)."""
        if not self._validated:
            self.validate()
        return self.orchestrator.run_cycle()

    def stop(self) -> None:
        """Request a graceful stop after the current cycle."""
        self.interrupt_handler.request_shutdown()
