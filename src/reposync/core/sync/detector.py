"""
Change detection: does local work exist, and has the remote moved?

Pure evaluation apart from two deliberate side effects: has_local_changes()
stages everything (the upload flow needs the files staged anyway, and
staging is idempotent), and remote_divergence() fetches.
"""

from __future__ import annotations

import logging

from reposync.core.config.env import PROJECT_ENV_FILE
from reposync.core.exceptions import NetworkError, VCSError
from reposync.core.sync.models import RepositoryState
from reposync.core.vcs.git import GitAdapter
from reposync.core.vcs.models import Divergence, FailureKind, GitResult

logger = logging.getLogger(__name__)

# Kept out of auto-commits even when no ignore rule covers them
NEVER_STAGED = (PROJECT_ENV_FILE,)


def raise_for_result(result: GitResult, action: str) -> None:
    """Translate a failed network-facing GitResult into NetworkError or VCSError."""
    if result.success:
        return
    if result.failure == FailureKind.NETWORK:
        raise NetworkError(
            f"{action} could not reach the remote: {result.output}",
            command=result.command,
            stderr=result.stderr,
        )
    raise VCSError(
        f"{action} failed: {result.describe()}",
        command=result.command,
        stderr=result.stderr,
        returncode=result.returncode,
    )


class ChangeDetector:
    """
    Reads repository state for one sync cycle.

    Example:
        >>> detector = ChangeDetector(GitAdapter(repo), remote="origin")
        >>> detector.has_local_changes()
        True
        >>> detector.remote_divergence()
        Divergence(ahead=1, behind=0, upstream_ref='refs/remotes/origin/main')
    """

    def __init__(
        self,
        git: GitAdapter,
        *,
        remote: str = "origin",
        upstream_branch: str | None = None,
    ) -> None:
        self.git = git
        self.remote = remote
        self.upstream_branch = upstream_branch

    def local_branch(self) -> str:
        """
        The checked-out branch.

        Raises:
            VCSError: If HEAD is detached (nothing sensible to push).
        """
        branch = self.git.current_branch()
        if branch is None:
            raise VCSError("HEAD is detached; check out a branch to sync")
        return branch

    def upstream_name(self) -> str:
        """Remote branch name: configured, or the local branch's own name."""
        return self.upstream_branch or self.local_branch()

    def upstream_ref(self) -> str:
        return f"refs/remotes/{self.remote}/{self.upstream_name()}"

    def has_local_changes(self) -> bool:
        """Stage all (honouring ignore rules), then compare the index to HEAD."""
        result = self.git.stage_all(exclude=NEVER_STAGED)
        if not result.success:
            raise VCSError(
                f"Staging failed: {result.describe()}",
                command=result.command,
                stderr=result.stderr,
                returncode=result.returncode,
            )
        return self.git.has_staged_changes()

    def is_working_tree_dirty(self) -> bool:
        """True iff tracked files have uncommitted modifications, staged or not."""
        return self.git.is_dirty()

    def local_divergence(self) -> Divergence:
        """Ahead/behind against the last-fetched upstream ref, without fetching."""
        return self.git.ahead_behind(self.upstream_ref())

    def remote_divergence(self) -> Divergence:
        """
        Fetch (pruning stale refs), then count ahead/behind against upstream.

        Raises:
            NetworkError: If the remote cannot be reached.
        """
        result = self.git.fetch(self.remote, prune=True)
        raise_for_result(result, f"Fetch from {self.remote}")
        divergence = self.local_divergence()
        logger.debug(
            "Divergence vs %s: ahead=%d behind=%d",
            divergence.upstream_ref,
            divergence.ahead,
            divergence.behind,
        )
        return divergence

    def snapshot(self, *, fetch: bool = True) -> RepositoryState:
        """
        Fresh RepositoryState. Stages everything as a side effect.

        Args:
            fetch: Refresh remote-tracking refs first. Pass False for a
                local-only view (no network).
        """
        has_staged = self.has_local_changes()
        dirty = self.is_working_tree_dirty()
        divergence = self.remote_divergence() if fetch else self.local_divergence()
        return RepositoryState(
            has_staged_changes=has_staged,
            is_working_tree_dirty=dirty,
            commits_ahead=divergence.ahead,
            commits_behind=divergence.behind,
        )
