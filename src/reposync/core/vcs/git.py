"""
Thin call-through to the git command line.

Each operation maps to one git invocation and reports what happened as a
GitResult. No retries and no branching decisions live here: the flows decide
what a rejected push or a conflicting stash pop means for the cycle.

Query helpers (is_dirty, has_staged_changes, ahead_behind, ...) return plain
values and raise VCSError only when git fails in a way the query cannot
interpret.
"""

from __future__ import annotations

import logging
import os
import subprocess
from collections.abc import Iterable
from pathlib import Path

from reposync.core.exceptions import ConfigurationError, VCSError
from reposync.core.vcs.models import Divergence, FailureKind, GitResult, StashEntry

logger = logging.getLogger(__name__)

NETWORK_TOKENS = (
    "could not read from remote repository",
    "could not resolve hostname",
    "could not resolve host",
    "network is unreachable",
    "failed to connect to",
    "connection timed out",
    "connection refused",
    "connection reset",
    "unable to access",
    "does not appear to be a git repository",
    "the remote end hung up unexpectedly",
    "permission denied (publickey",
    "terminal prompts disabled",
)

REJECTED_TOKENS = (
    "[rejected]",
    "non-fast-forward",
    "fetch first",
    "updates were rejected",
    "[remote rejected]",
)

NOT_FAST_FORWARD_TOKENS = (
    "not possible to fast-forward",
    "not possible to fast forward",
    "diverging branches can't be fast-forwarded",
)

CONFLICT_TOKENS = (
    "conflict",
    "would be overwritten",
    "needs merge",
)

NOTHING_TO_DO_TOKENS = (
    "nothing to commit",
    "no local changes to save",
    "everything up-to-date",
    "already up to date",
)


def classify_failure(returncode: int, stderr: str, stdout: str = "") -> FailureKind:
    """Map a git exit status and its output to a FailureKind.

    Order matters: a rejected push also mentions the remote, and a conflicting
    stash pop also prints "error:", so the specific tokens are checked first.
    """
    if returncode == 0:
        return FailureKind.NONE

    text = f"{stderr}\n{stdout}".lower()
    if any(token in text for token in REJECTED_TOKENS):
        return FailureKind.REJECTED
    if any(token in text for token in NOT_FAST_FORWARD_TOKENS):
        return FailureKind.NOT_FAST_FORWARD
    if any(token in text for token in NETWORK_TOKENS):
        return FailureKind.NETWORK
    if any(token in text for token in CONFLICT_TOKENS):
        return FailureKind.CONFLICT
    if any(token in text for token in NOTHING_TO_DO_TOKENS):
        return FailureKind.NOTHING_TO_DO
    return FailureKind.ERROR


class GitAdapter:
    """
    Git primitives for one working directory.

    Example:
        >>> git = GitAdapter(Path("~/notes").expanduser())
        >>> git.stage_all()
        >>> if git.has_staged_changes():
        ...     git.commit("[reposync] Auto-sync local changes [skip ci]")
    """

    def __init__(
        self,
        repo_path: Path,
        *,
        network_timeout: float | None = None,
    ) -> None:
        """
        Args:
            repo_path: Root of the working copy.
            network_timeout: Seconds before fetch/push are abandoned and
                reported as network failures. None waits forever.
        """
        self.repo_path = Path(repo_path)
        self.network_timeout = network_timeout

    def _env(self) -> dict[str, str]:
        env = os.environ.copy()
        # Unattended: never block on a credential prompt, and keep messages
        # in English so classify_failure can read them.
        env["GIT_TERMINAL_PROMPT"] = "0"
        env["LC_ALL"] = "C"
        return env

    def run(self, args: list[str], *, timeout: float | None = None) -> GitResult:
        """
        Run a git command and return its classified result.

        Args:
            args: Git command arguments (without "git" prefix).
            timeout: Seconds to wait; expiry is reported as a network failure.

        Raises:
            ConfigurationError: If git is not installed.
        """
        cmd = ["git"] + args
        logger.debug("Running git command: %s", " ".join(cmd))

        if not self.repo_path.is_dir():
            raise ConfigurationError(f"Repository path does not exist: {self.repo_path}")

        try:
            proc = subprocess.run(
                cmd,
                cwd=self.repo_path,
                capture_output=True,
                text=True,
                timeout=timeout,
                env=self._env(),
                # Own session: a terminal Ctrl+C reaches the daemon, not git
                start_new_session=True,
            )
        except subprocess.TimeoutExpired:
            logger.warning("Git command timed out after %ss: %s", timeout, " ".join(cmd))
            return GitResult(
                command=cmd,
                returncode=-1,
                stderr=f"timed out after {timeout}s",
                failure=FailureKind.NETWORK,
            )
        except FileNotFoundError as e:
            raise ConfigurationError("git not found in PATH") from e

        stdout = proc.stdout.strip() if proc.stdout else ""
        stderr = proc.stderr.strip() if proc.stderr else ""
        return GitResult(
            command=cmd,
            returncode=proc.returncode,
            stdout=stdout,
            stderr=stderr,
            failure=classify_failure(proc.returncode, stderr, stdout),
        )

    def _query(self, args: list[str]) -> str:
        result = self.run(args)
        if not result.success:
            raise VCSError(
                f"Git command failed: {result.describe()}",
                command=result.command,
                stderr=result.stderr,
                returncode=result.returncode,
            )
        return result.stdout

    # ------------------------------------------------------------------
    # Repository inspection
    # ------------------------------------------------------------------

    def is_repository(self) -> bool:
        if not self.repo_path.is_dir():
            return False
        result = self.run(["rev-parse", "--is-inside-work-tree"])
        return result.success and result.stdout == "true"

    def toplevel(self) -> Path:
        """Root of the working tree containing repo_path."""
        return Path(self._query(["rev-parse", "--show-toplevel"]))

    def current_branch(self) -> str | None:
        """Name of the checked-out branch, or None when HEAD is detached."""
        result = self.run(["symbolic-ref", "--short", "-q", "HEAD"])
        if result.success and result.stdout:
            return result.stdout
        return None

    def rev_parse(self, ref: str) -> str | None:
        result = self.run(["rev-parse", "--verify", "-q", f"{ref}^{{commit}}"])
        return result.stdout if result.success and result.stdout else None

    def head_sha(self) -> str | None:
        return self.rev_parse("HEAD")

    def ref_exists(self, ref: str) -> bool:
        return self.rev_parse(ref) is not None

    def remote_url(self, remote: str) -> str | None:
        result = self.run(["remote", "get-url", remote])
        return result.stdout if result.success and result.stdout else None

    def is_dirty(self) -> bool:
        """True if tracked files differ from HEAD, staged or not."""
        status = self._query(["status", "--porcelain", "--untracked-files=no"])
        return bool(status)

    def has_staged_changes(self) -> bool:
        """True if the index differs from HEAD."""
        result = self.run(["diff", "--cached", "--quiet"])
        if result.returncode == 0:
            return False
        if result.returncode == 1:
            return True
        raise VCSError(
            f"Git command failed: {result.describe()}",
            command=result.command,
            stderr=result.stderr,
            returncode=result.returncode,
        )

    def count_commits(self, revision_range: str) -> int:
        return int(self._query(["rev-list", "--count", revision_range]) or 0)

    def ahead_behind(self, upstream_ref: str) -> Divergence:
        """
        Count commits between HEAD and upstream_ref.

        Handles the edge cases of a branch never pushed (upstream missing:
        everything local is ahead) and an unborn local branch (nothing is
        ahead, everything upstream is behind).
        """
        has_head = self.head_sha() is not None
        has_upstream = self.ref_exists(upstream_ref)

        if not has_head:
            behind = self.count_commits(upstream_ref) if has_upstream else 0
            return Divergence(ahead=0, behind=behind, upstream_ref=upstream_ref)
        if not has_upstream:
            return Divergence(ahead=self.count_commits("HEAD"), behind=0, upstream_ref=upstream_ref)

        counts = self._query(["rev-list", "--left-right", "--count", f"HEAD...{upstream_ref}"])
        ahead_str, behind_str = counts.split()
        return Divergence(ahead=int(ahead_str), behind=int(behind_str), upstream_ref=upstream_ref)

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        result = self.run(["merge-base", "--is-ancestor", ancestor, descendant])
        if result.returncode in (0, 1):
            return result.returncode == 0
        raise VCSError(
            f"Git command failed: {result.describe()}",
            command=result.command,
            stderr=result.stderr,
            returncode=result.returncode,
        )

    # ------------------------------------------------------------------
    # Local mutations
    # ------------------------------------------------------------------

    def stage_all(self, exclude: Iterable[str] = ()) -> GitResult:
        """
        Stage every change in the working tree, honouring ignore rules.

        Args:
            exclude: Paths relative to the working tree root that are never
                staged, whether or not an ignore rule covers them.
        """
        pathspec = [":/"] + [f":(top,exclude){path}" for path in exclude]
        return self.run(["add", "--all", "--"] + pathspec)

    def commit(self, message: str) -> GitResult:
        return self.run(["commit", "--quiet", "-m", message])

    def merge_ff_only(self, upstream_ref: str) -> GitResult:
        """Integrate upstream_ref by fast-forward only (the pull without a fetch)."""
        return self.run(["merge", "--ff-only", "--quiet", upstream_ref])

    def stash_push(self, label: str) -> GitResult:
        """Stash tracked modifications (staged and unstaged) under a label."""
        result = self.run(["stash", "push", "-m", label])
        # Exits 0 even when there was nothing to stash
        if result.success and "no local changes to save" in result.output.lower():
            result.failure = FailureKind.NOTHING_TO_DO
        return result

    def stash_list(self) -> list[StashEntry]:
        output = self._query(["stash", "list", "--format=%gd%x09%H%x09%gs"])
        entries = []
        for line in output.splitlines():
            parts = line.split("\t", 2)
            if len(parts) < 3:
                continue
            ref, sha, subject = parts
            try:
                index = int(ref[ref.index("{") + 1 : ref.index("}")])
            except ValueError:
                continue
            entries.append(StashEntry(index=index, sha=sha, message=subject))
        return entries

    def stash_apply(self, stash_ref: str) -> GitResult:
        """Reapply a stash without removing it; pair with stash_drop once it succeeds."""
        return self.run(["stash", "apply", stash_ref])

    def stash_drop(self, stash_ref: str) -> GitResult:
        return self.run(["stash", "drop", stash_ref])

    # ------------------------------------------------------------------
    # Network operations
    # ------------------------------------------------------------------

    def fetch(self, remote: str, *, prune: bool = True) -> GitResult:
        args = ["fetch", "--quiet", remote]
        if prune:
            args.insert(1, "--prune")
        return self.run(args, timeout=self.network_timeout)

    def push(self, remote: str, branch: str, upstream_branch: str | None = None) -> GitResult:
        """
        Push branch to remote under upstream_branch (defaults to branch's own name).

        Sets the upstream so later ahead/behind counts have a tracking ref.
        """
        refspec = f"{branch}:{upstream_branch or branch}"
        return self.run(
            ["push", "--porcelain", "--set-upstream", remote, refspec],
            timeout=self.network_timeout,
        )
