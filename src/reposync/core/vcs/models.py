"""
Result types returned by the git adapter.

Every adapter operation returns a GitResult rather than raising, so callers
can branch on FailureKind (network vs. rejection vs. nothing to do) without
parsing stderr themselves.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class FailureKind(str, Enum):
    """Why a git command did not succeed."""

    NONE = "none"
    NETWORK = "network"
    REJECTED = "rejected"
    NOT_FAST_FORWARD = "not_fast_forward"
    CONFLICT = "conflict"
    NOTHING_TO_DO = "nothing_to_do"
    ERROR = "error"


@dataclass
class GitResult:
    """Outcome of a single git invocation.

    Attributes:
        command: Full argv that was run (including "git")
        returncode: Process exit status (-1 if the process timed out)
        stdout: Captured stdout, stripped
        stderr: Captured stderr, stripped
        failure: Classified failure reason; NONE on success
    """

    command: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""
    failure: FailureKind = FailureKind.NONE

    @property
    def success(self) -> bool:
        return self.failure == FailureKind.NONE

    @property
    def output(self) -> str:
        """stderr and stdout joined, for messages (git splits them unpredictably)."""
        return "\n".join(part for part in (self.stderr, self.stdout) if part)

    def describe(self) -> str:
        return f"{' '.join(self.command)} exited {self.returncode}: {self.output or '(no output)'}"


@dataclass(frozen=True)
class Divergence:
    """Commit counts between local HEAD and its upstream ref."""

    ahead: int
    behind: int
    upstream_ref: str = ""

    @property
    def diverged(self) -> bool:
        return self.ahead > 0 and self.behind > 0


@dataclass
class StashEntry:
    """One line of `git stash list`."""

    index: int
    sha: str
    message: str

    @property
    def ref(self) -> str:
        return f"stash@{{{self.index}}}"
