"""
Data models for the sync engine.

Nothing here is persisted: RepositoryState and StashRecord are re-derived
every cycle, and FlowResult/CycleResult exist only to report what a cycle
did to whoever is driving the loop (CLI, tests).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from reposync.core.vcs.models import Divergence

__all__ = [
    "CyclePhase",
    "CycleResult",
    "Divergence",
    "FlowOutcome",
    "FlowResult",
    "RepositoryState",
    "StashRecord",
]


@dataclass(frozen=True)
class RepositoryState:
    """
    Snapshot of the working copy at one instant.

    Never cached across cycles: external edits can land at any time, so
    the detector computes a fresh one whenever a decision depends on it.
    """

    has_staged_changes: bool
    is_working_tree_dirty: bool
    commits_ahead: int
    commits_behind: int


@dataclass(frozen=True)
class StashRecord:
    """A stash created by the download flow to protect uncommitted edits.

    Identified by commit sha rather than stash@{n}, since the index shifts
    whenever anyone else pushes or drops a stash.
    """

    label: str
    sha: str
    created_at: datetime


class FlowOutcome(str, Enum):
    """What an upload or download attempt did."""

    NOOP = "noop"
    COMMITTED = "committed"
    PUSHED = "pushed"
    FAST_FORWARDED = "fast_forwarded"
    SKIPPED = "skipped"
    FAILED = "failed"


class CyclePhase(str, Enum):
    """States of the sync cycle state machine."""

    IDLE = "idle"
    LOCKING = "locking"
    UPLOADING = "uploading"
    DOWNLOADING = "downloading"
    UNLOCKING = "unlocking"
    SLEEPING = "sleeping"
    STOPPED = "stopped"


class FlowResult(BaseModel):
    """
    Result of one upload or download flow.

    Example:
        >>> FlowResult(flow="upload", outcome=FlowOutcome.COMMITTED, commit_sha="abc1234")
    """

    flow: str = Field(description="Which flow produced this result (upload, download)")

    outcome: FlowOutcome = Field(description="What the flow did")

    commit_sha: str | None = Field(
        default=None,
        description="Commit created by upload, or HEAD after a fast-forward",
    )

    commits_integrated: int = Field(
        default=0,
        ge=0,
        description="Number of upstream commits fast-forwarded in",
    )

    pushed: bool = Field(default=False, description="Whether a push succeeded")

    stash_label: str | None = Field(
        default=None,
        description="Label of the autostash used (download only)",
    )

    message: str = Field(default="", description="Human-readable detail")

    error_type: str | None = Field(
        default=None,
        description="Exception class name when the flow failed",
    )

    requires_attention: bool = Field(
        default=False,
        description="True when a human must intervene (diverged history, stash conflict)",
    )

    @property
    def is_noop(self) -> bool:
        return self.outcome == FlowOutcome.NOOP

    @property
    def failed(self) -> bool:
        return self.outcome == FlowOutcome.FAILED

    @property
    def has_error(self) -> bool:
        """Failed, or skipped because of an error (e.g. fetch could not reach the remote)."""
        return self.failed or self.error_type is not None

    def summary(self) -> str:
        if self.failed:
            return f"{self.flow} failed ({self.error_type}): {self.message}"
        parts = [f"{self.flow} {self.outcome.value}"]
        if self.commit_sha:
            parts.append(f"commit {self.commit_sha[:8]}")
        if self.commits_integrated:
            parts.append(f"{self.commits_integrated} commits integrated")
        if self.stash_label:
            parts.append("autostash restored")
        if self.message:
            parts.append(self.message)
        return ", ".join(parts)


class CycleResult(BaseModel):
    """Result of one full lock → upload → download → unlock cycle."""

    cycle: int = Field(ge=1, description="1-based cycle number within this process")

    upload: FlowResult | None = Field(default=None)
    download: FlowResult | None = Field(default=None)

    error: str | None = Field(
        default=None,
        description="Unexpected error caught at the cycle boundary",
    )

    cancelled: bool = Field(
        default=False,
        description="Shutdown was requested before the lock was acquired",
    )

    started_at: datetime | None = Field(default=None)
    completed_at: datetime | None = Field(default=None)

    @property
    def success(self) -> bool:
        if self.error or self.cancelled:
            return False
        return not any(
            flow is not None and flow.has_error for flow in (self.upload, self.download)
        )

    @property
    def requires_attention(self) -> bool:
        return any(
            flow is not None and flow.requires_attention for flow in (self.upload, self.download)
        )

    @property
    def duration_seconds(self) -> float | None:
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def summary(self) -> str:
        if self.cancelled:
            return f"cycle {self.cycle} cancelled before locking"
        if self.error:
            return f"cycle {self.cycle} failed: {self.error}"
        parts = [f"cycle {self.cycle}"]
        for flow in (self.upload, self.download):
            if flow is not None:
                parts.append(flow.summary())
        return "; ".join(parts)
