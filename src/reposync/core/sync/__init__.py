"""
Sync engine building blocks.

- SyncLock: cross-process exclusion over the working directory
- ChangeDetector: local changes and remote divergence
- UploadFlow: stage, commit with the loop-prevention marker, push
- DownloadFlow: stash if dirty, fast-forward, restore

Example:
    >>> git = GitAdapter(repo)
    >>> detector = ChangeDetector(git, remote="origin")
    >>> with SyncLock(repo / ".reposync" / "sync.lock"):
    ...     UploadFlow(git, detector, commit_message=msg).run()
    ...     DownloadFlow(git, detector).run(detector.remote_divergence())
"""

from reposync.core.sync.detector import ChangeDetector
from reposync.core.sync.download import DownloadFlow
from reposync.core.sync.lock import LockInfo, SyncLock
from reposync.core.sync.models import (
    CyclePhase,
    CycleResult,
    FlowOutcome,
    FlowResult,
    RepositoryState,
    StashRecord,
)
from reposync.core.sync.upload import UploadFlow

__all__ = [
    "ChangeDetector",
    "CyclePhase",
    "CycleResult",
    "DownloadFlow",
    "FlowOutcome",
    "FlowResult",
    "LockInfo",
    "RepositoryState",
    "StashRecord",
    "SyncLock",
    "UploadFlow",
]
