"""
Long-running sync loop: cycle state machine, signals, lifecycle.
"""

from reposync.core.daemon.interrupt import InterruptHandler
from reposync.core.daemon.lifecycle import (
    SyncDaemon,
    find_repository_root,
    resolve_repository_root,
)
from reposync.core.daemon.orchestrator import SyncOrchestrator

__all__ = [
    "InterruptHandler",
    "SyncDaemon",
    "SyncOrchestrator",
    "find_repository_root",
    "resolve_repository_root",
]
