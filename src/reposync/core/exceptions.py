"""
Error taxonomy for the sync engine.

Only ConfigurationError is fatal, and only before the loop starts. Everything
under SyncError is caught at the cycle boundary, logged, and retried by the
next cycle. Conditions that need a human (diverged history, a stash that
would not restore) are raised every cycle until someone fixes them.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from reposync.core.sync.models import StashRecord


class ReposyncError(Exception):
    """Base exception for all reposync errors."""


class ConfigurationError(ReposyncError):
    """Invalid configuration or environment detected before the loop starts."""


# ============================================================================
# Locking
# ============================================================================


class LockError(ReposyncError):
    """Base exception for locking errors."""


class LockTimeoutError(LockError):
    """Raised when a configured maximum wait for the lock is exceeded."""

    def __init__(self, message: str, waited_seconds: float) -> None:
        self.waited_seconds = waited_seconds
        super().__init__(message)


class LockCancelledError(LockError):
    """Raised when shutdown is requested while waiting for the lock."""


# ============================================================================
# Per-cycle sync errors
# ============================================================================


class SyncError(ReposyncError):
    """Base class for recoverable per-cycle errors."""

    requires_attention = False

    def __init__(
        self,
        message: str,
        *,
        command: list[str] | None = None,
        stderr: str = "",
    ) -> None:
        super().__init__(message)
        self.command = command
        self.stderr = stderr


class VCSError(SyncError):
    """A git command failed for a reason with no more specific category."""

    def __init__(
        self,
        message: str,
        *,
        command: list[str] | None = None,
        stderr: str = "",
        returncode: int | None = None,
    ) -> None:
        super().__init__(message, command=command, stderr=stderr)
        self.returncode = returncode


class NetworkError(SyncError):
    """The remote could not be reached (fetch or push)."""


class RejectedError(SyncError):
    """Push was rejected because the remote advanced past the local branch."""

    requires_attention = True


class DivergedHistoryError(SyncError):
    """Fast-forward is impossible: local HEAD is not an ancestor of upstream."""

    requires_attention = True

    def __init__(
        self,
        message: str,
        *,
        stash: StashRecord | None = None,
        command: list[str] | None = None,
        stderr: str = "",
    ) -> None:
        super().__init__(message, command=command, stderr=stderr)
        self.stash = stash


class RestoreConflictError(SyncError):
    """Restoring the autostash conflicted; the stash entry was kept."""

    requires_attention = True

    def __init__(
        self,
        message: str,
        *,
        stash: StashRecord,
        command: list[str] | None = None,
        stderr: str = "",
    ) -> None:
        super().__init__(message, command=command, stderr=stderr)
        self.stash = stash
