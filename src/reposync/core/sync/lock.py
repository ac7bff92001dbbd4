"""
Cross-process lock over one repository working directory.

The lock is a marker file created with O_CREAT | O_EXCL, so exactly one
process (or thread) can hold it at a time on a local filesystem. The file
body is JSON describing the holder, for operators reading a stuck lock.

There is deliberately no stale-lock expiry: two cycles running at once is
worse than a stalled sync, so a lock abandoned by a crashed process stays
until an operator removes it (`reposync unlock`).

Usage as context manager:
    with SyncLock(repo / ".reposync" / "sync.lock"):
        ...  # critical section
"""

from __future__ import annotations

import logging
import os
import socket
import time
import uuid
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from reposync.core.exceptions import ConfigurationError, LockCancelledError, LockTimeoutError

logger = logging.getLogger(__name__)

LOCK_DIR_GITIGNORE = "*\n"


class LockInfo(BaseModel):
    """Holder details written into the marker file."""

    lock_id: str = Field(description="Unique id of this acquisition")
    operation: str = Field(default="sync", description="What the holder is doing")
    pid: int = Field(description="Process id of the holder")
    hostname: str = Field(description="Host the holder runs on")
    acquired_at: datetime = Field(description="When the lock was taken (UTC)")

    def describe(self) -> str:
        return (
            f"pid {self.pid} on {self.hostname} ({self.operation}) "
            f"since {self.acquired_at.isoformat(timespec='seconds')}"
        )


def ensure_lock_directory(lock_dir: Path) -> None:
    """
    Create the lock directory and make it invisible to `git add --all`.

    Raises:
        ConfigurationError: If the directory cannot be created or written.
    """
    try:
        lock_dir.mkdir(parents=True, exist_ok=True)
        gitignore = lock_dir / ".gitignore"
        if not gitignore.exists():
            gitignore.write_text(LOCK_DIR_GITIGNORE)
    except OSError as e:
        raise ConfigurationError(f"Lock directory {lock_dir} is not writable: {e}") from e
    if not os.access(lock_dir, os.W_OK):
        raise ConfigurationError(f"Lock directory {lock_dir} is not writable")


def read_lock_info(lock_path: Path) -> LockInfo | None:
    """Parse the marker file, or None if absent, empty, or unreadable."""
    try:
        content = lock_path.read_text()
    except FileNotFoundError:
        return None
    except OSError as e:
        logger.warning("Error reading lock file %s: %s", lock_path, e)
        return None
    if not content.strip():
        return None
    try:
        return LockInfo.model_validate_json(content)
    except ValidationError as e:
        logger.warning("Lock file %s is not valid lock metadata: %s", lock_path, e)
        return None


def break_lock(lock_path: Path) -> LockInfo | None:
    """
    Remove a lock regardless of holder. Operator recovery only.

    Returns:
        The holder details that were on file, if any.
    """
    info = read_lock_info(lock_path)
    try:
        lock_path.unlink()
        logger.warning(
            "Lock %s removed by operator (was: %s)",
            lock_path,
            info.describe() if info else "unknown holder",
        )
    except FileNotFoundError:
        logger.info("No lock to remove at %s", lock_path)
    return info


class SyncLock:
    """
    Exclusive marker-file lock for one repository.

    Acquisition polls at a fixed interval until the marker is absent, then
    creates it atomically. Polling checks `should_abort` between attempts so
    a shutdown request is not blocked behind lock contention.
    """

    DEFAULT_POLL_SECONDS = 1.0

    def __init__(
        self,
        lock_path: Path,
        *,
        operation: str = "sync",
        poll_seconds: float = DEFAULT_POLL_SECONDS,
        max_wait_seconds: float | None = None,
        should_abort: Callable[[], bool] | None = None,
    ) -> None:
        """
        Args:
            lock_path: Marker file location.
            operation: Recorded in the marker for operators.
            poll_seconds: Sleep between acquisition attempts.
            max_wait_seconds: Give up with LockTimeoutError after this long.
                None waits indefinitely.
            should_abort: Checked between polls; returning True raises
                LockCancelledError.
        """
        self.lock_path = Path(lock_path)
        self.operation = operation
        self.poll_seconds = poll_seconds
        self.max_wait_seconds = max_wait_seconds
        self.should_abort = should_abort
        self._lock_id: str | None = None
        self._acquired = False

    @property
    def acquired(self) -> bool:
        return self._acquired

    @property
    def lock_id(self) -> str | None:
        return self._lock_id

    def __enter__(self) -> SyncLock:
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()

    def acquire(self) -> None:
        """
        Block until the lock is held by this instance.

        Raises:
            LockCancelledError: If should_abort returned True while waiting.
            LockTimeoutError: If max_wait_seconds elapsed.
            ConfigurationError: If the lock directory is unusable.
        """
        if self._acquired:
            logger.warning("Lock already acquired by this instance")
            return

        ensure_lock_directory(self.lock_path.parent)
        self._lock_id = str(uuid.uuid4())
        start = time.monotonic()
        reported_wait = False

        while True:
            if self.should_abort is not None and self.should_abort():
                raise LockCancelledError("Shutdown requested while waiting for the sync lock")

            if self._try_create():
                self._acquired = True
                logger.debug(
                    "Acquired %s lock %s (lock_id: %s)",
                    self.operation,
                    self.lock_path,
                    self._lock_id,
                )
                return

            waited = time.monotonic() - start
            if self.max_wait_seconds is not None and waited >= self.max_wait_seconds:
                holder = read_lock_info(self.lock_path)
                raise LockTimeoutError(
                    f"Timed out after {waited:.1f}s waiting for {self.lock_path}"
                    + (f" (held by {holder.describe()})" if holder else ""),
                    waited_seconds=waited,
                )

            if not reported_wait:
                holder = read_lock_info(self.lock_path)
                logger.info(
                    "Waiting for sync lock held by %s",
                    holder.describe() if holder else "unknown holder",
                )
                reported_wait = True

            time.sleep(self.poll_seconds)

    def _try_create(self) -> bool:
        """Create the marker if absent. The O_EXCL open is the mutex."""
        try:
            fd = os.open(self.lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            return False

        info = LockInfo(
            lock_id=self._lock_id or "",
            operation=self.operation,
            pid=os.getpid(),
            hostname=socket.gethostname(),
            acquired_at=datetime.now(timezone.utc),
        )
        with os.fdopen(fd, "w") as f:
            f.write(info.model_dump_json())
        return True

    def release(self) -> bool:
        """
        Remove the marker if this instance holds it.

        Returns:
            True if released (or nothing to release), False if the marker on
            disk belongs to someone else and was left alone.
        """
        if not self._acquired:
            return True

        current = read_lock_info(self.lock_path)
        if current is not None and current.lock_id != self._lock_id:
            logger.warning(
                "Lock %s now held by a different holder (theirs: %s, ours: %s); not removing",
                self.lock_path,
                current.lock_id,
                self._lock_id,
            )
            self._acquired = False
            return False

        try:
            self.lock_path.unlink()
        except FileNotFoundError:
            logger.warning("Lock file %s vanished before release", self.lock_path)
        logger.debug("Released lock %s", self._lock_id)
        self._acquired = False
        self._lock_id = None
        return True

    def is_locked(self) -> tuple[bool, LockInfo | None]:
        """(is_locked, holder) for the marker path, without acquiring."""
        if not self.lock_path.exists():
            return False, None
        return True, read_lock_info(self.lock_path)
