"""
Configuration data model for reposync.

One flat model with enumerated fields, resolved once at startup from
defaults, user config, project config (.reposync.json), env vars and CLI
flags. Deployment choices are plain fields here, never runtime dispatch.
"""

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SyncConfig(BaseModel):
    """
    Top-level reposync configuration.

    Example:
        >>> config = SyncConfig(repo_path=Path("~/notes").expanduser(), interval_seconds=10)
        >>> config.lock_path
        PosixPath('/home/me/notes/.reposync/sync.lock')
    """
    repo_path: Path = Field(
        default_factory=Path.cwd,
        description="Working directory of the clone to keep in sync"
    )
    interval_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Seconds to sleep between sync cycles"
    )
    remote: str = Field(
        default="origin",
        min_length=1,
        description="Remote to fetch from and push to"
    )
    upstream_branch: Optional[str] = Field(
        default=None,
        description="Remote branch to track; defaults to the checked-out branch's own name"
    )

    # Locking
    lock_dir: str = Field(
        default=".reposync",
        min_length=1,
        description="Lock directory, relative to repo_path unless absolute"
    )
    lock_file: str = Field(
        default="sync.lock",
        min_length=1,
        description="Marker file name inside lock_dir"
    )
    lock_poll_seconds: float = Field(
        default=1.0,
        gt=0,
        description="Poll interval while waiting for the lock"
    )
    lock_max_wait_seconds: Optional[float] = Field(
        default=None,
        gt=0,
        description="Give up waiting for the lock after this long (None: wait forever)"
    )

    # Commit message convention
    commit_prefix: str = Field(
        default="[reposync]",
        description="Tag identifying bot-originated commits"
    )
    commit_subject: str = Field(
        default="Auto-sync local changes",
        description="Fixed subject text of automated commits"
    )
    commit_marker: str = Field(
        default="[skip ci]",
        description="Token telling remote CI not to re-validate this commit"
    )
    commit_context: Optional[str] = Field(
        default=None,
        description="Optional context appended to every automated commit message"
    )

    # Hardening and operations
    network_timeout_seconds: Optional[float] = Field(
        default=300.0,
        gt=0,
        description="Abandon fetch/push after this many seconds (None: no timeout)"
    )
    log_file: Optional[Path] = Field(
        default=None,
        description="Also write logs to this file"
    )
    max_cycles: Optional[int] = Field(
        default=None,
        ge=1,
        description="Stop after this many cycles (None: run until shut down)"
    )

    model_config = ConfigDict(
        extra="forbid",
        validate_assignment=True,
    )

    @field_validator("commit_marker")
    @classmethod
    def validate_marker(cls, v: str) -> str:
        """The loop-prevention marker is mandatory."""
        if not v.strip():
            raise ValueError("commit_marker must not be empty")
        return v

    @field_validator("repo_path", mode="after")
    @classmethod
    def expand_repo_path(cls, v: Path) -> Path:
        return v.expanduser()

    @property
    def lock_directory(self) -> Path:
        path = Path(self.lock_dir).expanduser()
        if path.is_absolute():
            return path
        return self.repo_path / path

    @property
    def lock_path(self) -> Path:
        return self.lock_directory / self.lock_file

    def commit_message(self) -> str:
        """
        Message for automated commits: prefix, subject, marker, then context.

        The marker sits in the subject line so CI filters that only read the
        first line still see it.
        """
        subject = " ".join(
            part for part in (self.commit_prefix, self.commit_subject, self.commit_marker) if part
        )
        if self.commit_context:
            return f"{subject}\n\n{self.commit_context}"
        return subject
