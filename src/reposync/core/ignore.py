"""
Default ignore rules for synced repositories.

Stage-all honours .gitignore, so keeping editor swap files, OS metadata and
half-finished downloads out of auto-commits is a matter of ignore rules.
`reposync init` writes them into the repository's .gitignore inside a
managed block:

    # BEGIN reposync managed block
    *.swp
    ...
    # END reposync managed block

Lines outside the block are never touched. Re-running replaces the block in
place, so the operation is idempotent.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from reposync.core.config.env import PROJECT_ENV_FILE

logger = logging.getLogger(__name__)

BEGIN_MARKER = "# BEGIN reposync managed block"
END_MARKER = "# END reposync managed block"

DEFAULT_IGNORE_PATTERNS: list[str] = [
    # Editor temp and backup files
    "*.swp",
    "*.swo",
    "*~",
    ".#*",
    "#*#",
    "*.tmp",
    ".~lock.*#",
    # OS metadata
    ".DS_Store",
    "._*",
    "Thumbs.db",
    "desktop.ini",
    # Partial downloads
    "*.part",
    "*.crdownload",
    "*.download",
    # Sync lock directory and local settings
    ".reposync/",
    PROJECT_ENV_FILE,
]


class UpsertAction(str, Enum):
    CREATED = "created"
    APPENDED = "appended"
    REPLACED = "replaced"
    UNCHANGED = "unchanged"


@dataclass(frozen=True)
class IgnoreUpdate:
    """What `write_ignore_rules` did to the file."""

    action: UpsertAction
    path: Path
    patterns: list[str]


def render_block(patterns: list[str]) -> str:
    return "\n".join([BEGIN_MARKER, *patterns, END_MARKER])


def _find_block(lines: list[str]) -> tuple[int, int] | None:
    """(begin, end) line indexes of the managed block, or None if absent."""
    try:
        begin = lines.index(BEGIN_MARKER)
    except ValueError:
        return None
    for idx in range(begin + 1, len(lines)):
        if lines[idx] == END_MARKER:
            return begin, idx
    logger.warning("Managed block has no end marker; replacing to end of file")
    return begin, len(lines)


def read_managed_patterns(gitignore: Path) -> list[str]:
    """Patterns currently inside the managed block (empty if none)."""
    if not gitignore.exists():
        return []
    lines = gitignore.read_text(encoding="utf-8").splitlines()
    span = _find_block(lines)
    if span is None:
        return []
    begin, end = span
    return lines[begin + 1 : end]


def write_ignore_rules(
    repo_path: Path,
    patterns: list[str] | None = None,
) -> IgnoreUpdate:
    """
    Insert or refresh the managed block in <repo_path>/.gitignore.

    Args:
        repo_path: Repository root.
        patterns: Rules to write (defaults to DEFAULT_IGNORE_PATTERNS).
    """
    patterns = list(patterns if patterns is not None else DEFAULT_IGNORE_PATTERNS)
    gitignore = repo_path / ".gitignore"
    block = render_block(patterns)

    if not gitignore.exists():
        gitignore.write_text(block + "\n", encoding="utf-8")
        logger.info("Created %s with %d ignore rule(s)", gitignore, len(patterns))
        return IgnoreUpdate(UpsertAction.CREATED, gitignore, patterns)

    existing = gitignore.read_text(encoding="utf-8")
    lines = existing.splitlines()
    span = _find_block(lines)

    if span is None:
        separator = "\n\n" if existing.strip() else ""
        gitignore.write_text(existing.rstrip() + separator + block + "\n", encoding="utf-8")
        logger.info("Appended %d ignore rule(s) to %s", len(patterns), gitignore)
        return IgnoreUpdate(UpsertAction.APPENDED, gitignore, patterns)

    begin, end = span
    new_lines = lines[:begin] + block.splitlines() + lines[end + 1 :]
    new_text = "\n".join(new_lines) + "\n"
    if new_text == existing:
        return IgnoreUpdate(UpsertAction.UNCHANGED, gitignore, patterns)

    gitignore.write_text(new_text, encoding="utf-8")
    logger.info("Refreshed managed ignore rules in %s", gitignore)
    return IgnoreUpdate(UpsertAction.REPLACED, gitignore, patterns)
