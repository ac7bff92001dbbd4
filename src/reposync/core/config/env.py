"""
.env support for the daemon process.

REPOSYNC_* settings, and variables git itself reads such as GIT_SSH_COMMAND,
may live in two dotenv files:

  <repo root>/.reposync.env           project file, never staged or pushed
  $XDG_CONFIG_HOME/reposync/.env      user file

Variables already in the process environment always win, then the project
file, then the user file.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from dotenv import load_dotenv

from .loader import get_xdg_config_home

logger = logging.getLogger(__name__)

PROJECT_ENV_FILE = ".reposync.env"


def get_user_env_path() -> Path:
    return get_xdg_config_home() / "reposync" / ".env"


def find_project_env(start: Path) -> Path | None:
    """
    Locate the project env file for the working tree containing start.

    Walks up from start and stops at the first directory holding `.git`, so
    `--repo some/subdir` finds the file at the repository root and a file in
    an enclosing, unrelated directory is never picked up.
    """
    start = start.expanduser().absolute()
    for directory in (start, *start.parents):
        candidate = directory / PROJECT_ENV_FILE
        if candidate.is_file():
            return candidate
        if (directory / ".git").exists():
            return None
    return None


def load_layered_env(
    *,
    repo_path: Path | None = None,
    user_env_paths: Iterable[Path] | None = None,
) -> list[Path]:
    """
    Populate os.environ from the project and user env files.

    Args:
        repo_path: Directory inside the repository (defaults to cwd).
        user_env_paths: Override the user file location(s); used by tests.

    Returns:
        The env files that were read, highest precedence first.
    """
    project_env = find_project_env(repo_path or Path.cwd())
    if user_env_paths is None:
        user_env_paths = [get_user_env_path()]

    candidates = [project_env] if project_env else []
    candidates.extend(Path(p) for p in user_env_paths)

    # override=False throughout: the first file to set a key keeps it
    loaded = []
    for path in candidates:
        if path.is_file():
            load_dotenv(path, override=False)
            loaded.append(path)
            logger.debug("Loaded environment from %s", path)
    return loaded
