"""
Helpers shared by reposync commands: logging setup and config resolution.
"""

import logging
import sys
from pathlib import Path
from typing import Any

import typer

from reposync.cli.errors import ExitCode, print_configuration_error
from reposync.core.config import SyncConfig, load_config
from reposync.core.daemon import find_repository_root
from reposync.core.exceptions import ConfigurationError

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(debug: bool = False, log_file: Path | None = None) -> None:
    """
    Configure root logging for a reposync process.

    Args:
        debug: If True, log at DEBUG (every git invocation, phase changes)
        log_file: Optional file that receives the same records as stderr
    """
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )


def get_repo(ctx: typer.Context) -> Path:
    obj = ctx.obj or {}
    repo = obj.get("repo")
    return Path(repo).expanduser() if repo else Path.cwd()


def get_debug(ctx: typer.Context) -> bool:
    return bool((ctx.obj or {}).get("debug", False))


def resolve_config(ctx: typer.Context, overrides: dict[str, Any] | None = None) -> SyncConfig:
    """
    Load layered config for the --repo directory, exiting with USER_ERROR on failure.

    Inside a git working tree, config is loaded for the tree's root.
    """
    try:
        return load_config(find_repository_root(get_repo(ctx)), overrides)
    except ConfigurationError as e:
        print_configuration_error(str(e))
        raise typer.Exit(ExitCode.USER_ERROR) from e
