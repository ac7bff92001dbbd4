"""
reposync CLI - Main application entry point.

This module sets up the Typer CLI application with all subcommands.
"""

from pathlib import Path

import typer
from rich.console import Console

from reposync import __version__
from reposync.cli import init_cmd, run, status, unlock
from reposync.cli.common import setup_logging
from reposync.core.config.env import load_layered_env

# Help panel names for command grouping
PANEL_SYNC = "Sync"
PANEL_OPERATE = "Inspect and Recover"

app = typer.Typer(
    name="reposync",
    help="Keep a git working copy and its remote continuously in sync",
    no_args_is_help=True,
    add_completion=False,
    context_settings={"help_option_names": ["--help", "-h"]},
)

console = Console()


@app.callback()
def main(
    ctx: typer.Context,
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug output with detailed logging",
    ),
    repo: Path | None = typer.Option(
        None,
        "--repo",
        "-C",
        help="Repository to operate on (default: current directory)",
    ),
) -> None:
    """
    reposync - bidirectional git sync daemon.

    Commits and pushes local edits, fetches and fast-forwards remote ones,
    one locked cycle at a time. Never merges, rebases or resolves conflicts:
    anything unsafe is left for a human.

    Quick Start:
        1. reposync init             # Ignore rules and lock directory
        2. reposync run              # Sync every 30 seconds
        3. reposync status           # Check on it

    Recovery:
        reposync unlock              # Clear a lock left by a crashed process
    """
    # Env files first so REPOSYNC_* values reach the config loader.
    # Precedence: OS env > project .reposync.env > user .env
    load_layered_env(repo_path=repo.expanduser() if repo else None)

    setup_logging(debug)

    ctx.obj = {"debug": debug, "repo": repo}


# =============================================================================
# Sync
# =============================================================================

app.command(name="run", rich_help_panel=PANEL_SYNC)(run.run)
app.command(name="once", rich_help_panel=PANEL_SYNC)(run.once)
app.command(name="init", rich_help_panel=PANEL_SYNC)(init_cmd.main)


# =============================================================================
# Inspect and Recover
# =============================================================================

app.command(name="status", rich_help_panel=PANEL_OPERATE)(status.status)
app.command(name="unlock", rich_help_panel=PANEL_OPERATE)(unlock.unlock)


@app.command(rich_help_panel=PANEL_OPERATE)
def version() -> None:
    """Show reposync version and exit."""
    console.print(f"reposync version {__version__}")
    raise typer.Exit(0)


def cli_main() -> None:
    """Main CLI entry point."""
    app()


__all__ = ["app", "cli_main"]
