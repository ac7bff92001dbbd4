"""
reposync run / reposync once - drive sync cycles.

`run` is the daemon: first cycle immediately, then one cycle per interval
until SIGINT/SIGTERM. `once` runs a single cycle for cron or systemd timers.
"""

from pathlib import Path

import typer
from rich.console import Console

from reposync.cli.common import get_debug, resolve_config, setup_logging
from reposync.cli.errors import ExitCode, print_configuration_error
from reposync.core.daemon import SyncDaemon
from reposync.core.exceptions import ConfigurationError
from reposync.core.sync.models import CycleResult

console = Console()


def _render(result: CycleResult) -> None:
    if result.requires_attention:
        console.print(f"[red]✗ {result.summary()}[/red]")
        console.print("[yellow]Manual intervention required; see the log for details.[/yellow]")
    elif not result.success:
        console.print(f"[yellow]! {result.summary()}[/yellow]")
    elif any(flow is not None and not flow.is_noop for flow in (result.upload, result.download)):
        console.print(f"[green]✓ {result.summary()}[/green]")


def _build_daemon(ctx: typer.Context, overrides: dict) -> SyncDaemon:
    config = resolve_config(ctx, overrides)
    if config.log_file is not None:
        setup_logging(get_debug(ctx), config.log_file)

    daemon = SyncDaemon.from_config(config)
    try:
        daemon.validate()
    except ConfigurationError as e:
        print_configuration_error(str(e))
        raise typer.Exit(ExitCode.USER_ERROR) from e
    return daemon


def run(
    ctx: typer.Context,
    interval: float | None = typer.Option(
        None,
        "--interval",
        "-i",
        help="Seconds between cycles (default 30)",
    ),
    remote: str | None = typer.Option(
        None,
        "--remote",
        help="Remote to sync with (default origin)",
    ),
    branch: str | None = typer.Option(
        None,
        "--branch",
        "-b",
        help="Remote branch to track (default: the checked-out branch's name)",
    ),
    lock_max_wait: float | None = typer.Option(
        None,
        "--lock-max-wait",
        help="Give up a cycle after waiting this many seconds for the lock",
    ),
    max_cycles: int | None = typer.Option(
        None,
        "--max-cycles",
        help="Stop after this many cycles",
    ),
    log_file: Path | None = typer.Option(
        None,
        "--log-file",
        help="Also write logs to this file",
    ),
) -> None:
    """
    Keep the repository in sync until interrupted.

    Every cycle takes the repository lock, commits and pushes local changes,
    then fetches and fast-forwards upstream changes. Ctrl+C once to stop after
    the current cycle, twice to force.

    Examples:
        reposync run                       # Sync cwd every 30s
        reposync --repo ~/notes run -i 10  # Sync ~/notes every 10s
    """
    daemon = _build_daemon(
        ctx,
        {
            "interval_seconds": interval,
            "remote": remote,
            "upstream_branch": branch,
            "lock_max_wait_seconds": lock_max_wait,
            "max_cycles": max_cycles,
            "log_file": log_file,
        },
    )

    console.print(
        f"[bold]Syncing[/bold] {daemon.config.repo_path} "
        f"every {daemon.config.interval_seconds:g}s (Ctrl+C to stop)"
    )
    cycles = 0
    for result in daemon.run():
        cycles += 1
        _render(result)

    console.print(f"[dim]Stopped after {cycles} cycle(s)[/dim]")


def once(
    ctx: typer.Context,
    remote: str | None = typer.Option(
        None,
        "--remote",
        help="Remote to sync with (default origin)",
    ),
    branch: str | None = typer.Option(
        None,
        "--branch",
        "-b",
        help="Remote branch to track (default: the checked-out branch's name)",
    ),
    lock_max_wait: float | None = typer.Option(
        None,
        "--lock-max-wait",
        help="Fail the cycle after waiting this many seconds for the lock",
    ),
    log_file: Path | None = typer.Option(
        None,
        "--log-file",
        help="Also write logs to this file",
    ),
) -> None:
    """
    Run exactly one sync cycle and exit.

    Exits 1 if the cycle reported an error, so schedulers can alert on it.
    """
    daemon = _build_daemon(
        ctx,
        {
            "remote": remote,
            "upstream_branch": branch,
            "lock_max_wait_seconds": lock_max_wait,
            "log_file": log_file,
        },
    )

    result = daemon.run_once()
    _render(result)
    if result.success and all(
        flow is None or flow.is_noop for flow in (result.upload, result.download)
    ):
        console.print(f"[dim]{result.summary()}: nothing to do[/dim]")

    if not result.success:
        raise typer.Exit(ExitCode.GENERAL_ERROR)
