"""
reposync unlock - remove an abandoned sync lock.

Locks never expire on their own. When a sync process dies without releasing
(SIGKILL, power loss), an operator clears the marker here.
"""

import typer
from rich.console import Console

from reposync.cli.common import resolve_config
from reposync.cli.errors import ExitCode
from reposync.core.sync.lock import break_lock, read_lock_info

console = Console()


def unlock(
    ctx: typer.Context,
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Remove without asking for confirmation",
    ),
) -> None:
    """
    Remove the repository's sync lock.

    Only do this when the holder shown is no longer running; removing a live
    lock lets two cycles overlap.
    """
    config = resolve_config(ctx)
    lock_path = config.lock_path

    if not lock_path.exists():
        console.print(f"[green]No lock held[/green] ({lock_path})")
        raise typer.Exit(ExitCode.SUCCESS)

    holder = read_lock_info(lock_path)
    console.print(f"Lock: {lock_path}")
    console.print(f"Holder: {holder.describe() if holder else '[dim]unknown[/dim]'}")

    if not force and not typer.confirm("Remove this lock?", default=False):
        console.print("[dim]Lock left in place[/dim]")
        raise typer.Exit(ExitCode.GENERAL_ERROR)

    break_lock(lock_path)
    console.print("[green]✓[/green] Lock removed")
