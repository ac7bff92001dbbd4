"""
reposync status - read-only report on a synced repository.

Takes no lock, does not fetch, and does not stage: safe to run while the
daemon is active. Ahead/behind counts reflect the last fetch.
"""

import json as json_module
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from reposync.cli.common import resolve_config
from reposync.cli.errors import ExitCode, print_configuration_error
from reposync.core.exceptions import ConfigurationError
from reposync.core.sync.download import is_autostash
from reposync.core.sync.lock import read_lock_info
from reposync.core.vcs.git import GitAdapter

console = Console()


def _collect(ctx: typer.Context) -> dict[str, Any]:
    config = resolve_config(ctx)
    git = GitAdapter(config.repo_path)

    if not git.is_repository():
        raise ConfigurationError(f"{config.repo_path} is not a git working copy")

    branch = git.current_branch()
    upstream = config.upstream_branch or branch
    upstream_ref = f"refs/remotes/{config.remote}/{upstream}" if upstream else None

    ahead = behind = None
    if branch is not None and upstream_ref is not None:
        divergence = git.ahead_behind(upstream_ref)
        ahead, behind = divergence.ahead, divergence.behind

    lock_held = config.lock_path.exists()
    holder = read_lock_info(config.lock_path) if lock_held else None

    autostashes = [
        {"ref": entry.ref, "sha": entry.sha, "message": entry.message}
        for entry in git.stash_list()
        if is_autostash(entry.message)
    ]

    return {
        "repo_path": str(config.repo_path),
        "branch": branch,
        "remote": config.remote,
        "remote_url": git.remote_url(config.remote),
        "upstream_ref": upstream_ref,
        "upstream_exists": git.ref_exists(upstream_ref) if upstream_ref else False,
        "ahead": ahead,
        "behind": behind,
        "dirty": git.is_dirty(),
        "lock_path": str(config.lock_path),
        "lock_held": lock_held,
        "lock_holder": holder.model_dump(mode="json") if holder else None,
        "autostashes": autostashes,
    }


def status(
    ctx: typer.Context,
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output status as JSON",
    ),
) -> None:
    """
    Show branch, upstream, lock and autostash state for the repository.

    Examples:
        reposync status                  # Human-readable table
        reposync --repo ~/notes status   # Another repository
        reposync status --json           # Machine-readable
    """
    try:
        info = _collect(ctx)
    except ConfigurationError as e:
        print_configuration_error(str(e))
        raise typer.Exit(ExitCode.USER_ERROR) from e

    if json_output:
        typer.echo(json_module.dumps(info, indent=2))
        raise typer.Exit(0)

    table = Table(title="Sync Status", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")

    table.add_row("Repository", info["repo_path"])
    table.add_row("Branch", info["branch"] or "[red]detached HEAD[/red]")
    remote_desc = info["remote"]
    if info["remote_url"] is None:
        remote_desc += " [red](not configured)[/red]"
    table.add_row("Remote", remote_desc)
    if info["upstream_ref"]:
        upstream_desc = info["upstream_ref"]
        if not info["upstream_exists"]:
            upstream_desc += " [dim](not fetched yet)[/dim]"
        table.add_row("Upstream", upstream_desc)
    if info["ahead"] is not None:
        table.add_row(
            "Ahead / behind", f"{info['ahead']} / {info['behind']} [dim](last fetch)[/dim]"
        )
    table.add_row("Working tree", "[yellow]dirty[/yellow]" if info["dirty"] else "clean")

    if info["lock_held"]:
        holder = info["lock_holder"]
        who = f"pid {holder['pid']} on {holder['hostname']}" if holder else "unknown holder"
        table.add_row("Lock", f"[yellow]held[/yellow] by {who}")
    else:
        table.add_row("Lock", "[green]free[/green]")

    table.add_row("Autostashes", str(len(info["autostashes"])))
    console.print(table)

    if info["autostashes"]:
        console.print()
        console.print("[yellow]Autostashes awaiting manual resolution:[/yellow]")
        for stash in info["autostashes"]:
            console.print(f"  {stash['ref']}  {stash['sha'][:8]}  {stash['message']}")
        console.print("[dim]Inspect with `git stash show -p <ref>`; apply or drop by hand.[/dim]")
