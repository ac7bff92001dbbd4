"""
reposync init - prepare a clone for unattended syncing.

Writes the default ignore rules into .gitignore (inside a managed block) and
creates the self-ignoring lock directory.
"""

import typer
from rich.console import Console

from reposync.cli.common import resolve_config
from reposync.cli.errors import ExitCode, print_configuration_error
from reposync.core.exceptions import ConfigurationError
from reposync.core.ignore import UpsertAction, write_ignore_rules
from reposync.core.sync.lock import ensure_lock_directory
from reposync.core.vcs.git import GitAdapter

console = Console()


def main(
    ctx: typer.Context,
    skip_ignore: bool = typer.Option(
        False,
        "--skip-ignore",
        help="Leave .gitignore untouched",
    ),
) -> None:
    """
    Set up the repository for reposync.

    Safe to re-run: the managed .gitignore block is replaced in place and
    lines outside it are never touched.
    """
    config = resolve_config(ctx)

    try:
        if not GitAdapter(config.repo_path).is_repository():
            raise ConfigurationError(f"{config.repo_path} is not a git working copy")
        ensure_lock_directory(config.lock_directory)
    except ConfigurationError as e:
        print_configuration_error(str(e))
        raise typer.Exit(ExitCode.USER_ERROR) from e

    console.print(f"[green]✓[/green] Lock directory ready: {config.lock_directory}")

    if skip_ignore:
        return

    update = write_ignore_rules(config.repo_path)
    if update.action == UpsertAction.UNCHANGED:
        console.print(f"[dim]Ignore rules already up to date in {update.path}[/dim]")
    else:
        console.print(
            f"[green]✓[/green] Ignore rules {update.action.value} in {update.path} "
            f"({len(update.patterns)} patterns)"
        )
