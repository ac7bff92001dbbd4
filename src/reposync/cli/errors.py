"""
Exit codes and error messages for the reposync CLI.

Each error names the problem, why it happened, and what to do about it.
"""

from enum import IntEnum

from rich.console import Console

console = Console()


class ExitCode(IntEnum):
    """Standard exit codes for reposync commands."""

    SUCCESS = 0
    """Operation completed successfully."""

    GENERAL_ERROR = 1
    """A cycle reported an error, or the operator declined a prompt."""

    USER_ERROR = 2
    """Configuration or environment problem (actionable by the user)."""


def print_error(
    problem: str,
    *,
    reason: str | None = None,
    solution: str | None = None,
) -> None:
    """
    Print a standardized error message with actionable guidance.

    Args:
        problem: Brief description of what went wrong
        reason: Optional explanation of why it happened
        solution: Optional command or action to fix it

    Example:
        >>> print_error(
        ...     "Not a git working copy",
        ...     reason="reposync syncs an existing clone",
        ...     solution="git clone <url> && cd <dir>",
        ... )
    """
    console.print(f"[red]Error:[/red] {problem}")

    if reason:
        console.print(f"[dim]{reason}[/dim]")

    if solution:
        console.print(f"[cyan]→ Try:[/cyan] {solution}")


def print_configuration_error(message: str) -> None:
    print_error(
        message,
        reason="reposync cannot start until the repository and configuration are usable",
        solution="reposync --repo <path> status  # check branch, remote and lock",
    )

