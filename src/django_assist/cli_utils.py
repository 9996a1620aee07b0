"""Shared CLI helpers: console output, exit codes, logging setup."""

import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from django_assist.core.exceptions import DjangoAssistError

EXIT_SUCCESS = 0
EXIT_ERROR = 1
EXIT_CONFIG_ERROR = 2

console = Console()


class ExpectedErrorFilter(logging.Filter):
    """Drop log records carrying an expected (user-recoverable) exception.

    Errors such as UnavailableCommandError are input validation outcomes;
    the CLI reports them in one line, never as a logged backtrace.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if record.exc_info and record.exc_info[1] is not None:
            exc = record.exc_info[1]
            if isinstance(exc, DjangoAssistError) and exc.expected:
                return False
        return True


def _setup_logging(verbose: bool = False, quiet: bool = False) -> None:
    """Configure root logging with a rich handler.

    Args:
        verbose: Show debug messages.
        quiet: Show only warnings and errors.

    """
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.INFO

    handler = RichHandler(
        console=Console(stderr=True),
        show_path=verbose,
        rich_tracebacks=True,
        markup=False,
    )
    handler.addFilter(ExpectedErrorFilter())

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)


def _error(message: str) -> None:
    console.print(f"[red]Error:[/red] {escape(message)}", highlight=False)


def _warning(message: str) -> None:
    console.print(f"[yellow]Warning:[/yellow] {escape(message)}", highlight=False)


def _info(message: str) -> None:
    console.print(f"[cyan]{escape(message)}[/cyan]", highlight=False)


def _success(message: str) -> None:
    console.print(f"[green]{escape(message)}[/green]", highlight=False)


def _validate_project_path(project: Path) -> Path:
    """Resolve a --project option.

    Raises:
        typer.Exit: If the path is missing or not a directory.

    """
    project_path = project.expanduser().resolve()
    if not project_path.exists():
        _error(f"Directory does not exist: {project_path}")
        raise typer.Exit(code=EXIT_ERROR)
    if not project_path.is_dir():
        _error(f"Not a directory: {project_path}")
        raise typer.Exit(code=EXIT_ERROR)
    return project_path
