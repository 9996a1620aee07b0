"""django-assist command line entry point.

Opens a project and drives its manage.py commands:

    $ django-assist commands
    $ django-assist args dumpdata
    $ django-assist run migrate --plan
    $ django-assist quick dumpdata-app
    $ django-assist -p ~/src/mysite --settings mysite.settings.dev quick runserver
"""

import asyncio
import logging
import shlex
import sys
import threading
from collections.abc import Awaitable, Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

import typer
from rich.table import Table

from django_assist import __version__
from django_assist.cli_utils import (
    EXIT_CONFIG_ERROR,
    EXIT_ERROR,
    EXIT_SUCCESS,
    _error,
    _info,
    _setup_logging,
    _validate_project_path,
    _warning,
    console,
)
from django_assist.core.exceptions import (
    ConfigError,
    DiscoveryError,
    SpecError,
    UnavailableCommandError,
)
from django_assist.sessions.session import Session
from django_assist.workspace import ProjectView

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="django-assist",
    help="Interactive front-end for Django management commands",
    no_args_is_help=True,
)


@dataclass
class CliState:
    """Global options shared by all commands."""

    project: Path
    settings: str | None
    python: str | None


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"django-assist {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    project: Path = typer.Option(
        Path("."),
        "--project",
        "-p",
        help="Path to the Django project (directory containing manage.py)",
    ),
    settings: str = typer.Option(
        None,
        "--settings",
        help="Settings module (default: from manage.py or config)",
    ),
    python: str = typer.Option(
        None,
        "--python",
        help="Python interpreter used to run manage.py",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """Manage a Django project's commands as tracked sessions."""
    _setup_logging(verbose=verbose, quiet=not verbose)
    ctx.obj = CliState(project=project, settings=settings, python=python)


@contextmanager
def _reported_errors() -> Iterator[None]:
    """Turn django-assist errors into operator messages and exit codes."""
    try:
        yield
    except UnavailableCommandError as e:
        _error(str(e))
        raise typer.Exit(code=EXIT_ERROR) from None
    except DiscoveryError as e:
        _error(e.format_diagnostic())
        raise typer.Exit(code=EXIT_ERROR) from None
    except ConfigError as e:
        _error(str(e))
        raise typer.Exit(code=EXIT_CONFIG_ERROR) from None
    except SpecError as e:
        _error(f"Invalid quick command: {e}")
        raise typer.Exit(code=EXIT_ERROR) from None


def _open_view(ctx: typer.Context) -> ProjectView:
    state: CliState = ctx.obj
    project_path = _validate_project_path(state.project)
    with _reported_errors():
        try:
            return ProjectView.open(
                project_path,
                settings_module=state.settings,
                interpreter=state.python,
            )
        except ValueError as e:
            _error(str(e))
            raise typer.Exit(code=EXIT_ERROR) from None


def _pump_stdin(loop: asyncio.AbstractEventLoop, view: ProjectView, session_id: str) -> None:
    """Forward terminal input to an interactive session.

    Runs in a daemon thread; each line is handed to the event loop so only
    the loop thread touches the session.
    """
    for line in sys.stdin:
        if view.runner.get(session_id) is None:
            break
        loop.call_soon_threadsafe(view.runner.send, session_id, line)


def _print_line(session: Session, line: str) -> None:
    console.print(line, markup=False, highlight=False)


async def _follow_session(view: ProjectView, start: Callable[[], Awaitable[str]]) -> Session | None:
    view.runner.on_output = _print_line
    session_id = await start()
    session = view.runner.get(session_id)
    if session is not None and session.attachment.interactive:
        loop = asyncio.get_running_loop()
        threading.Thread(
            target=_pump_stdin,
            args=(loop, view, session_id),
            daemon=True,
        ).start()
    return await view.runner.wait(session_id)


def _exit_for(session: Session | None) -> None:
    if session is None:
        raise typer.Exit(code=EXIT_ERROR)
    if session.success:
        raise typer.Exit(code=EXIT_SUCCESS)
    _warning(f"{session.session_id}: {session.exit_status}")
    raise typer.Exit(code=EXIT_ERROR)


@app.command(name="commands")
def commands_command(
    ctx: typer.Context,
    force: bool = typer.Option(False, "--force", "-f", help="Re-run discovery"),
) -> None:
    """List the project's management commands."""
    view = _open_view(ctx)
    with _reported_errors():
        for name in view.commands(force=force):
            console.print(name, highlight=False)


@app.command(name="args")
def args_command(
    ctx: typer.Context,
    command: str = typer.Argument(..., help="Management command name"),
    force: bool = typer.Option(False, "--force", "-f", help="Re-run discovery"),
) -> None:
    """List the flags a management command accepts."""
    view = _open_view(ctx)
    with _reported_errors():
        for flag in view.command_args(command, force=force):
            console.print(flag, highlight=False)


@app.command(
    name="run",
    context_settings={"allow_extra_args": True, "ignore_unknown_options": True},
)
def run_command(
    ctx: typer.Context,
    command: str = typer.Argument(..., help="Management command name"),
    capture: bool = typer.Option(False, "--capture", help="Keep the full output"),
) -> None:
    """Run a management command as a session and stream its output."""
    view = _open_view(ctx)
    args = shlex.join(ctx.args)
    with _reported_errors():
        session = asyncio.run(
            _follow_session(view, lambda: view.run_command(command, args, capture_output=capture))
        )
    _exit_for(session)


@app.command(name="quick")
def quick_command(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Quick command name (see quick-list)"),
    always_prompt: bool = typer.Option(
        False,
        "--always-prompt",
        "-a",
        help="Prompt for every argument, defaults pre-filled",
    ),
) -> None:
    """Run a quick command, prompting for its arguments."""
    view = _open_view(ctx)
    try:
        with _reported_errors():
            session = asyncio.run(
                _follow_session(view, lambda: view.run_quick_command(name, always_prompt))
            )
    except KeyboardInterrupt:
        console.print("\n[yellow]Cancelled[/yellow]")
        raise typer.Exit(code=130) from None
    _exit_for(session)


@app.command(name="quick-list")
def quick_list_command(ctx: typer.Context) -> None:
    """Show the available quick commands."""
    view = _open_view(ctx)
    table = Table(title="Quick commands")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Command", no_wrap=True)
    table.add_column("Arguments")
    table.add_column("Description", style="dim")
    for spec in view.quick_commands:
        table.add_row(
            spec.name,
            f"{spec.command} {spec.switches}".strip(),
            ", ".join(spec.argument_names),
            spec.description,
        )
    console.print(table)


@app.command(name="grep")
def grep_command(
    ctx: typer.Context,
    pattern: str = typer.Argument(..., help="Extended regular expression"),
) -> None:
    """Search the project sources."""
    view = _open_view(ctx)
    matches = view.grep(pattern)
    if not matches:
        _info("No matches")
        raise typer.Exit(code=EXIT_ERROR)
    for line in matches:
        console.print(line, markup=False, highlight=False)


if __name__ == "__main__":
    app()
