"""Pluggable UI hooks the session runner calls.

The runner never renders anything itself. It calls:

- show(session, follow): surface a session; follow=True means jump to the
  live end of its output
- hide(session): detach any view of a session about to be killed
- confirm(message): ask the operator before destructive actions
- grep(context, pattern): search the project sources

Each hook can be replaced by a dotted reference in django-assist.yaml.
"""

import logging
import subprocess
from collections.abc import Callable
from dataclasses import dataclass, field

from rich.console import Console
from rich.prompt import Confirm

from django_assist.core.config import HooksConfig, resolve_callable
from django_assist.core.project import ProjectContext
from django_assist.sessions.session import Session

logger = logging.getLogger(__name__)

ShowSession = Callable[[Session, bool], None]
HideSession = Callable[[Session], None]
ConfirmAction = Callable[[str], bool]
GrepProject = Callable[[ProjectContext, str], list[str]]

# Directories never worth searching
GREP_EXCLUDED_DIRS = (".git", "__pycache__", "node_modules", ".venv", "venv", ".tox")

console = Console(stderr=True)


def show_session_summary(session: Session, follow: bool) -> None:
    """Print a one-line header and the tail of the session's output."""
    state = "live" if follow else session.state.value
    console.print(f"[bold cyan]{session.session_id}[/bold cyan] [dim]({state})[/dim]")
    if not follow:
        for line in session.output.lines(count=20):
            console.print(line, markup=False, highlight=False)


def hide_nothing(session: Session) -> None:
    logger.debug("Hiding %s", session.session_id)


def confirm_with_prompt(message: str) -> bool:
    return Confirm.ask(message, console=console, default=False)


def grep_project(context: ProjectContext, pattern: str) -> list[str]:
    """Search project files with grep.

    Returns:
        "path:line:text" matches, paths relative to the project root.

    """
    argv = ["grep", "-rnIE", "-e", pattern, "."]
    for excluded in GREP_EXCLUDED_DIRS:
        argv.insert(1, f"--exclude-dir={excluded}")
    try:
        result = subprocess.run(
            argv,
            cwd=context.project_root,
            capture_output=True,
            text=True,
            errors="replace",
            check=False,
        )
    except OSError:
        logger.exception("grep is not available")
        return []

    # grep exits 1 when nothing matched
    if result.returncode > 1:
        logger.warning("grep failed: %s", result.stderr.strip())
        return []
    return [line.removeprefix("./") for line in result.stdout.splitlines()]


@dataclass
class SessionHooks:
    """UI hooks used by the session runner."""

    show: ShowSession = field(default=show_session_summary)
    hide: HideSession = field(default=hide_nothing)
    confirm: ConfirmAction = field(default=confirm_with_prompt)
    grep: GrepProject = field(default=grep_project)

    @classmethod
    def from_config(cls, config: HooksConfig) -> "SessionHooks":
        """Build hooks, resolving configured references.

        Raises:
            ConfigError: If a reference cannot be resolved.

        """
        hooks = cls()
        if config.show_session:
            hooks.show = resolve_callable(config.show_session)
        if config.hide_session:
            hooks.hide = resolve_callable(config.hide_session)
        if config.confirm:
            hooks.confirm = resolve_callable(config.confirm)
        if config.grep:
            hooks.grep = resolve_callable(config.grep)
        return hooks
