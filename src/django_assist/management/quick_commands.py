"""Built-in quick commands and their completion handlers.

Each quick command is one CommandSpec value in a table keyed by name. The
interactive entry point (ProjectView.run_quick_command) looks a spec up
here, collects its arguments and runs it.

Completion handlers are keyed by manage.py command name and registered on
a CallbackDispatcher with ``register_default_handlers``.
"""

import logging
import re
from pathlib import Path

from django_assist.core.exceptions import DiscoveryError, SpecError, UnavailableCommandError
from django_assist.core.metadata import ProjectMetadata
from django_assist.management.prompts import Prompter
from django_assist.management.spec import ArgumentScope, ArgumentSpec, CommandSpec
from django_assist.sessions.callbacks import CallbackDispatcher, Completion
from django_assist.sessions.session import content_after

logger = logging.getLogger(__name__)

# First line of generated fixture content, per serialization format
FIXTURE_ANCHORS: dict[str, re.Pattern[str]] = {
    "json": re.compile(r"^\s*[\[{]"),
    "jsonl": re.compile(r"^\s*\{"),
    "xml": re.compile(r"^\s*<\?xml"),
    "yaml": re.compile(r"^- model:"),
}

FIXTURES_DIR = "fixtures"


def read_app(scope: ArgumentScope, prompter: Prompter) -> str:
    """Ask for an app, offering INSTALLED_APPS labels when they can be read."""
    choices: list[str] = []
    if scope.metadata is not None:
        try:
            choices = scope.metadata.installed_apps()
        except DiscoveryError as e:
            logger.warning("Cannot list installed apps: %s", e)
    if choices:
        return prompter.choose("App: ", choices, scope.default)
    return prompter.ask("App: ", scope.default)


def read_fixture_format(scope: ArgumentScope, prompter: Prompter) -> str:
    return prompter.choose("Format: ", sorted(FIXTURE_ANCHORS), scope.default or "json")


def _database_argument() -> ArgumentSpec:
    return ArgumentSpec("database", "Database: ", default="default", switch="--database=")


def _fixture_arguments() -> tuple[ArgumentSpec, ...]:
    return (
        _database_argument(),
        ArgumentSpec("indent", "Indent: ", default="4", switch="--indent="),
        ArgumentSpec("format", read_fixture_format, default="json", switch="--format="),
    )


BUILTIN_QUICK_COMMANDS: tuple[CommandSpec, ...] = (
    CommandSpec(
        name="dumpdata-app",
        command="dumpdata",
        arguments=(*_fixture_arguments(), ArgumentSpec("app", read_app)),
        capture_output=True,
        description="Dump one app's data as a fixture",
    ),
    CommandSpec(
        name="dumpdata-all",
        command="dumpdata",
        arguments=_fixture_arguments(),
        capture_output=True,
        description="Dump the whole database as a fixture",
    ),
    CommandSpec(
        name="loaddata",
        command="loaddata",
        arguments=(_database_argument(), ArgumentSpec("fixtures", "Fixtures: ")),
        description="Load fixture files",
    ),
    CommandSpec(
        name="migrate",
        command="migrate",
        switches="--noinput",
        arguments=(_database_argument(), ArgumentSpec("app", read_app, force_prompt=True)),
        description="Apply migrations (all apps when app is left empty)",
    ),
    CommandSpec(
        name="makemigrations",
        command="makemigrations",
        arguments=(ArgumentSpec("app", read_app, force_prompt=True),),
        description="Create migrations for model changes",
    ),
    CommandSpec(
        name="sqlmigrate",
        command="sqlmigrate",
        arguments=(
            _database_argument(),
            ArgumentSpec("app", read_app),
            ArgumentSpec("migration", "Migration: "),
        ),
        description="Print the SQL of a migration",
    ),
    CommandSpec(
        name="startapp",
        command="startapp",
        arguments=(ArgumentSpec("app", "New app name: ", force_prompt=True),),
        description="Create a new app in the project",
    ),
    CommandSpec(
        name="test",
        command="test",
        switches="--noinput",
        arguments=(ArgumentSpec("labels", "Test labels: ", force_prompt=True),),
        description="Run the test suite (all tests when labels are empty)",
    ),
    CommandSpec(
        name="collectstatic",
        command="collectstatic",
        switches="--noinput",
        description="Collect static files",
    ),
    CommandSpec(
        name="runserver",
        command="runserver",
        arguments=(ArgumentSpec("addrport", "Address:port: ", default="127.0.0.1:8000"),),
        description="Start the development server",
    ),
    CommandSpec(name="shell", command="shell", description="Interactive Python shell"),
    CommandSpec(name="dbshell", command="dbshell", description="Database client shell"),
    CommandSpec(
        name="createsuperuser",
        command="createsuperuser",
        arguments=(
            _database_argument(),
            ArgumentSpec("username", "Username: ", switch="--username="),
            ArgumentSpec("email", "Email: ", switch="--email="),
        ),
        description="Create an admin user (password asked by the shell)",
    ),
    CommandSpec(
        name="check",
        command="check",
        arguments=(ArgumentSpec("tags", "Tag: ", default="", switch="--tag"),),
        description="Run system checks",
    ),
)


class QuickCommandTable:
    """Quick command specs by name."""

    def __init__(self, specs: tuple[CommandSpec, ...] = BUILTIN_QUICK_COMMANDS) -> None:
        self._specs: dict[str, CommandSpec] = {}
        for spec in specs:
            self.register(spec)

    def register(self, spec: CommandSpec, replace: bool = False) -> None:
        """Add a spec.

        Raises:
            SpecError: If the name is taken and replace is False.

        """
        if spec.name in self._specs and not replace:
            raise SpecError(f"Quick command {spec.name!r} is already registered")
        self._specs[spec.name] = spec

    def get(self, name: str) -> CommandSpec:
        """Look up a spec.

        Raises:
            UnavailableCommandError: If no quick command has that name.

        """
        spec = self._specs.get(name)
        if spec is None:
            raise UnavailableCommandError(name)
        return spec

    def names(self) -> list[str]:
        return sorted(self._specs)

    def __iter__(self):
        return iter(self._specs[name] for name in self.names())

    def __contains__(self, name: object) -> bool:
        return name in self._specs


# ----------------------------------------------------------------------
# Completion handlers
# ----------------------------------------------------------------------


def fixture_path(completion: Completion) -> Path:
    """Where a dumpdata result is saved.

    <app path>/fixtures/<app>.<format> for one app, otherwise
    <project root>/fixtures/all.<format>.
    """
    record = completion.record
    fmt = record.get("format") or "json"
    app = record.get("app")
    if app:
        app_path = ProjectMetadata(completion.project).get_app_path(app)
        return app_path / FIXTURES_DIR / f"{app}.{fmt}"
    return completion.project.project_root / FIXTURES_DIR / f"all.{fmt}"


def save_fixture(completion: Completion) -> None:
    """Write captured dumpdata output to a fixture file."""
    record = completion.record
    fmt = record.get("format") or "json"
    anchor = FIXTURE_ANCHORS.get(fmt)
    lines = completion.session.output.lines()
    if anchor is not None:
        lines = content_after(lines, anchor)
    if not lines:
        logger.warning("dumpdata produced no output for %s", completion.session.session_id)
        return

    try:
        target = fixture_path(completion)
    except DiscoveryError as e:
        logger.error("Cannot locate app %s: %s", record.get("app"), e)
        return
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text("\n".join(lines) + "\n", encoding="utf-8")
    logger.info("Saved fixture %s (%d lines)", target, len(lines))


def refresh_after_startapp(completion: Completion) -> None:
    """A new app changes settings and app paths: drop cached metadata."""
    ProjectMetadata(completion.project).invalidate()
    app = completion.record.get("app")
    if app:
        logger.info("Created app %s in %s", app, completion.project.project_root / app)


def register_default_handlers(dispatcher: CallbackDispatcher) -> None:
    dispatcher.register("dumpdata", save_fixture)
    dispatcher.register("startapp", refresh_after_startapp)
