"""ProjectView: one opened project and the sessions run from it.

A view owns its ProjectContext (and thereby the discovery caches) and a
metadata accessor. Several views share one SessionRunner, which keeps the
single cursor through each project's sessions. Closing a view tears its
sessions down.
"""

import logging
from pathlib import Path

from django_assist.core.config import AssistConfig, load_config
from django_assist.core.metadata import ProjectMetadata
from django_assist.core.project import ProjectContext
from django_assist.management.catalog import ensure_available, list_command_args, list_commands
from django_assist.management.prompts import ConsolePrompter, Prompter
from django_assist.management.quick_commands import QuickCommandTable, register_default_handlers
from django_assist.sessions.hooks import SessionHooks
from django_assist.sessions.registry import SessionCursor
from django_assist.sessions.runner import SessionRunner
from django_assist.sessions.session import Session

logger = logging.getLogger(__name__)


class ProjectView:
    """Operator-facing handle on one project.

    Attributes:
        context: The opened project.
        runner: Shared session runner.
        metadata: Settings and app-path lookups for the project.
        quick_commands: Quick command table.
        prompter: Reads argument values from the operator.
        cursor: Position in the project's session list (owned by the runner).

    """

    def __init__(
        self,
        context: ProjectContext,
        runner: SessionRunner,
        *,
        quick_commands: QuickCommandTable | None = None,
        prompter: Prompter | None = None,
    ) -> None:
        self.context = context
        self.runner = runner
        self.metadata = ProjectMetadata(context)
        self.quick_commands = quick_commands or QuickCommandTable()
        self.prompter = prompter or ConsolePrompter()

    @property
    def cursor(self) -> SessionCursor:
        return self.runner.cursor_for(self.context)

    @classmethod
    def open(
        cls,
        project_root: Path,
        *,
        config: AssistConfig | None = None,
        settings_module: str | None = None,
        interpreter: str | None = None,
        runner: SessionRunner | None = None,
        prompter: Prompter | None = None,
    ) -> "ProjectView":
        """Open a project directory.

        Explicit arguments win over configuration values.

        Raises:
            ConfigError: If the project's config file is invalid.
            ValueError: If the project or its manage.py does not exist.

        """
        config = config or load_config(project_root)
        context = ProjectContext.create(
            project_root,
            settings_module=settings_module or config.settings_module,
            display_name=config.display_name,
            manage_py=Path(config.manage_py) if config.manage_py else None,
            interpreter=interpreter or config.python,
        )
        if runner is None:
            runner = SessionRunner(
                hooks=SessionHooks.from_config(config.hooks),
                output_limit=config.sessions.output_limit,
            )
            register_default_handlers(runner.dispatcher)
        return cls(context, runner, prompter=prompter)

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    def commands(self, force: bool = False) -> list[str]:
        return list_commands(self.context, force=force)

    def command_args(self, command: str, force: bool = False) -> list[str]:
        return list_command_args(self.context, command, force=force)

    def refresh(self) -> None:
        """Drop every cached catalog and metadata result."""
        self.context.invalidate()

    # ------------------------------------------------------------------
    # Running
    # ------------------------------------------------------------------

    async def run_command(
        self,
        command: str,
        args: str = "",
        *,
        capture_output: bool = False,
        suppress_display: bool = False,
    ) -> str:
        """Run a manage.py command as-is."""
        return await self.runner.run(
            self.context,
            command,
            args,
            capture_output=capture_output,
            suppress_display=suppress_display,
        )

    async def run_quick_command(self, name: str, always_prompt: bool = False) -> str:
        """Collect a quick command's arguments and run it.

        The command is checked against the catalog before anything is
        prompted, so nothing is asked for a command that cannot run.

        Args:
            name: Quick command name.
            always_prompt: Prompt for every argument, defaults pre-filled.

        Returns:
            The new session id.

        Raises:
            UnavailableCommandError: Unknown quick command, or command not in catalog.
            DiscoveryError: If discovery fails.

        """
        spec = self.quick_commands.get(name)
        ensure_available(self.context, spec.command)

        values = spec.collect_arguments(
            self.prompter,
            always_prompt=always_prompt,
            project=self.context,
            metadata=self.metadata,
        )
        args = spec.render_arguments(values)
        logger.info("Quick command %s: %s %s", name, spec.command, args)
        return await self.runner.run(
            self.context,
            spec.command,
            args,
            capture_output=spec.capture_output,
            suppress_display=spec.suppress_display,
            record=spec.argument_record(values),
        )

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def sessions(self) -> list[Session]:
        return self.runner.sessions(self.context)

    def _show(self, session: Session | None) -> Session | None:
        if session is not None:
            self.runner.hooks.show(session, session.is_alive())
        return session

    def next_session(self) -> Session | None:
        """Cycle forward and show the session there."""
        return self._show(self.runner.next_session(self.context))

    def previous_session(self) -> Session | None:
        """Cycle backward and show the session there."""
        return self._show(self.runner.previous_session(self.context))

    def kill_current(self, confirm: bool = True) -> bool:
        """Kill the session under the cursor; the cursor moves on by one."""
        session = self.runner.current_session(self.context)
        if session is None:
            return False
        return self.runner.kill(session.session_id, confirm=confirm)

    def kill_all(self, command_filter: str | None = None, confirm: bool = True) -> list[str]:
        return self.runner.kill_all(self.context, command_filter, confirm=confirm)

    def grep(self, pattern: str) -> list[str]:
        """Search the project with the configured grep hook."""
        return self.runner.hooks.grep(self.context, pattern)

    def close(self) -> list[str]:
        """Tear down the project's sessions and drop its caches."""
        killed = self.runner.teardown(self.context)
        self.context.invalidate()
        logger.info("Closed project %s", self.context.display_name)
        return killed
