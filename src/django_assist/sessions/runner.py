"""Session runner: spawns and tracks manage.py subprocesses.

Provides:
- Command validation against the project's catalog
- Subprocess spawning with the management environment
- Per-session output follower (truncating or capturing)
- Termination notification to the CallbackDispatcher, after all output
- Kill / kill-all / close / teardown, keeping the registry in sync
- Cycling through a project's sessions

All bookkeeping happens on the event loop thread. Only blocking pipe reads
and process waits go to the default executor.
"""

import asyncio
import contextlib
import logging
import re
import shlex
from collections.abc import Callable
from subprocess import DEVNULL, PIPE, STDOUT, Popen, TimeoutExpired
from typing import Any

from django_assist.core.config import DEFAULT_OUTPUT_LIMIT
from django_assist.core.metadata import ProjectMetadata
from django_assist.core.project import ProjectContext
from django_assist.management.catalog import ensure_available
from django_assist.sessions.attachments import AttachmentRegistry, default_attachments
from django_assist.sessions.callbacks import CallbackDispatcher, SessionExit, exit_status
from django_assist.sessions.hooks import SessionHooks
from django_assist.sessions.registry import SessionCursor, SessionRegistry
from django_assist.sessions.session import OutputBuffer, Session, SessionState

logger = logging.getLogger(__name__)

# Seconds between SIGTERM and SIGKILL for a killed session
DEFAULT_SIGTERM_WAIT = 5

OutputListener = Callable[[Session, str], Any]


def reap_process(process: Popen[bytes], sigterm_wait: float = DEFAULT_SIGTERM_WAIT) -> int:
    """Wait for a terminated process, sending SIGKILL if it lingers.

    Returns:
        The process's return code.

    """
    try:
        return process.wait(timeout=sigterm_wait)
    except TimeoutExpired:
        logger.warning("Sending SIGKILL to PID %d", process.pid)
        with contextlib.suppress(ProcessLookupError):
            process.kill()
        return process.wait()


class SessionRunner:
    """Runs manage.py commands as tracked sessions.

    Attributes:
        registry: Session ids per project.
        dispatcher: Completion handlers.
        attachments: Command-name specializations.
        hooks: UI hooks (show, hide, confirm, grep).
        output_limit: Lines kept for truncating sessions.
        on_output: Called for each output line of every session.
        sigterm_wait: Seconds a killed session gets before SIGKILL.

    """

    def __init__(
        self,
        registry: SessionRegistry | None = None,
        dispatcher: CallbackDispatcher | None = None,
        attachments: AttachmentRegistry | None = None,
        hooks: SessionHooks | None = None,
        output_limit: int = DEFAULT_OUTPUT_LIMIT,
        on_output: OutputListener | None = None,
        sigterm_wait: float = DEFAULT_SIGTERM_WAIT,
    ) -> None:
        self.registry = registry or SessionRegistry()
        self.dispatcher = dispatcher or CallbackDispatcher()
        self.attachments = attachments or default_attachments()
        self.hooks = hooks or SessionHooks()
        self.output_limit = output_limit
        self.on_output = on_output
        self.sigterm_wait = sigterm_wait

        self._sessions: dict[str, Session] = {}
        self._followers: dict[str, asyncio.Task[None]] = {}
        self._reapers: set[asyncio.Future[int]] = set()
        # One cursor per project, shared by every view of it
        self._cursors: dict[ProjectContext, SessionCursor] = {}

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, session_id: str) -> Session | None:
        return self._sessions.get(session_id)

    def sessions(self, context: ProjectContext) -> list[Session]:
        """Sessions of a project, oldest first."""
        return [
            self._sessions[session_id]
            for session_id in self.registry.list(context)
            if session_id in self._sessions
        ]

    def session_id_for(self, context: ProjectContext, command: str, args: str = "") -> str:
        """Build a session id that is not currently in use.

        Format: "<project>:<settings label> <command> <args>", trailing
        whitespace trimmed, suffixed "<2>", "<3>"... while taken.
        """
        base = f"{context.display_name}:{context.settings_label} {command} {args}".rstrip()
        candidate = base
        counter = 2
        while candidate in self._sessions:
            candidate = f"{base}<{counter}>"
            counter += 1
        return candidate

    # ------------------------------------------------------------------
    # Running
    # ------------------------------------------------------------------

    async def run(
        self,
        context: ProjectContext,
        command: str,
        args: str = "",
        *,
        capture_output: bool = False,
        suppress_display: bool = False,
        record: dict[str, Any] | None = None,
    ) -> str:
        """Start a manage.py command as a new session.

        Returns as soon as the process is spawned; completion is delivered
        to the dispatcher later.

        Args:
            context: Project to run in.
            command: manage.py subcommand.
            args: Argument string (split with shell rules).
            capture_output: Keep the full output instead of a truncated tail.
            suppress_display: Do not call the show hook.
            record: Raw argument record for the completion handler.

        Returns:
            The new session id.

        Raises:
            UnavailableCommandError: If the command is not in the catalog.
            DiscoveryError: If the catalog or attachment metadata cannot be read.
            RuntimeError: If the subprocess cannot be started.

        """
        ensure_available(context, command)

        args = args.strip()
        session_id = self.session_id_for(context, command, args)
        argv = context.management_argv(command, *shlex.split(args))
        attachment = self.attachments.attach(command, ProjectMetadata(context))

        logger.info("Starting session %s: %s", session_id, " ".join(argv))

        try:
            process = Popen(
                argv,
                cwd=context.project_root,
                env=context.management_env(),
                stdin=PIPE if attachment.interactive else DEVNULL,
                stdout=PIPE,
                stderr=STDOUT,
            )
        except OSError as e:
            logger.exception("Failed to spawn %s", session_id)
            raise RuntimeError(f"Failed to spawn {command}: {e}") from e

        session = Session(
            session_id=session_id,
            project=context,
            command=command,
            args=args,
            argv=argv,
            attachment=attachment,
            output=OutputBuffer(limit=None if capture_output else self.output_limit),
            record=dict(record) if record is not None else None,
            process=process,
        )
        self._sessions[session_id] = session
        self.registry.add(context, session_id)
        self.cursor_for(context).position = len(self.registry.list(context)) - 1
        self._start_follower(session)

        if not suppress_display:
            self.hooks.show(session, session.is_alive())
        return session_id

    def _start_follower(self, session: Session) -> None:
        """Start the task that streams output, then reports termination.

        Output lines are appended in order; the SessionExit event is sent
        only after the stream hit EOF, so it is always last.
        """

        async def follow() -> None:
            process = session.process
            if process is None or process.stdout is None:
                return

            loop = asyncio.get_running_loop()
            while True:
                try:
                    raw: bytes = await loop.run_in_executor(None, process.stdout.readline)
                except (OSError, ValueError):
                    logger.exception("Error reading output of %s", session.session_id)
                    break
                if not raw:
                    break

                line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
                session.add_output(line)
                if self.on_output is not None:
                    result = self.on_output(session, line)
                    if asyncio.iscoroutine(result):
                        await result

            returncode = await loop.run_in_executor(None, process.wait)
            self.dispatcher.notify(SessionExit(session.project, session, exit_status(returncode)))

        task = asyncio.create_task(follow())
        self._followers[session.session_id] = task

        def forget(done: asyncio.Task[None]) -> None:
            # A killed id may already be reused by a newer session
            if self._followers.get(session.session_id) is done:
                del self._followers[session.session_id]

        task.add_done_callback(forget)

    async def wait(self, session_id: str) -> Session | None:
        """Wait until a session's output and completion were processed.

        Returns:
            The session, or None if it does not exist.

        """
        session = self._sessions.get(session_id)
        task = self._followers.get(session_id)
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        return session

    def send(self, session_id: str, text: str) -> bool:
        """Write a line to an interactive session's stdin.

        Returns:
            False if the session is unknown, not interactive or not running.

        """
        session = self._sessions.get(session_id)
        if session is None or session.process is None or session.process.stdin is None:
            return False
        if not session.is_alive():
            return False
        data = text if text.endswith("\n") else text + "\n"
        try:
            session.process.stdin.write(data.encode("utf-8"))
            session.process.stdin.flush()
        except (BrokenPipeError, ValueError):
            logger.warning("Session %s no longer accepts input", session_id)
            return False
        return True

    # ------------------------------------------------------------------
    # Killing and closing
    # ------------------------------------------------------------------

    def kill(self, session_id: str, confirm: bool = True) -> bool:
        """Terminate a session's process and destroy the session.

        Killed sessions get no completion notification.

        Args:
            session_id: Session to kill.
            confirm: Ask the operator first.

        Returns:
            True if the session was killed; False if unknown or declined.

        """
        session = self._sessions.get(session_id)
        if session is None:
            return False
        if confirm and not self.hooks.confirm(f"Kill session {session_id}?"):
            return False

        self.hooks.hide(session)

        if session.is_alive() and session.process is not None:
            logger.info("Terminating %s (PID %d)", session_id, session.process.pid)
            with contextlib.suppress(ProcessLookupError):
                session.process.terminate()
            self._reap(session)

        follower = self._followers.get(session_id)
        if follower is not None and not follower.done():
            follower.cancel()

        context = session.project
        self._destroy(session)
        self.cursor_for(context).move(1)
        return True

    def _reap(self, session: Session) -> None:
        """Collect a terminated session's exit status so it leaves no zombie.

        The wait runs in the default executor when a loop is running and
        inline otherwise.
        """
        process = session.process
        if process is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            reap_process(process, self.sigterm_wait)
            return
        reaper = loop.run_in_executor(None, reap_process, process, self.sigterm_wait)
        self._reapers.add(reaper)
        reaper.add_done_callback(self._reapers.discard)

    def kill_all(
        self,
        context: ProjectContext,
        command_filter: str | None = None,
        confirm: bool = True,
    ) -> list[str]:
        """Kill every session of a project matching a filter.

        Args:
            context: Project whose sessions are killed.
            command_filter: Regular expression searched in each command line
                (None matches all).
            confirm: Ask the operator once for the whole batch.

        Returns:
            Ids of killed sessions.

        """
        pattern = re.compile(command_filter) if command_filter else None
        targets = [
            session.session_id
            for session in self.sessions(context)
            if pattern is None or pattern.search(session.command_line)
        ]

        if not targets:
            return []
        if confirm and not self.hooks.confirm(
            f"Kill {len(targets)} session(s) of {context.display_name}?"
        ):
            return []

        killed: list[str] = []
        for session_id in targets:
            try:
                if self.kill(session_id, confirm=False):
                    killed.append(session_id)
            except Exception:
                logger.exception("Failed to kill session %s", session_id)
        return killed

    def close(self, session_id: str) -> bool:
        """Destroy a session whose termination was already processed.

        Returns:
            False if the session is unknown or still running.

        """
        session = self._sessions.get(session_id)
        if session is None or session.state is SessionState.RUNNING:
            return False
        self.hooks.hide(session)
        self._destroy(session)
        return True

    def teardown(self, context: ProjectContext) -> list[str]:
        """Kill and forget every session of a project being closed."""
        killed = self.kill_all(context, confirm=False)
        for session_id in self.registry.clear(context):
            session = self._sessions.pop(session_id, None)
            if session is not None:
                self.hooks.hide(session)
        self._cursors.pop(context, None)
        logger.info("Tore down %d session(s) of %s", len(killed), context.display_name)
        return killed

    async def shutdown(self) -> None:
        """Kill every session of every project and cancel followers."""
        for context in self.registry.contexts():
            self.teardown(context)
        followers = list(self._followers.values())
        for task in followers:
            if not task.done():
                task.cancel()
        pending = [*followers, *self._reapers]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    def _destroy(self, session: Session) -> None:
        self._sessions.pop(session.session_id, None)
        self.registry.remove(session.project, session.session_id)
        if session.process is not None and session.process.stdin is not None:
            with contextlib.suppress(OSError, ValueError):
                session.process.stdin.close()
        logger.debug("Destroyed session %s", session.session_id)

    # ------------------------------------------------------------------
    # Cycling
    # ------------------------------------------------------------------

    def cursor_for(self, context: ProjectContext) -> SessionCursor:
        """The project's session cursor; kill and every view move this one."""
        cursor = self._cursors.get(context)
        if cursor is None:
            cursor = self._cursors[context] = SessionCursor(self.registry, context)
        return cursor

    def _session_at_cursor(self, context: ProjectContext, delta: int) -> Session | None:
        session_id = self.cursor_for(context).move(delta)
        return self._sessions.get(session_id) if session_id else None

    def current_session(self, context: ProjectContext) -> Session | None:
        return self._session_at_cursor(context, 0)

    def next_session(self, context: ProjectContext) -> Session | None:
        return self._session_at_cursor(context, 1)

    def previous_session(self, context: ProjectContext) -> Session | None:
        return self._session_at_cursor(context, -1)
