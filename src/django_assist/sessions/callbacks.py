"""Completion callbacks for finished sessions.

When a session's process exits, the runner sends a SessionExit event to the
CallbackDispatcher. The dispatcher:

1. Moves the session RUNNING -> SUCCEEDED | FAILED. Events for sessions
   that already terminated are ignored, so handlers run at most once.
2. Looks up the handler registered for the session's command. No handler
   means nothing happens; most commands need no post-processing.
3. Calls the handler with a Completion: normalized argument record,
   success flag and session. Handlers run on success only unless
   registered with ``on_failure=True``.

Handler errors are logged and never escape into the event loop.
"""

import logging
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from django_assist.core.project import ProjectContext
from django_assist.sessions.session import Session, SessionState

logger = logging.getLogger(__name__)

FINISHED_STATUS = "finished"

# --name=value
LONG_FLAG_PATTERN = re.compile(r"^--[\w-]+=(?P<value>.*)$", re.DOTALL)
# -x=value (value may be empty) or -xvalue (single-letter switch)
SHORT_FLAG_PATTERN = re.compile(r"^-[A-Za-z](?:=(?P<attached>.*)|(?P<joined>.+))$", re.DOTALL)


def exit_status(returncode: int) -> str:
    """Describe a return code the way process sentinels do.

    Examples:
        >>> exit_status(0)
        'finished'
        >>> exit_status(2)
        'exited abnormally with code 2'
        >>> exit_status(-15)
        'killed by signal 15'

    """
    if returncode == 0:
        return FINISHED_STATUS
    if returncode < 0:
        return f"killed by signal {-returncode}"
    return f"exited abnormally with code {returncode}"


def normalize_value(raw: Any) -> Any:
    """Strip CLI switch syntax from an argument value.

    "--database=default" -> "default", "-x3" -> "3", "-x=3" -> "3",
    "-x=" -> "".
    Other values, including non-strings, pass through unchanged.
    """
    if not isinstance(raw, str):
        return raw
    match = LONG_FLAG_PATTERN.match(raw)
    if match:
        return match.group("value")
    match = SHORT_FLAG_PATTERN.match(raw)
    if match:
        attached = match.group("attached")
        return attached if attached is not None else match.group("joined")
    return raw


def build_record(command: str, record: Mapping[str, Any] | None = None) -> dict[str, Any]:
    """Normalized callback record for a command."""
    result: dict[str, Any] = {"command": command}
    for key, value in (record or {}).items():
        if key == "command":
            continue
        result[key] = normalize_value(value)
    return result


@dataclass(frozen=True)
class SessionExit:
    """Termination notification for one session.

    Attributes:
        project: Project the session belongs to.
        session: The terminated session.
        status: "finished", "exited abnormally with code N" or "killed by signal N".

    """

    project: ProjectContext
    session: Session
    status: str

    @property
    def success(self) -> bool:
        return self.status.strip().startswith(FINISHED_STATUS)


@dataclass(frozen=True)
class Completion:
    """What a completion handler receives.

    Attributes:
        record: {command, argument values..., spec metadata...}, normalized.
        success: Whether the process exited cleanly.
        session: The finished session (output, project, exit status).

    """

    record: dict[str, Any]
    success: bool
    session: Session

    @property
    def project(self) -> ProjectContext:
        return self.session.project


CompletionHandler = Callable[[Completion], None]


@dataclass(frozen=True)
class _Registration:
    handler: CompletionHandler
    on_failure: bool


class CallbackDispatcher:
    """Maps command names to completion handlers and delivers exits."""

    def __init__(self) -> None:
        self._handlers: dict[str, _Registration] = {}

    def register(
        self,
        command: str,
        handler: CompletionHandler,
        *,
        on_failure: bool = False,
    ) -> None:
        """Register the handler for a command (replacing any previous one).

        Args:
            command: manage.py command name.
            handler: Called with a Completion.
            on_failure: Also call the handler when the session fails.

        """
        if command in self._handlers:
            logger.debug("Replacing completion handler for %s", command)
        self._handlers[command] = _Registration(handler, on_failure)

    def unregister(self, command: str) -> bool:
        return self._handlers.pop(command, None) is not None

    def handler_for(self, command: str) -> CompletionHandler | None:
        registration = self._handlers.get(command)
        return registration.handler if registration else None

    def notify(self, event: SessionExit) -> bool:
        """Deliver a termination event.

        Returns:
            True if a handler was invoked.

        """
        session = event.session
        if session.state is not SessionState.RUNNING:
            logger.debug("Ignoring exit of %s: already %s", session.session_id, session.state)
            return False

        session.finish(event.success, event.status)

        registration = self._handlers.get(session.command)
        if registration is None:
            return False
        if not event.success and not registration.on_failure:
            logger.debug("Skipping handler for failed session %s", session.session_id)
            return False

        completion = Completion(
            record=build_record(session.command, session.record),
            success=event.success,
            session=session,
        )
        try:
            registration.handler(completion)
        except Exception:
            logger.exception("Completion handler for %s failed", session.session_id)
        return True
