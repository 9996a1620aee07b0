"""Session: one tracked manage.py subprocess.

Encapsulates:
- Identification (session id, owning project, command line)
- The running process and how it is attached (plain, python shell, db shell)
- Output buffer: truncating ring buffer, or capture-full for commands whose
  output is post-processed
- Lifecycle state (RUNNING -> SUCCEEDED | FAILED)
"""

import logging
import re
from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from subprocess import Popen
from typing import Any

from django_assist.core.project import ProjectContext
from django_assist.sessions.attachments import Attachment

logger = logging.getLogger(__name__)


class SessionState(StrEnum):
    """Lifecycle of a session.

    Valid transitions:
        RUNNING -> SUCCEEDED (clean exit)
        RUNNING -> FAILED (non-zero exit or signal)
    """

    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class OutputBuffer:
    """Session output lines.

    With a limit, only the newest ``limit`` lines are kept and older ones are
    dropped as output streams in. Without a limit everything is kept.
    """

    def __init__(self, limit: int | None = None) -> None:
        self.limit = limit
        self._lines: deque[str] = deque(maxlen=limit)
        self.total_lines = 0

    @property
    def capturing(self) -> bool:
        """True when the full output is kept."""
        return self.limit is None

    @property
    def dropped_lines(self) -> int:
        """Lines discarded by truncation."""
        return self.total_lines - len(self._lines)

    def append(self, line: str) -> None:
        self._lines.append(line)
        self.total_lines += 1

    def lines(self, count: int | None = None) -> list[str]:
        """Kept lines, oldest first (the last ``count`` when given)."""
        if count is None:
            return list(self._lines)
        return list(self._lines)[-count:] if count > 0 else []

    def text(self) -> str:
        return "\n".join(self._lines)

    def clear(self) -> None:
        self._lines.clear()

    def __len__(self) -> int:
        return len(self._lines)


def content_after(lines: Iterable[str], anchor: re.Pattern[str] | str) -> list[str]:
    """Lines from the first one matching ``anchor`` onwards.

    Used to skip log noise printed before generated content. When no line
    matches, all lines are returned.
    """
    pattern = re.compile(anchor) if isinstance(anchor, str) else anchor
    collected = list(lines)
    for idx, line in enumerate(collected):
        if pattern.search(line):
            return collected[idx:]
    return collected


@dataclass
class Session:
    """One manage.py invocation and its lifecycle.

    Attributes:
        session_id: Unique id (project, settings label and command line).
        project: Owning project.
        command: manage.py subcommand.
        args: Rendered argument string.
        argv: Full argv actually executed.
        attachment: How the session is presented and whether it takes input.
        output: Output buffer (truncating or capturing).
        record: Raw argument record used as the callback payload.
        process: The subprocess, once spawned.
        state: Lifecycle state.
        exit_status: Termination status string, once terminated.
        started_at: Spawn time.
        finished_at: Termination time.

    """

    session_id: str
    project: ProjectContext
    command: str
    args: str
    argv: list[str]
    attachment: Attachment
    output: OutputBuffer = field(default_factory=OutputBuffer)
    record: dict[str, Any] | None = None
    process: Popen[bytes] | None = None
    state: SessionState = SessionState.RUNNING
    exit_status: str | None = None
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    finished_at: datetime | None = None

    @property
    def command_line(self) -> str:
        """Command as typed, e.g. "dumpdata --indent=4 blog"."""
        return f"{self.command} {self.args}".strip()

    @property
    def success(self) -> bool | None:
        """None while running, then whether the process exited cleanly."""
        if self.state is SessionState.RUNNING:
            return None
        return self.state is SessionState.SUCCEEDED

    @property
    def returncode(self) -> int | None:
        return self.process.returncode if self.process is not None else None

    def is_alive(self) -> bool:
        """Check whether the subprocess is still running."""
        return self.process is not None and self.process.poll() is None

    def add_output(self, line: str) -> None:
        self.output.append(line)

    def finish(self, success: bool, status: str) -> None:
        """Move to a terminal state.

        Raises:
            RuntimeError: If the session already terminated.

        """
        if self.state is not SessionState.RUNNING:
            raise RuntimeError(f"Session {self.session_id} already {self.state}")
        self.state = SessionState.SUCCEEDED if success else SessionState.FAILED
        self.exit_status = status
        self.finished_at = datetime.now(UTC)
        logger.info("Session %s %s (%s)", self.session_id, self.state, status)

    def to_summary(self) -> dict[str, Any]:
        """Summary dict for display."""
        return {
            "session_id": self.session_id,
            "project": self.project.display_name,
            "command_line": self.command_line,
            "state": self.state.value,
            "exit_status": self.exit_status,
            "pid": self.process.pid if self.process is not None else None,
            "interactive": self.attachment.interactive,
            "capturing": self.output.capturing,
            "lines": self.output.total_lines,
            "started_at": self.started_at.isoformat(),
        }
