"""Session registry: live session ids per project.

Each project maps to an insertion-ordered list of session ids, newest last.
That order is also the cycling order. A session id belongs to at most one
project at a time.

Cursor positions are not stored here. SessionCursor wraps one position;
the session runner keeps one per project.
"""

from __future__ import annotations

import logging

from django_assist.core.project import ProjectContext

logger = logging.getLogger(__name__)


class SessionRegistry:
    """Ordered session ids per project context."""

    def __init__(self) -> None:
        self._sessions: dict[ProjectContext, list[str]] = {}

    def add(self, context: ProjectContext, session_id: str) -> None:
        """Append a session id to a project (moving it from another one)."""
        owner = self.owner(session_id)
        if owner == context:
            return
        if owner is not None:
            logger.warning(
                "Session %s moved from %s to %s",
                session_id,
                owner.display_name,
                context.display_name,
            )
            self.remove(owner, session_id)
        self._sessions.setdefault(context, []).append(session_id)

    def remove(self, context: ProjectContext, session_id: str) -> bool:
        """Remove a session id from a project.

        Returns:
            True if the id was registered under that project.

        """
        sessions = self._sessions.get(context)
        if not sessions or session_id not in sessions:
            return False
        sessions.remove(session_id)
        return True

    def discard(self, session_id: str) -> ProjectContext | None:
        """Remove a session id from whichever project holds it.

        Returns:
            The project it was removed from, or None.

        """
        owner = self.owner(session_id)
        if owner is not None:
            self.remove(owner, session_id)
        return owner

    def clear(self, context: ProjectContext) -> list[str]:
        """Forget every session of a project.

        Returns:
            The ids that were registered.

        """
        return self._sessions.pop(context, [])

    def list(self, context: ProjectContext) -> list[str]:
        """Session ids of a project, oldest first."""
        return list(self._sessions.get(context, []))

    def owner(self, session_id: str) -> ProjectContext | None:
        for context, sessions in self._sessions.items():
            if session_id in sessions:
                return context
        return None

    def contexts(self) -> list[ProjectContext]:
        """Projects with at least one registered session."""
        return [context for context, sessions in self._sessions.items() if sessions]

    def cycle(
        self,
        context: ProjectContext,
        cursor: int,
        delta: int,
    ) -> tuple[int, str] | None:
        """Move a cursor through a project's sessions, wrapping around.

        Args:
            context: Project whose sessions are cycled.
            cursor: Current position.
            delta: Steps to move (negative moves backwards).

        Returns:
            (new position, session id), or None when the project has no sessions.

        """
        sessions = self._sessions.get(context)
        if not sessions:
            return None
        position = (cursor + delta) % len(sessions)
        return position, sessions[position]

    def __contains__(self, session_id: object) -> bool:
        return isinstance(session_id, str) and self.owner(session_id) is not None

    def __len__(self) -> int:
        return sum(len(sessions) for sessions in self._sessions.values())


class SessionCursor:
    """A position in one project's session list."""

    def __init__(self, registry: SessionRegistry, context: ProjectContext) -> None:
        self.registry = registry
        self.context = context
        self.position = 0

    def move(self, delta: int) -> str | None:
        """Move by delta and return the session id there (None if empty)."""
        result = self.registry.cycle(self.context, self.position, delta)
        if result is None:
            self.position = 0
            return None
        self.position, session_id = result
        return session_id

    def next(self) -> str | None:
        return self.move(1)

    def previous(self) -> str | None:
        return self.move(-1)

    def current(self) -> str | None:
        """Session id under the cursor without moving."""
        return self.move(0)
