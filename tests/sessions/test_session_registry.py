"""Tests for SessionRegistry and SessionCursor."""

import sys
from pathlib import Path

import pytest

from django_assist.core.project import ProjectContext
from django_assist.sessions.registry import SessionCursor, SessionRegistry


@pytest.fixture
def other_context(project_dir: Path) -> ProjectContext:
    return ProjectContext.create(project_dir, display_name="other", interpreter=sys.executable)


class TestSessionRegistry:
    def test_insertion_order(self, context: ProjectContext):
        registry = SessionRegistry()
        registry.add(context, "a")
        registry.add(context, "b")

        assert registry.list(context) == ["a", "b"]
        assert len(registry) == 2
        assert "a" in registry

    def test_add_twice_is_noop(self, context: ProjectContext):
        registry = SessionRegistry()
        registry.add(context, "a")
        registry.add(context, "a")

        assert registry.list(context) == ["a"]

    def test_id_belongs_to_one_project(self, context, other_context):
        registry = SessionRegistry()
        registry.add(context, "a")
        registry.add(other_context, "a")

        assert registry.list(context) == []
        assert registry.list(other_context) == ["a"]
        assert registry.owner("a") == other_context

    def test_remove(self, context, other_context):
        registry = SessionRegistry()
        registry.add(context, "a")

        assert registry.remove(other_context, "a") is False
        assert registry.remove(context, "a") is True
        assert registry.remove(context, "a") is False
        assert "a" not in registry

    def test_discard(self, context):
        registry = SessionRegistry()
        registry.add(context, "a")

        assert registry.discard("a") == context
        assert registry.discard("a") is None

    def test_clear(self, context, other_context):
        registry = SessionRegistry()
        registry.add(context, "a")
        registry.add(context, "b")
        registry.add(other_context, "c")

        assert registry.clear(context) == ["a", "b"]
        assert registry.list(context) == []
        assert registry.contexts() == [other_context]

    def test_list_returns_copy(self, context):
        registry = SessionRegistry()
        registry.add(context, "a")
        registry.list(context).append("b")

        assert registry.list(context) == ["a"]

    def test_cycle_wraps(self, context):
        registry = SessionRegistry()
        for session_id in ("a", "b", "c"):
            registry.add(context, session_id)

        assert registry.cycle(context, 2, 1) == (0, "a")
        assert registry.cycle(context, 0, -1) == (2, "c")
        assert registry.cycle(context, 1, 0) == (1, "b")

    def test_cycle_empty(self, context):
        assert SessionRegistry().cycle(context, 0, 1) is None


class TestSessionCursor:
    def test_next_and_previous(self, context):
        registry = SessionRegistry()
        for session_id in ("a", "b", "c"):
            registry.add(context, session_id)
        cursor = SessionCursor(registry, context)

        assert cursor.current() == "a"
        assert cursor.next() == "b"
        assert cursor.next() == "c"
        assert cursor.next() == "a"
        assert cursor.previous() == "c"

    def test_cursor_clamped_after_removal(self, context):
        registry = SessionRegistry()
        for session_id in ("a", "b", "c"):
            registry.add(context, session_id)
        cursor = SessionCursor(registry, context)
        cursor.move(2)
        registry.remove(context, "c")

        assert cursor.current() == "a"

    def test_empty(self, context):
        cursor = SessionCursor(SessionRegistry(), context)

        assert cursor.next() is None
        assert cursor.position == 0

    def test_cursors_are_independent(self, context):
        registry = SessionRegistry()
        registry.add(context, "a")
        registry.add(context, "b")
        first = SessionCursor(registry, context)
        second = SessionCursor(registry, context)

        first.next()

        assert first.current() == "b"
        assert second.current() == "a"
