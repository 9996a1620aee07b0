"""Tracked manage.py subprocess sessions.

Public API:
    Session: one subprocess invocation and its lifecycle
    SessionRegistry: session ids per project, cyclic navigation
    SessionRunner: spawn, kill, kill-all, close
    CallbackDispatcher: completion handlers keyed by command name
"""

from .callbacks import CallbackDispatcher, Completion, SessionExit
from .registry import SessionCursor, SessionRegistry
from .runner import SessionRunner
from .session import OutputBuffer, Session, SessionState

__all__ = [
    "CallbackDispatcher",
    "Completion",
    "OutputBuffer",
    "Session",
    "SessionCursor",
    "SessionExit",
    "SessionRegistry",
    "SessionRunner",
    "SessionState",
]
