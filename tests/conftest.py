"""Pytest configuration and fixtures for django-assist tests.

Most tests run against a fake ``manage.py`` written into tmp_path. It is a
plain Python script (no Django needed) that mimics the help layout, a few
commands and their exit codes.
"""

import sys
from collections.abc import Sequence
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from django_assist.core.project import ProjectContext
from django_assist.sessions.hooks import SessionHooks, grep_project

FAKE_MANAGE_PY = '''\
#!/usr/bin/env python
import os
import sys
import time

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "mysite.settings")

HELP = """
Type 'manage.py help <subcommand>' for help on a specific subcommand.

Available subcommands:

[auth]
    createsuperuser

[django]
    check
    dumpdata
    echo
    fail
    loaddata
    migrate
    startapp

[staticfiles]
    collectstatic
    runserver
    shell
    sleep
"""

COMMAND_HELP = """
usage: manage.py {name} [-h] [--database DATABASE] [--indent INDENT]

Fake command.

options:
  -h, --help            show this help message and exit
  --database DATABASE   Nominates a specific database.
  --indent INDENT       Specifies the indent level.
  --format FORMAT       Specifies the output serialization format.
  --verbosity {{0,1,2,3}}
"""

FIXTURE = '[{"model": "blog.post", "pk": 1, "fields": {"title": "Hello"}}]'


def main(argv):
    if not argv or argv[0] == "help":
        if len(argv) > 1:
            if argv[1] == "unknown":
                print("Unknown command: 'unknown'")
                return 1
            print(COMMAND_HELP.format(name=argv[1]))
            return 0
        print(HELP)
        return 0

    command, args = argv[0], argv[1:]
    if command == "echo":
        print("settings: " + os.environ.get("DJANGO_SETTINGS_MODULE", ""))
        for arg in args:
            print(arg)
        return 0
    if command == "fail":
        print("CommandError: boom")
        return 3
    if command == "dumpdata":
        print("System check identified some issues:")
        print("args: " + " ".join(args))
        print(FIXTURE)
        return 0
    if command == "startapp":
        print("created " + " ".join(args))
        return 0
    if command == "sleep":
        print("sleeping", flush=True)
        time.sleep(30)
        return 0
    if command == "shell":
        for line in sys.stdin:
            line = line.rstrip("\\n")
            if line == "exit()":
                break
            print(">>> " + line, flush=True)
        return 0
    print("ran " + command)
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
'''

BROKEN_MANAGE_PY = """\
import sys

print("Traceback (most recent call last):")
print("ModuleNotFoundError: No module named 'mysite'")
sys.exit(1)
"""


class ScriptedPrompter:
    """Prompter answering from a list, recording every prompt.

    When answers run out the default is returned.
    """

    def __init__(self, answers: Sequence[str] = (), confirm_answer: bool = True) -> None:
        self.answers = list(answers)
        self.confirm_answer = confirm_answer
        self.prompts: list[str] = []
        self.defaults: list[str | None] = []
        self.choices: list[list[str]] = []

    def _next(self, default: str | None) -> str:
        if self.answers:
            return self.answers.pop(0)
        return default or ""

    def ask(self, prompt: str, default: str | None = None) -> str:
        self.prompts.append(prompt)
        self.defaults.append(default)
        return self._next(default)

    def choose(self, prompt: str, choices: Sequence[str], default: str | None = None) -> str:
        self.prompts.append(prompt)
        self.defaults.append(default)
        self.choices.append(list(choices))
        return self._next(default)

    def confirm(self, prompt: str, default: bool = False) -> bool:
        self.prompts.append(prompt)
        return self.confirm_answer


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """Project directory with the fake manage.py."""
    root = tmp_path / "mysite"
    root.mkdir()
    (root / "manage.py").write_text(FAKE_MANAGE_PY, encoding="utf-8")
    return root


@pytest.fixture
def broken_project_dir(tmp_path: Path) -> Path:
    """Project whose manage.py fails on every invocation."""
    root = tmp_path / "broken"
    root.mkdir()
    (root / "manage.py").write_text(BROKEN_MANAGE_PY, encoding="utf-8")
    return root


@pytest.fixture
def context(project_dir: Path) -> ProjectContext:
    return ProjectContext.create(project_dir, interpreter=sys.executable)


@pytest.fixture
def prompter() -> ScriptedPrompter:
    return ScriptedPrompter()


@pytest.fixture
def make_prompter() -> type[ScriptedPrompter]:
    """Factory for prompters with scripted answers."""
    return ScriptedPrompter


@pytest.fixture
def hooks() -> SessionHooks:
    """Hooks that never touch the terminal; confirm always says yes."""
    return SessionHooks(
        show=MagicMock(),
        hide=MagicMock(),
        confirm=MagicMock(return_value=True),
        grep=grep_project,
    )
