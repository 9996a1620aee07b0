"""Interactive prompting used while collecting quick command arguments."""

from collections.abc import Sequence
from typing import Protocol

from rich.console import Console
from rich.prompt import Confirm, Prompt


class Prompter(Protocol):
    """Reads values from the operator."""

    def ask(self, prompt: str, default: str | None = None) -> str:
        """Read a free-form value."""
        ...

    def choose(self, prompt: str, choices: Sequence[str], default: str | None = None) -> str:
        """Read one value out of a fixed set."""
        ...

    def confirm(self, prompt: str, default: bool = False) -> bool:
        """Ask a yes/no question."""
        ...


class ConsolePrompter:
    """Prompter backed by rich prompts on a console."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def ask(self, prompt: str, default: str | None = None) -> str:
        if default:
            return Prompt.ask(prompt.rstrip(": "), console=self.console, default=default)
        return Prompt.ask(prompt.rstrip(": "), console=self.console, default="")

    def choose(self, prompt: str, choices: Sequence[str], default: str | None = None) -> str:
        return Prompt.ask(
            prompt.rstrip(": "),
            console=self.console,
            choices=list(choices),
            default=default if default in choices else None,
        )

    def confirm(self, prompt: str, default: bool = False) -> bool:
        return Confirm.ask(prompt, console=self.console, default=default)
