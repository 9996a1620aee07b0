"""Exception hierarchy for django-assist.

All errors raised by the package derive from DjangoAssistError so callers
can catch the whole family in one place.

Errors marked ``expected = True`` are user-recoverable input validation
outcomes. Logging surfaces drop their backtraces (see
``cli_utils.ExpectedErrorFilter``).
"""

from collections.abc import Mapping, Sequence
from typing import ClassVar

__all__ = [
    "ConfigError",
    "DiscoveryError",
    "DjangoAssistError",
    "SpecError",
    "UnavailableCommandError",
]

# Environment keys shown in discovery diagnostics
DIAGNOSTIC_ENV_KEYS = ("DJANGO_SETTINGS_MODULE", "PYTHONPATH", "VIRTUAL_ENV")


class DjangoAssistError(Exception):
    """Base class for all django-assist errors."""

    expected: ClassVar[bool] = False


class ConfigError(DjangoAssistError):
    """Configuration file is unreadable or invalid."""


class DiscoveryError(DjangoAssistError):
    """External help/info invocation exited non-zero.

    Attributes:
        output: Full captured stdout+stderr of the failed invocation.
        returncode: Exit code of the invocation (None if it never started).
        argv: Command that was executed.
        environment: Effective environment the command ran with.
        project_root: Project root the command ran in.

    """

    def __init__(
        self,
        message: str,
        *,
        output: str = "",
        returncode: int | None = None,
        argv: Sequence[str] = (),
        environment: Mapping[str, str] | None = None,
        project_root: str = "",
    ) -> None:
        super().__init__(message)
        self.output = output
        self.returncode = returncode
        self.argv = list(argv)
        self.environment = dict(environment or {})
        self.project_root = project_root

    @property
    def interpreter(self) -> str:
        """Interpreter path the failed command ran with."""
        return self.argv[0] if self.argv else ""

    def format_diagnostic(self) -> str:
        """Render a multi-line diagnostic for the operator.

        Returns:
            Message, effective configuration and the captured output.

        """
        lines = [str(self)]
        lines.append(f"  interpreter: {self.interpreter or '<unknown>'}")
        lines.append(f"  project root: {self.project_root or '<unknown>'}")
        for key in DIAGNOSTIC_ENV_KEYS:
            if key in self.environment:
                lines.append(f"  {key}={self.environment[key]}")
        if self.returncode is not None:
            lines.append(f"  exit code: {self.returncode}")
        if self.output:
            lines.append("  output:")
            lines.extend(f"    {line}" for line in self.output.rstrip().splitlines())
        return "\n".join(lines)


class UnavailableCommandError(DjangoAssistError):
    """Requested management command is not in the project's catalog."""

    expected = True

    def __init__(self, command: str, project_name: str = "") -> None:
        where = f" for {project_name}" if project_name else ""
        super().__init__(f"Command not available{where}: {command}")
        self.command = command
        self.project_name = project_name


class SpecError(DjangoAssistError):
    """Malformed quick command specification."""
