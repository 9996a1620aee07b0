"""Declarative quick command specifications.

A CommandSpec describes a manage.py invocation as data: the command, a fixed
switch string and an ordered list of ArgumentSpec. From one spec we get:

1. ``collect_arguments`` - evaluates each argument's default in order,
   prompting when the default is empty, the argument forces a prompt,
   or the caller asks to always prompt. Later defaults can read earlier
   bindings through the ArgumentScope.
2. ``render_arguments`` - the argument string appended to the command.
   Each value is attached to its switch according to the switch style.

Example:
    >>> spec = CommandSpec(
    ...     name="dumpdata-app",
    ...     command="dumpdata",
    ...     arguments=(
    ...         ArgumentSpec("database", "Database: ", default="default", switch="--database="),
    ...         ArgumentSpec("app", "App: "),
    ...     ),
    ... )
    >>> spec.command_line(("default", "blog"))
    'dumpdata --database=default blog'

Specs are validated on construction and raise SpecError when malformed.
"""

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from enum import StrEnum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from django_assist.core.exceptions import SpecError

if TYPE_CHECKING:
    from django_assist.core.metadata import ProjectMetadata
    from django_assist.core.project import ProjectContext
    from django_assist.management.prompts import Prompter

logger = logging.getLogger(__name__)

# Keys the callback record and spec machinery use themselves
RESERVED_NAMES = frozenset({"command", "switches", "project"})


class SwitchStyle(StrEnum):
    """How a value is attached to its switch.

    POSITIONAL: empty switch, the value is emitted alone.
    ATTACHED: switch ends with "=", value appended with no separator.
    SEPARATED: anything else, switch and value separated by a space.
    """

    POSITIONAL = "positional"
    ATTACHED = "attached"
    SEPARATED = "separated"


def classify_switch(template: str) -> SwitchStyle:
    """Classify a switch template.

    Raises:
        SpecError: If the template is non-empty but contains only whitespace.

    """
    if template == "":
        return SwitchStyle.POSITIONAL
    if template.endswith("="):
        return SwitchStyle.ATTACHED
    if template.strip():
        return SwitchStyle.SEPARATED
    raise SpecError(f"Malformed switch template: {template!r}")


@dataclass(frozen=True)
class ArgumentScope:
    """What default expressions and custom readers can see.

    Attributes:
        bound: Values bound so far, by argument name (read-only).
        default: Computed default of the argument being read (readers only).
        project: Project the command will run in, if any.
        metadata: Metadata lookups for that project, if any.

    """

    bound: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    default: str | None = None
    project: "ProjectContext | None" = None
    metadata: "ProjectMetadata | None" = None

    def __getitem__(self, name: str) -> str:
        return self.bound[name]


DefaultExpr = str | Callable[[ArgumentScope], str | None] | None
Reader = Callable[[ArgumentScope, "Prompter"], str]


@dataclass(frozen=True)
class ArgumentSpec:
    """One user-supplied argument of a quick command.

    Attributes:
        name: Identifier, unique within the spec.
        prompt: Prompt text, or a reader called as reader(scope, prompter).
        default: Literal default, callable of the scope, or None.
        switch: Switch template ("" positional, "--x=" attached, "--x" separated).
        force_prompt: Prompt even when a default is available.

    """

    name: str
    prompt: str | Reader
    default: DefaultExpr = None
    switch: str = ""
    force_prompt: bool = False

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise SpecError("Argument name must not be empty")
        if self.name in RESERVED_NAMES:
            raise SpecError(f"Argument name {self.name!r} is reserved")
        if not isinstance(self.prompt, str) and not callable(self.prompt):
            raise SpecError(f"Argument {self.name!r}: prompt must be a string or callable")
        # Validates the template as a side effect
        classify_switch(self.switch)

    @property
    def style(self) -> SwitchStyle:
        return classify_switch(self.switch)

    def evaluate_default(self, scope: ArgumentScope) -> str | None:
        if callable(self.default):
            return self.default(scope)
        return self.default

    def read(self, scope: ArgumentScope, prompter: "Prompter") -> str:
        if callable(self.prompt):
            return self.prompt(scope, prompter)
        return prompter.ask(self.prompt, scope.default)

    def render(self, value: str) -> str:
        """Render this argument's command line fragment ("" when value is empty)."""
        if not value:
            return ""
        style = self.style
        if style is SwitchStyle.POSITIONAL:
            return value
        if style is SwitchStyle.ATTACHED:
            return f"{self.switch}{value}"
        return f"{self.switch.rstrip()} {value}"


@dataclass(frozen=True)
class CommandSpec:
    """A quick command: manage.py command plus declarative arguments.

    Attributes:
        name: Quick command name (e.g. "dumpdata-app").
        command: manage.py subcommand to run.
        switches: Fixed switches placed before the arguments.
        arguments: Ordered argument descriptors.
        metadata: Extra key/value pairs added to the callback record.
        capture_output: Keep the full output instead of a truncated tail.
        suppress_display: Do not surface the session when it starts.
        description: One-line help text.

    """

    name: str
    command: str
    switches: str = ""
    arguments: tuple[ArgumentSpec, ...] = ()
    metadata: Mapping[str, str] = field(default_factory=dict)
    capture_output: bool = False
    suppress_display: bool = False
    description: str = ""

    def __post_init__(self) -> None:
        if not self.name:
            raise SpecError("Quick command name must not be empty")
        if not self.command or not self.command.strip():
            raise SpecError(f"Quick command {self.name!r} has no command")

        # Accept lists for convenience, store tuples
        object.__setattr__(self, "arguments", tuple(self.arguments))
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

        seen: set[str] = set()
        for argument in self.arguments:
            if not isinstance(argument, ArgumentSpec):
                raise SpecError(f"Quick command {self.name!r}: {argument!r} is not an ArgumentSpec")
            if argument.name in seen:
                raise SpecError(f"Quick command {self.name!r}: duplicate argument {argument.name!r}")
            seen.add(argument.name)

        clash = seen & set(self.metadata)
        if clash:
            raise SpecError(f"Quick command {self.name!r}: metadata shadows arguments {sorted(clash)}")
        if "command" in self.metadata:
            raise SpecError(f"Quick command {self.name!r}: metadata key 'command' is reserved")

    @property
    def argument_names(self) -> tuple[str, ...]:
        return tuple(argument.name for argument in self.arguments)

    def collect_arguments(
        self,
        prompter: "Prompter",
        *,
        always_prompt: bool = False,
        project: "ProjectContext | None" = None,
        metadata: "ProjectMetadata | None" = None,
    ) -> tuple[str, ...]:
        """Bind every argument, in order.

        Args:
            prompter: Reads values from the operator.
            always_prompt: Prompt for every argument, defaults pre-filled.
            project: Project passed to default expressions and readers.
            metadata: Metadata lookups passed to default expressions and readers.

        Returns:
            Bound values in descriptor order.

        Raises:
            DiscoveryError: Propagated from defaults or readers that query metadata.

        """
        bound: dict[str, str] = {}
        for argument in self.arguments:
            scope = ArgumentScope(
                bound=MappingProxyType(dict(bound)),
                project=project,
                metadata=metadata,
            )
            default = argument.evaluate_default(scope)
            if not default or argument.force_prompt or always_prompt:
                value = argument.read(replace(scope, default=default), prompter)
            else:
                value = default
            bound[argument.name] = "" if value is None else str(value)
            logger.debug("%s: bound %s=%r", self.name, argument.name, bound[argument.name])
        return tuple(bound[name] for name in self.argument_names)

    def render_arguments(self, values: Sequence[str]) -> str:
        """Build the argument string for bound values.

        Raises:
            SpecError: If the number of values does not match the arguments.

        """
        self._check_arity(values)
        parts = [self.switches.strip()] if self.switches.strip() else []
        for argument, value in zip(self.arguments, values, strict=True):
            fragment = argument.render(value)
            if fragment:
                parts.append(fragment)
        return " ".join(parts)

    def command_line(self, values: Sequence[str]) -> str:
        """Command plus rendered arguments."""
        return f"{self.command} {self.render_arguments(values)}".strip()

    def argument_record(self, values: Sequence[str]) -> dict[str, Any]:
        """Raw callback record: command, every argument value, spec metadata."""
        self._check_arity(values)
        record: dict[str, Any] = {"command": self.command}
        record.update(zip(self.argument_names, values, strict=True))
        record.update(self.metadata)
        return record

    def _check_arity(self, values: Sequence[str]) -> None:
        if len(values) != len(self.arguments):
            raise SpecError(
                f"Quick command {self.name!r} expects {len(self.arguments)} values, got {len(values)}"
            )
