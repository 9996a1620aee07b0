"""Management command catalog.

Discovers the subcommands a project's manage.py offers, and the flags each
one accepts, by running ``manage.py help`` and parsing its fixed markers.

Expected help layout:

    Type 'manage.py help <subcommand>' for help on a specific subcommand.

    Available subcommands:

    [auth]
        changepassword
        createsuperuser

    [django]
        check
        ...

Both lists are cached in the ProjectContext. A forced refresh of the
command list also drops every cached argument list.
"""

import logging
import re

from django_assist.core.environment import invoke_blocking
from django_assist.core.exceptions import UnavailableCommandError
from django_assist.core.project import ProjectContext

logger = logging.getLogger(__name__)

COMMANDS_ANCHOR = "Available subcommands:"
USAGE_ANCHOR = "Usage:"

# Indented single token: one command name per line
COMMAND_LINE_PATTERN = re.compile(r"^\s+([\w][\w.-]*)\s*$")

# "Options:", "options:" (argparse >= 3.10) or "optional arguments:"
OPTIONS_ANCHOR_PATTERN = re.compile(r"^\s*(options|optional arguments):", re.IGNORECASE)

FLAG_PATTERN = re.compile(r"--[A-Za-z0-9][\w-]*=?")


def parse_command_list(output: str) -> list[str]:
    """Extract command names from ``manage.py help`` output.

    Args:
        output: Full help output.

    Returns:
        Command names in emitted order (empty if the anchor is missing).

    """
    commands: list[str] = []
    in_commands = False
    for line in output.splitlines():
        if not in_commands:
            if line.strip().startswith(COMMANDS_ANCHOR):
                in_commands = True
            continue
        if line.strip().startswith(USAGE_ANCHOR):
            break
        match = COMMAND_LINE_PATTERN.match(line)
        if match:
            commands.append(match.group(1))
    return commands


def parse_command_args(output: str) -> list[str]:
    """Extract long flags following the options anchor of a command's help.

    Args:
        output: Help output for one command.

    Returns:
        Unique flags ("--name" or "--name="), sorted lexicographically.

    """
    lines = output.splitlines()
    for idx, line in enumerate(lines):
        if OPTIONS_ANCHOR_PATTERN.match(line):
            tail = "\n".join(lines[idx:])
            return sorted(set(FLAG_PATTERN.findall(tail)))
    return []


def list_commands(context: ProjectContext, force: bool = False) -> list[str]:
    """List management commands available for a project.

    Args:
        context: Project to inspect.
        force: Re-run discovery even if a list is cached.

    Returns:
        Command names in the order manage.py prints them.

    Raises:
        DiscoveryError: If ``manage.py help`` exits non-zero.

    """
    def load() -> list[str]:
        output = invoke_blocking(
            context.management_argv("help"),
            cwd=context.project_root,
            env=context.management_env(),
            description="command discovery",
        )
        commands = parse_command_list(output)
        logger.info("Discovered %d commands for %s", len(commands), context.display_name)
        return commands

    commands = context.cache.get(("commands",), load, force=force)
    if force:
        dropped = context.cache.invalidate("command_args")
        if dropped:
            logger.debug("Dropped %d cached argument lists for %s", dropped, context.display_name)
    return list(commands)


def list_command_args(context: ProjectContext, command: str, force: bool = False) -> list[str]:
    """List the long flags a management command accepts.

    Args:
        context: Project to inspect.
        command: Management command name.
        force: Re-run discovery even if a list is cached.

    Returns:
        Sorted flags.

    Raises:
        DiscoveryError: If ``manage.py help <command>`` exits non-zero.

    """

    def load() -> list[str]:
        output = invoke_blocking(
            context.management_argv("help", command),
            cwd=context.project_root,
            env=context.management_env(),
            description=f"argument discovery for {command}",
        )
        return parse_command_args(output)

    return list(context.cache.get(("command_args", command), load, force=force))


def ensure_available(context: ProjectContext, command: str) -> None:
    """Check a command against the (possibly cached) catalog.

    Raises:
        UnavailableCommandError: If the command is not in the catalog.
        DiscoveryError: If the catalog cannot be discovered.

    """
    if command not in list_commands(context):
        raise UnavailableCommandError(command, context.display_name)
