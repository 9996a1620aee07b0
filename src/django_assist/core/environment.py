"""Management environment and blocking invocation helpers.

Every call into ``manage.py`` (catalog discovery, metadata snippets and
sessions) runs with the same environment:

- DJANGO_SETTINGS_MODULE set to the project's settings module
- PYTHONPATH prefixed with the project root and its parent
- PYTHONUNBUFFERED defaulted so session output streams line by line
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import sys
from collections.abc import Mapping, Sequence
from pathlib import Path

from django_assist.core.exceptions import DiscoveryError

logger = logging.getLogger(__name__)

SETTINGS_ENV_VAR = "DJANGO_SETTINGS_MODULE"
PYTHONPATH_ENV_VAR = "PYTHONPATH"

SETTINGS_MARKER = "settings."

# Relative interpreter locations probed inside a project, in order
VIRTUALENV_CANDIDATES = (
    Path(".venv") / "bin" / "python",
    Path("venv") / "bin" / "python",
    Path("env") / "bin" / "python",
    Path(".venv") / "Scripts" / "python.exe",
    Path("venv") / "Scripts" / "python.exe",
)


def build_management_env(
    project_root: Path,
    settings_module: str,
    base_env: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Build the environment for running ``manage.py``.

    Args:
        project_root: Project root directory.
        settings_module: Dotted settings module (e.g. "mysite.settings").
        base_env: Environment to extend (defaults to os.environ).

    Returns:
        New environment mapping.

    """
    env = dict(os.environ if base_env is None else base_env)
    env[SETTINGS_ENV_VAR] = settings_module

    paths = [str(project_root), str(project_root.parent)]
    existing = env.get(PYTHONPATH_ENV_VAR)
    if existing:
        paths.append(existing)
    env[PYTHONPATH_ENV_VAR] = os.pathsep.join(paths)

    env.setdefault("PYTHONUNBUFFERED", "1")
    return env


def resolve_interpreter(project_root: Path, configured: str | None = None) -> str:
    """Pick the Python interpreter used to run ``manage.py``.

    Resolution order: explicit configuration, a virtualenv inside the
    project, the active VIRTUAL_ENV, then the current interpreter.

    Args:
        project_root: Project root directory.
        configured: Interpreter name or path from config/CLI.

    Returns:
        Interpreter path (or bare name when it could not be resolved).

    """
    if configured:
        return shutil.which(configured) or configured

    for candidate in VIRTUALENV_CANDIDATES:
        path = project_root / candidate
        if path.exists():
            return str(path)

    virtual_env = os.environ.get("VIRTUAL_ENV")
    if virtual_env:
        path = Path(virtual_env) / "bin" / "python"
        if path.exists():
            return str(path)

    return sys.executable


def settings_label(settings_module: str) -> str:
    """Shorten a settings module for display.

    Returns the part after the last ``settings.`` occurrence, or the whole
    module when there is none ("mysite.settings.dev" -> "dev").
    """
    idx = settings_module.rfind(SETTINGS_MARKER)
    if idx == -1:
        return settings_module
    return settings_module[idx + len(SETTINGS_MARKER) :]


def invoke_blocking(
    argv: Sequence[str],
    *,
    cwd: Path,
    env: Mapping[str, str],
    description: str,
) -> str:
    """Run a command to completion and return its combined output.

    Blocks the caller with no timeout: a hung command hangs discovery.

    Args:
        argv: Command to execute.
        cwd: Working directory.
        env: Environment for the command.
        description: What is being discovered, used in error messages.

    Returns:
        Combined stdout and stderr.

    Raises:
        DiscoveryError: If the command cannot start or exits non-zero.

    """
    logger.debug("Running %s: %s", description, " ".join(argv))
    try:
        result = subprocess.run(
            list(argv),
            cwd=cwd,
            env=dict(env),
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            errors="replace",
            check=False,
        )
    except OSError as e:
        raise DiscoveryError(
            f"Failed to run {description}: {e}",
            argv=argv,
            environment=env,
            project_root=str(cwd),
        ) from e

    if result.returncode != 0:
        logger.warning("%s failed with exit code %d", description, result.returncode)
        raise DiscoveryError(
            f"{description} failed with exit code {result.returncode}",
            output=result.stdout,
            returncode=result.returncode,
            argv=argv,
            environment=env,
            project_root=str(cwd),
        )
    return result.stdout
