"""ProjectContext: one opened Django project.

Encapsulates:
- Project identification (root path, settings module, display name)
- Location of manage.py and the interpreter that runs it
- Per-project cache of discovery results (catalog, settings, app paths)

The identity fields are frozen once a project is opened. The cache is
owned by the context and discarded with it; nothing is cached process-wide.
"""

import logging
import re
from collections.abc import Callable, Hashable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, TypeVar

from django_assist.core.environment import (
    build_management_env,
    resolve_interpreter,
    settings_label,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

MANAGE_PY = "manage.py"

# os.environ.setdefault("DJANGO_SETTINGS_MODULE", "mysite.settings")
SETTINGS_DEFAULT_PATTERN = re.compile(
    r"""DJANGO_SETTINGS_MODULE["']\s*,\s*["']([\w.]+)["']"""
)


class ContextCache:
    """Keyed memo of discovery results for one project.

    Keys are tuples whose first element is a namespace ("commands",
    "command_args", "setting", "app_path"). A refresh replaces a value
    atomically: if the loader raises, the previous value stays in place.
    """

    def __init__(self) -> None:
        self._values: dict[tuple[Hashable, ...], Any] = {}

    def get(
        self,
        key: tuple[Hashable, ...],
        loader: Callable[[], T],
        force: bool = False,
    ) -> T:
        """Return the cached value for key, loading it when missing or forced.

        Args:
            key: Cache key, namespace first.
            loader: Produces the value; its exceptions propagate.
            force: Reload even if a value is cached.

        Returns:
            The cached or freshly loaded value.

        """
        if force or key not in self._values:
            value = loader()
            self._values[key] = value
            logger.debug("Cached %s", key)
        return self._values[key]

    def contains(self, key: tuple[Hashable, ...]) -> bool:
        """Check whether key currently holds a value."""
        return key in self._values

    def invalidate(self, namespace: str | None = None) -> int:
        """Drop cached values.

        Args:
            namespace: Only drop keys in this namespace (None drops everything).

        Returns:
            Number of entries removed.

        """
        if namespace is None:
            count = len(self._values)
            self._values.clear()
            return count

        stale = [key for key in self._values if key and key[0] == namespace]
        for key in stale:
            del self._values[key]
        return len(stale)


@dataclass(frozen=True)
class ProjectContext:
    """Identity of one opened project.

    Attributes:
        project_root: Absolute canonical path to the project directory.
        settings_module: Dotted settings module for DJANGO_SETTINGS_MODULE.
        display_name: Short name used in session ids.
        manage_py: Absolute path to the management entry point.
        interpreter: Python interpreter that runs manage.py.
        cache: Discovery cache owned by this context.

    """

    project_root: Path
    settings_module: str
    display_name: str
    manage_py: Path
    interpreter: str
    cache: ContextCache = field(default_factory=ContextCache, compare=False, repr=False)

    @classmethod
    def create(
        cls,
        project_root: Path,
        *,
        settings_module: str | None = None,
        display_name: str | None = None,
        manage_py: Path | None = None,
        interpreter: str | None = None,
    ) -> "ProjectContext":
        """Open a project directory.

        Args:
            project_root: Project directory.
            settings_module: Settings module (default: read from manage.py).
            display_name: Display name (default: directory basename).
            manage_py: Entry point (default: <root>/manage.py).
            interpreter: Interpreter name or path (default: auto-detected).

        Returns:
            New ProjectContext.

        Raises:
            ValueError: If project_root or manage.py does not exist.

        """
        if not project_root.exists():
            raise ValueError(f"Project path does not exist: {project_root}")

        root = project_root.resolve()
        entry = manage_py if manage_py is not None else root / MANAGE_PY
        if not entry.is_absolute():
            entry = root / entry
        if not entry.exists():
            raise ValueError(f"Management entry point does not exist: {entry}")

        settings = settings_module or detect_settings_module(entry) or f"{root.name}.settings"

        context = cls(
            project_root=root,
            settings_module=settings,
            display_name=display_name or root.name,
            manage_py=entry,
            interpreter=resolve_interpreter(root, interpreter),
        )
        logger.info(
            "Opened project %s at %s (settings: %s)",
            context.display_name,
            context.project_root,
            context.settings_module,
        )
        return context

    @property
    def settings_label(self) -> str:
        """Shortened settings module used in session ids."""
        return settings_label(self.settings_module)

    def management_env(self) -> dict[str, str]:
        """Environment for running manage.py for this project."""
        return build_management_env(self.project_root, self.settings_module)

    def management_argv(self, *args: str) -> list[str]:
        """Full argv for ``<python> manage.py <args>``."""
        return [self.interpreter, str(self.manage_py), *args]

    def invalidate(self) -> None:
        """Drop every cached discovery result for this project."""
        count = self.cache.invalidate()
        logger.info("Invalidated %d cached entries for %s", count, self.display_name)


def detect_settings_module(manage_py: Path) -> str | None:
    """Read the default settings module from a manage.py file.

    Returns:
        The module named in DJANGO_SETTINGS_MODULE setdefault, or None.

    """
    try:
        source = manage_py.read_text(encoding="utf-8")
    except OSError:
        logger.warning("Cannot read %s", manage_py)
        return None
    match = SETTINGS_DEFAULT_PATTERN.search(source)
    return match.group(1) if match else None
