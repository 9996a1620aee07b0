"""Project metadata lookups (settings values, app paths).

Values are read by running a short snippet with the project's interpreter
and management environment, then cached in the ProjectContext. Failures
surface as DiscoveryError, unchanged, to whoever asked.
"""

import json
import logging
from pathlib import Path
from typing import Any

from django_assist.core.environment import invoke_blocking
from django_assist.core.exceptions import DiscoveryError
from django_assist.core.project import ProjectContext

logger = logging.getLogger(__name__)

# Prefix marking the JSON payload line in snippet output
RESULT_MARKER = "DJANGO_ASSIST_RESULT:"

SETTING_SNIPPET = """\
import json, sys
import django
from django.conf import settings
django.setup()
value = getattr(settings, sys.argv[1])
print("{marker}" + json.dumps(value, default=str))
""".format(marker=RESULT_MARKER)

APP_PATH_SNIPPET = """\
import json, sys
import django
from django.apps import apps
django.setup()
label = sys.argv[1].rsplit(".", 1)[-1]
print("{marker}" + json.dumps(apps.get_app_config(label).path))
""".format(marker=RESULT_MARKER)


class ProjectMetadata:
    """Settings and app-path lookups for one project, cached in its context."""

    def __init__(self, context: ProjectContext) -> None:
        self.context = context

    def get_setting(self, name: str, force: bool = False) -> Any:
        """Read a Django setting.

        Args:
            name: Setting name (e.g. "INSTALLED_APPS").
            force: Bypass the cache.

        Returns:
            The JSON-decoded setting value.

        Raises:
            DiscoveryError: If the lookup fails.

        """
        return self.context.cache.get(
            ("setting", name),
            lambda: self._run_snippet(SETTING_SNIPPET, name, f"setting {name}"),
            force=force,
        )

    def get_app_path(self, app: str, force: bool = False) -> Path:
        """Resolve the filesystem path of an installed app.

        Args:
            app: App label or dotted module name.
            force: Bypass the cache.

        Returns:
            App directory.

        Raises:
            DiscoveryError: If the lookup fails.

        """
        raw = self.context.cache.get(
            ("app_path", app),
            lambda: self._run_snippet(APP_PATH_SNIPPET, app, f"path of app {app}"),
            force=force,
        )
        return Path(raw)

    def installed_apps(self, force: bool = False) -> list[str]:
        """App labels from INSTALLED_APPS, in settings order."""
        apps = self.get_setting("INSTALLED_APPS", force=force) or []
        return [str(app).rsplit(".", 1)[-1] for app in apps]

    def database_engine(self, alias: str = "default") -> str | None:
        """ENGINE of a configured database, or None if not configured."""
        databases = self.get_setting("DATABASES") or {}
        database = databases.get(alias) if isinstance(databases, dict) else None
        if not isinstance(database, dict):
            return None
        return database.get("ENGINE")

    def invalidate(self) -> None:
        """Drop cached settings and app paths."""
        self.context.cache.invalidate("setting")
        self.context.cache.invalidate("app_path")

    def _run_snippet(self, snippet: str, argument: str, description: str) -> Any:
        argv = [self.context.interpreter, "-c", snippet, argument]
        env = self.context.management_env()
        output = invoke_blocking(
            argv,
            cwd=self.context.project_root,
            env=env,
            description=description,
        )
        for line in reversed(output.splitlines()):
            if line.startswith(RESULT_MARKER):
                try:
                    return json.loads(line[len(RESULT_MARKER) :])
                except ValueError:
                    break

        raise DiscoveryError(
            f"{description}: no result in output",
            output=output,
            returncode=0,
            argv=argv,
            environment=env,
            project_root=str(self.context.project_root),
        )
