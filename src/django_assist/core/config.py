"""Configuration models and loader.

Project configuration lives in an optional ``django-assist.yaml`` at the
project root:

    python: .venv/bin/python
    settings_module: mysite.settings.dev
    sessions:
      output_limit: 5000
    hooks:
      show_session: mypackage.ui:show_session
      grep: mypackage.ui:grep

Every key is optional. CLI options override file values.
"""

import importlib
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from django_assist.core.exceptions import ConfigError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "django-assist.yaml"

# Lines kept per truncating session
DEFAULT_OUTPUT_LIMIT = 2000


class SessionConfig(BaseModel):
    """Session runner settings.

    Attributes:
        output_limit: Lines kept for sessions that do not capture full output.

    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    output_limit: int = Field(
        default=DEFAULT_OUTPUT_LIMIT,
        ge=1,
        description="Lines kept per truncating session",
    )


class HooksConfig(BaseModel):
    """Dotted references ("module:attr" or "module.attr") to UI hooks.

    Unset hooks fall back to the defaults in sessions.hooks.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    show_session: str | None = None
    hide_session: str | None = None
    confirm: str | None = None
    grep: str | None = None


class AssistConfig(BaseModel):
    """Top-level configuration for one project.

    Attributes:
        python: Interpreter name or path used for manage.py.
        settings_module: Settings module override.
        manage_py: Path to manage.py, relative to the project root.
        display_name: Project name shown in session ids.
        sessions: Session runner settings.
        hooks: UI hook references.

    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    python: str | None = None
    settings_module: str | None = None
    manage_py: str | None = None
    display_name: str | None = None
    sessions: SessionConfig = Field(default_factory=SessionConfig)
    hooks: HooksConfig = Field(default_factory=HooksConfig)

    @field_validator("sessions", "hooks", mode="before")
    @classmethod
    def coerce_none_to_empty(cls, v: Any) -> Any:
        """YAML parses empty sections as None."""
        if v is None:
            return {}
        return v


def load_config(project_root: Path, path: Path | None = None) -> AssistConfig:
    """Load configuration for a project.

    Args:
        project_root: Project root directory.
        path: Explicit config file (defaults to <root>/django-assist.yaml).

    Returns:
        Parsed configuration (defaults when no file exists).

    Raises:
        ConfigError: If the file cannot be read, parsed or validated.

    """
    config_path = path or project_root / CONFIG_FILENAME
    if not config_path.exists():
        if path is not None:
            raise ConfigError(f"Config file not found: {config_path}")
        logger.debug("No config file at %s, using defaults", config_path)
        return AssistConfig()

    try:
        with config_path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Cannot read {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"{config_path}: top level must be a mapping")

    try:
        config = AssistConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {config_path}:\n{e}") from e

    logger.info("Loaded config from %s", config_path)
    return config


def resolve_callable(reference: str) -> Callable[..., Any]:
    """Import a callable from a dotted reference.

    Accepts "package.module:attr" or "package.module.attr".

    Raises:
        ConfigError: If the module or attribute cannot be found, or is not callable.

    """
    if ":" in reference:
        module_name, _, attr = reference.partition(":")
    else:
        module_name, _, attr = reference.rpartition(".")
    if not module_name or not attr:
        raise ConfigError(f"Invalid hook reference: {reference!r}")

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigError(f"Cannot import {module_name} for hook {reference!r}: {e}") from e

    target = getattr(module, attr, None)
    if target is None or not callable(target):
        raise ConfigError(f"Hook {reference!r} is not a callable")
    return target
