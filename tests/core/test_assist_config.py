"""Tests for configuration loading and hook references."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from django_assist.core.config import (
    CONFIG_FILENAME,
    DEFAULT_OUTPUT_LIMIT,
    AssistConfig,
    load_config,
    resolve_callable,
)
from django_assist.core.exceptions import ConfigError


class TestLoadConfig:
    def test_missing_file_gives_defaults(self, tmp_path: Path):
        config = load_config(tmp_path)

        assert config == AssistConfig()
        assert config.sessions.output_limit == DEFAULT_OUTPUT_LIMIT
        assert config.hooks.grep is None

    def test_explicit_missing_file_raises(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path, tmp_path / "other.yaml")

    def test_full_file(self, tmp_path: Path):
        (tmp_path / CONFIG_FILENAME).write_text(
            "python: /opt/venv/bin/python\n"
            "settings_module: mysite.settings.dev\n"
            "display_name: shop\n"
            "sessions:\n"
            "  output_limit: 50\n"
            "hooks:\n"
            "  grep: os.path:join\n"
        )

        config = load_config(tmp_path)

        assert config.python == "/opt/venv/bin/python"
        assert config.settings_module == "mysite.settings.dev"
        assert config.display_name == "shop"
        assert config.sessions.output_limit == 50
        assert config.hooks.grep == "os.path:join"

    def test_empty_sections(self, tmp_path: Path):
        (tmp_path / CONFIG_FILENAME).write_text("sessions:\nhooks:\n")

        config = load_config(tmp_path)

        assert config.sessions.output_limit == DEFAULT_OUTPUT_LIMIT

    def test_empty_file(self, tmp_path: Path):
        (tmp_path / CONFIG_FILENAME).write_text("")

        assert load_config(tmp_path) == AssistConfig()

    def test_unknown_key_rejected(self, tmp_path: Path):
        (tmp_path / CONFIG_FILENAME).write_text("pyhton: python3\n")

        with pytest.raises(ConfigError, match="Invalid configuration"):
            load_config(tmp_path)

    def test_invalid_output_limit(self, tmp_path: Path):
        (tmp_path / CONFIG_FILENAME).write_text("sessions:\n  output_limit: 0\n")

        with pytest.raises(ConfigError):
            load_config(tmp_path)

    def test_non_mapping_rejected(self, tmp_path: Path):
        (tmp_path / CONFIG_FILENAME).write_text("- a\n- b\n")

        with pytest.raises(ConfigError, match="mapping"):
            load_config(tmp_path)

    def test_malformed_yaml(self, tmp_path: Path):
        (tmp_path / CONFIG_FILENAME).write_text("python: [unclosed\n")

        with pytest.raises(ConfigError, match="Cannot read"):
            load_config(tmp_path)

    def test_config_is_frozen(self):
        config = AssistConfig()

        with pytest.raises(ValidationError):
            config.python = "python3"  # type: ignore[misc]


class TestResolveCallable:
    def test_colon_reference(self):
        import os.path

        assert resolve_callable("os.path:join") is os.path.join

    def test_dotted_reference(self):
        import os.path

        assert resolve_callable("os.path.join") is os.path.join

    def test_missing_module(self):
        with pytest.raises(ConfigError, match="Cannot import"):
            resolve_callable("no_such_module_xyz:hook")

    def test_missing_attribute(self):
        with pytest.raises(ConfigError, match="not a callable"):
            resolve_callable("os.path:no_such_function")

    def test_not_callable(self):
        with pytest.raises(ConfigError, match="not a callable"):
            resolve_callable("os:sep")

    def test_malformed(self):
        with pytest.raises(ConfigError, match="Invalid hook reference"):
            resolve_callable("hook")
