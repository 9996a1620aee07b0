"""Tests for the management environment helpers."""

import os
import sys
from pathlib import Path

import pytest

from django_assist.core.environment import (
    PYTHONPATH_ENV_VAR,
    SETTINGS_ENV_VAR,
    build_management_env,
    invoke_blocking,
    resolve_interpreter,
    settings_label,
)
from django_assist.core.exceptions import DiscoveryError


class TestBuildManagementEnv:
    def test_sets_settings_module(self, tmp_path: Path):
        env = build_management_env(tmp_path, "mysite.settings.dev", base_env={})

        assert env[SETTINGS_ENV_VAR] == "mysite.settings.dev"

    def test_pythonpath_prefixes_root_and_parent(self, tmp_path: Path):
        env = build_management_env(tmp_path, "mysite.settings", base_env={})

        assert env[PYTHONPATH_ENV_VAR] == os.pathsep.join([str(tmp_path), str(tmp_path.parent)])

    def test_existing_pythonpath_kept_last(self, tmp_path: Path):
        env = build_management_env(
            tmp_path,
            "mysite.settings",
            base_env={PYTHONPATH_ENV_VAR: "/opt/lib"},
        )

        assert env[PYTHONPATH_ENV_VAR].split(os.pathsep) == [
            str(tmp_path),
            str(tmp_path.parent),
            "/opt/lib",
        ]

    def test_overrides_inherited_settings(self, tmp_path: Path):
        env = build_management_env(
            tmp_path,
            "mysite.settings",
            base_env={SETTINGS_ENV_VAR: "other.settings", "HOME": "/root"},
        )

        assert env[SETTINGS_ENV_VAR] == "mysite.settings"
        assert env["HOME"] == "/root"

    def test_unbuffered_default_not_forced(self, tmp_path: Path):
        assert build_management_env(tmp_path, "s", base_env={})["PYTHONUNBUFFERED"] == "1"
        env = build_management_env(tmp_path, "s", base_env={"PYTHONUNBUFFERED": "0"})
        assert env["PYTHONUNBUFFERED"] == "0"

    def test_base_env_not_mutated(self, tmp_path: Path):
        base = {"HOME": "/root"}
        build_management_env(tmp_path, "mysite.settings", base_env=base)

        assert base == {"HOME": "/root"}


class TestSettingsLabel:
    @pytest.mark.parametrize(
        ("module", "label"),
        [
            ("mysite.settings.dev", "dev"),
            ("mysite.settings.local_settings.ci", "ci"),
            ("mysite.settings", "mysite.settings"),
            ("config", "config"),
        ],
    )
    def test_label(self, module, label):
        assert settings_label(module) == label


class TestResolveInterpreter:
    def test_configured_wins(self, tmp_path: Path):
        assert resolve_interpreter(tmp_path, sys.executable) == sys.executable

    def test_unresolvable_configured_kept(self, tmp_path: Path):
        assert resolve_interpreter(tmp_path, "no-such-python-xyz") == "no-such-python-xyz"

    def test_project_virtualenv(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv("VIRTUAL_ENV", raising=False)
        python = tmp_path / ".venv" / "bin" / "python"
        python.parent.mkdir(parents=True)
        python.write_text("")

        assert resolve_interpreter(tmp_path) == str(python)

    def test_falls_back_to_current_interpreter(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ):
        monkeypatch.delenv("VIRTUAL_ENV", raising=False)

        assert resolve_interpreter(tmp_path) == sys.executable


class TestInvokeBlocking:
    def test_returns_combined_output(self, tmp_path: Path):
        output = invoke_blocking(
            [sys.executable, "-c", "import sys; print('out'); print('err', file=sys.stderr)"],
            cwd=tmp_path,
            env=dict(os.environ),
            description="echo",
        )

        assert "out" in output
        assert "err" in output

    def test_nonzero_exit_raises(self, tmp_path: Path):
        with pytest.raises(DiscoveryError) as exc_info:
            invoke_blocking(
                [sys.executable, "-c", "print('broken'); raise SystemExit(4)"],
                cwd=tmp_path,
                env=dict(os.environ),
                description="probe",
            )

        error = exc_info.value
        assert error.returncode == 4
        assert "broken" in error.output
        assert error.interpreter == sys.executable
        assert error.project_root == str(tmp_path)
        assert "probe failed with exit code 4" in str(error)

    def test_missing_executable_raises(self, tmp_path: Path):
        with pytest.raises(DiscoveryError, match="Failed to run probe"):
            invoke_blocking(
                [str(tmp_path / "missing-python")],
                cwd=tmp_path,
                env={},
                description="probe",
            )
