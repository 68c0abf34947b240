"""Tests for specbind.config -- XDG paths, atomic writes, precedence."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest

from specbind.config import (
    _atomic_write,
    get_config_dir,
    get_data_dir,
    global_config_path,
    load_global_config,
    load_project_config,
    project_config_path,
    resolve_config,
    save_global_config,
)
from specbind.exceptions import ConfigError
from specbind.models import CompilerConfig, GlobalConfig, OutputConfig


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_json(path: Path, data: Any) -> None:
    """Write a dict as JSON to *path*, creating parent dirs."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")


# ---------------------------------------------------------------------------
# XDG path resolution
# ---------------------------------------------------------------------------


class TestXDGPaths:
    def test_config_dir_xdg_default(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("specbind.config._is_xdg_platform", lambda: True)
        monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        result = get_config_dir()
        assert result == tmp_path / ".config" / "specbind"
        assert result.is_dir()

    def test_config_dir_xdg_custom(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        custom = tmp_path / "custom_config"
        monkeypatch.setattr("specbind.config._is_xdg_platform", lambda: True)
        monkeypatch.setenv("XDG_CONFIG_HOME", str(custom))

        assert get_config_dir() == custom / "specbind"

    def test_data_dir_xdg_custom(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        custom = tmp_path / "custom_data"
        monkeypatch.setattr("specbind.config._is_xdg_platform", lambda: True)
        monkeypatch.setenv("XDG_DATA_HOME", str(custom))

        result = get_data_dir()
        assert result == custom / "specbind"
        assert result.is_dir()

    def test_fallback_dirs(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("specbind.config._is_xdg_platform", lambda: False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        assert get_config_dir() == tmp_path / ".specbind"
        assert get_data_dir() == tmp_path / ".specbind" / "logs"


# ---------------------------------------------------------------------------
# Atomic writes
# ---------------------------------------------------------------------------


class TestAtomicWrite:
    def test_creates_file_with_content(self, tmp_path: Path) -> None:
        target = tmp_path / "a" / "b" / "test.txt"
        _atomic_write(target, "hello world")
        assert target.read_text(encoding="utf-8") == "hello world"

    def test_overwrites_existing_file(self, tmp_path: Path) -> None:
        target = tmp_path / "test.txt"
        target.write_text("old content", encoding="utf-8")
        _atomic_write(target, "new content")
        assert target.read_text(encoding="utf-8") == "new content"
        assert list(tmp_path.iterdir()) == [target]

    def test_no_temp_files_left_on_error(self, tmp_path: Path) -> None:
        target = tmp_path / "test.txt"
        with patch("specbind.config.os.fsync", side_effect=OSError("disk error")):
            with pytest.raises(OSError, match="disk error"):
                _atomic_write(target, "will fail")
        assert list(tmp_path.iterdir()) == []


# ---------------------------------------------------------------------------
# Global and project config
# ---------------------------------------------------------------------------


class TestGlobalConfig:
    def test_defaults_when_missing(self, isolated_config: Path) -> None:
        config = load_global_config()
        assert config == GlobalConfig()
        assert config.compiler.body_slot == "body"

    def test_save_and_load(self, isolated_config: Path) -> None:
        save_global_config(GlobalConfig(compiler=CompilerConfig(body_slot="payload")))
        assert global_config_path() == isolated_config / "config" / "specbind" / "config.json"
        assert load_global_config().compiler.body_slot == "payload"

    def test_invalid_json_raises(self, isolated_config: Path) -> None:
        global_config_path().write_text("{nope", encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid global config"):
            load_global_config()

    def test_unknown_key_raises(self, isolated_config: Path) -> None:
        _write_json(global_config_path(), {"compiler": {"body_sloth": "x"}})
        with pytest.raises(ConfigError):
            load_global_config()

    def test_body_slot_must_be_identifier(self) -> None:
        with pytest.raises(ValueError, match="valid identifier"):
            CompilerConfig(body_slot="not an identifier")


class TestProjectConfig:
    def test_missing_returns_none(self, isolated_config: Path) -> None:
        assert load_project_config() is None

    def test_reads_specbind_json(self, isolated_config: Path) -> None:
        _write_json(isolated_config / "specbind.json", {"compiler": {"fail_on_warnings": True}})
        assert load_project_config() == {"compiler": {"fail_on_warnings": True}}

    def test_env_override_path(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        custom = isolated_config / "ci" / "bind.json"
        _write_json(custom, {"output": {"format": "json"}})
        monkeypatch.setenv("SPECBIND_CONFIG", str(custom))
        assert project_config_path() == custom
        assert load_project_config() == {"output": {"format": "json"}}

    def test_non_object_raises(self, isolated_config: Path) -> None:
        _write_json(isolated_config / "specbind.json", ["compiler"])
        with pytest.raises(ConfigError, match="expected a JSON object"):
            load_project_config()


# ---------------------------------------------------------------------------
# Precedence
# ---------------------------------------------------------------------------


class TestResolveConfig:
    def test_defaults(self, isolated_config: Path) -> None:
        assert resolve_config() == GlobalConfig()

    def test_project_overrides_user(self, isolated_config: Path) -> None:
        save_global_config(
            GlobalConfig(
                compiler=CompilerConfig(body_slot="payload", fail_on_warnings=True),
                output=OutputConfig(format="plain"),
            )
        )
        _write_json(isolated_config / "specbind.json", {"compiler": {"body_slot": "data"}})

        config = resolve_config()
        assert config.compiler.body_slot == "data"
        # Keys the project file does not set keep the user value.
        assert config.compiler.fail_on_warnings is True
        assert config.output.format == "plain"

    def test_env_overrides_project(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        _write_json(isolated_config / "specbind.json", {"compiler": {"body_slot": "data"}})
        monkeypatch.setenv("SPECBIND_BODY_SLOT", "content")
        monkeypatch.setenv("SPECBIND_FAIL_ON_WARNINGS", "yes")

        config = resolve_config()
        assert config.compiler.body_slot == "content"
        assert config.compiler.fail_on_warnings is True

    def test_cli_overrides_env(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SPECBIND_BODY_SLOT", "content")
        monkeypatch.setenv("SPECBIND_FAIL_ON_WARNINGS", "1")

        config = resolve_config(cli_body_slot="payload", cli_fail_on_warnings=False, cli_format="json")
        assert config.compiler.body_slot == "payload"
        assert config.compiler.fail_on_warnings is False
        assert config.output.format == "json"

    def test_bad_env_bool_raises(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SPECBIND_FAIL_ON_WARNINGS", "sometimes")
        with pytest.raises(ConfigError, match="SPECBIND_FAIL_ON_WARNINGS"):
            resolve_config()

    def test_invalid_body_slot_raises(self, isolated_config: Path) -> None:
        with pytest.raises(ConfigError, match="Invalid configuration"):
            resolve_config(cli_body_slot="has space")
