"""Unit tests for the TOML configuration loader."""

import tomllib
from collections.abc import Callable
from pathlib import Path

import pytest

from toolgate.config.loader import (
    deep_merge,
    get_config_dir,
    get_environment,
    load_config,
    load_toml,
)


class TestDeepMerge:
    def test_merge_nested_dicts(self) -> None:
        base = {"a": {"x": 1, "y": 2}, "b": 3}
        override = {"a": {"y": 20, "z": 30}}
        assert deep_merge(base, override) == {"a": {"x": 1, "y": 20, "z": 30}, "b": 3}

    def test_override_replaces_non_dict(self) -> None:
        assert deep_merge({"a": {"x": 1}}, {"a": "replaced"}) == {"a": "replaced"}

    def test_base_unmodified(self) -> None:
        base = {"a": {"x": 1}}
        deep_merge(base, {"a": {"x": 2}})
        assert base == {"a": {"x": 1}}


class TestLoadToml:
    def test_load_valid_toml(self, tmp_path: Path) -> None:
        toml_file = tmp_path / "test.toml"
        toml_file.write_text('[gateway]\nserver_name = "x"\nmax_io_size = 42')

        assert load_toml(toml_file) == {"gateway": {"server_name": "x", "max_io_size": 42}}

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_toml(tmp_path / "nonexistent.toml")

    def test_invalid_toml_raises(self, tmp_path: Path) -> None:
        invalid_file = tmp_path / "invalid.toml"
        invalid_file.write_text("invalid = [unclosed")

        with pytest.raises(tomllib.TOMLDecodeError):
            load_toml(invalid_file)


class TestEnvironment:
    def test_returns_env_var_value(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TOOLGATE_ENV", "production")
        assert get_environment() == "production"

    def test_defaults_to_development(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("TOOLGATE_ENV", raising=False)
        assert get_environment() == "development"

    def test_config_dir_from_env(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TOOLGATE_CONFIG_DIR", str(tmp_path))
        assert get_config_dir() == tmp_path

    def test_missing_config_dir_raises(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("TOOLGATE_CONFIG_DIR", str(tmp_path / "missing"))
        with pytest.raises(FileNotFoundError):
            get_config_dir()


class TestLoadConfig:
    def test_environment_file_merged_over_default(
        self,
        test_config_dir: Path,
        mock_toml_files: Callable[[dict[str, str]], None],
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        mock_toml_files(
            {
                "default.toml": "[api]\nport = 8000\nhost = 'a'\n",
                "staging.toml": "[api]\nport = 9000\n",
            }
        )
        monkeypatch.setenv("TOOLGATE_CONFIG_DIR", str(test_config_dir))
        monkeypatch.setenv("TOOLGATE_ENV", "staging")

        assert load_config() == {"api": {"port": 9000, "host": "a"}}

    def test_missing_environment_file_ignored(
        self,
        test_config_dir: Path,
        mock_toml_files: Callable[[dict[str, str]], None],
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        mock_toml_files({"default.toml": "debug = true\n"})
        monkeypatch.setenv("TOOLGATE_CONFIG_DIR", str(test_config_dir))
        monkeypatch.setenv("TOOLGATE_ENV", "nonexistent")

        assert load_config() == {"debug": True}

    def test_missing_default_raises(
        self, test_config_dir: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("TOOLGATE_CONFIG_DIR", str(test_config_dir))

        with pytest.raises(FileNotFoundError, match="default.toml"):
            load_config()

    def test_local_layer_applied_last(
        self,
        test_config_dir: Path,
        mock_toml_files: Callable[[dict[str, str]], None],
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        mock_toml_files(
            {
                "default.toml": "[api]\nport = 8000\n",
                "staging.toml": "[api]\nport = 9000\n",
                "local.toml": "[api]\nport = 9100\n",
            }
        )
        monkeypatch.setenv("TOOLGATE_CONFIG_DIR", str(test_config_dir))
        monkeypatch.setenv("TOOLGATE_ENV", "staging")

        assert load_config() == {"api": {"port": 9100}}
