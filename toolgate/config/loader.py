"""Layered TOML loading.

Layers, later wins: ``default.toml`` (required), ``{TOOLGATE_ENV}.toml``,
then ``local.toml`` for untracked developer overrides. Environment variables
are applied on top by `Settings`.
"""

import os
import tomllib
from pathlib import Path
from typing import Any

CONFIG_DIR_ENV = "TOOLGATE_CONFIG_DIR"
ENVIRONMENT_ENV = "TOOLGATE_ENV"
DEFAULT_ENVIRONMENT = "development"
LOCAL_LAYER = "local.toml"

# How many parent directories to search for a config/ folder from the cwd.
SEARCH_DEPTH = 5


def get_config_dir() -> Path:
    explicit = os.environ.get(CONFIG_DIR_ENV)
    if explicit:
        path = Path(explicit)
        if not path.is_dir():
            raise FileNotFoundError(f"{CONFIG_DIR_ENV} points to a missing directory: {explicit}")
        return path

    here = Path.cwd()
    for candidate in [here, *here.parents][:SEARCH_DEPTH]:
        if (candidate / "config").is_dir():
            return candidate / "config"
    return Path("config")


def get_environment() -> str:
    return os.environ.get(ENVIRONMENT_ENV, DEFAULT_ENVIRONMENT)


def load_toml(file_path: Path) -> dict[str, Any]:
    """Parse one TOML file; missing files and syntax errors propagate."""
    if not file_path.is_file():
        raise FileNotFoundError(f"Configuration file not found: {file_path}")
    with file_path.open("rb") as f:
        return tomllib.load(f)


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict with tables merged recursively; scalars and arrays replace."""
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def config_layers(config_dir: Path, environment: str) -> list[Path]:
    """Existing override layers above default.toml, in merge order."""
    names = [f"{environment}.toml", LOCAL_LAYER]
    return [config_dir / name for name in names if (config_dir / name).is_file()]


def load_config() -> dict[str, Any]:
    config_dir = get_config_dir()
    default_path = config_dir / "default.toml"
    if not default_path.is_file():
        raise FileNotFoundError(
            f"Missing {default_path}; create config/default.toml or set {CONFIG_DIR_ENV}"
        )

    config = load_toml(default_path)
    for layer in config_layers(config_dir, get_environment()):
        config = deep_merge(config, load_toml(layer))
    return config
