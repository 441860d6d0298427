"""Fixtures shared across packages: config dirs, users, apps, seeded randomness."""

import random
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import pytest

from toolgate.apps.models import App, Visibility
from toolgate.users.models import User


@pytest.fixture
def test_config_dir(tmp_path: Path) -> Path:
    path = tmp_path / "config"
    path.mkdir()
    return path


@pytest.fixture
def mock_toml_files(test_config_dir: Path) -> Callable[[dict[str, str]], None]:
    """Write ``{filename: toml_text}`` into the temporary config dir."""

    def _write(files: dict[str, str]) -> None:
        for name, text in files.items():
            (test_config_dir / name).write_text(text)

    return _write


@pytest.fixture
def rng() -> random.Random:
    """Seeded generator for the discovery luck shuffle."""
    return random.Random(7)


@pytest.fixture(autouse=True)
def clear_settings_cache() -> Generator[None, None, None]:
    """Clear the settings cache before and after each test."""
    from toolgate.config import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def owner() -> User:
    return User(id="user-owner", email="owner@example.com", display_name="Owner", tier="pro")


@pytest.fixture
def guest() -> User:
    return User(id="user-guest", email="guest@example.com", display_name="Guest")


@pytest.fixture
def app_factory(owner: User) -> Callable[..., App]:
    """Build apps owned by the owner fixture."""

    def _make(**overrides: Any) -> App:
        values: dict[str, Any] = {
            "id": "app-weather",
            "slug": "weather",
            "name": "Weather",
            "owner_id": owner.id,
            "visibility": Visibility.PRIVATE,
            "exports": ["forecast", "current", "alerts"],
        }
        values.update(overrides)
        return App(**values)

    return _make
