"""Settings access: ``get_settings()`` loads the TOML layers once per process."""

from functools import lru_cache

from toolgate.config.loader import load_config
from toolgate.config.settings import Settings


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_toml(load_config())


def reload_settings() -> Settings:
    """Drop the cached instance, e.g. after the config files changed."""
    get_settings.cache_clear()
    return get_settings()


__all__ = ["Settings", "get_settings", "reload_settings"]
