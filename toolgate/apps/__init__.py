"""Apps: published resources, their versions and engagement."""

from toolgate.apps.models import App, EnvSchemaEntry, Visibility
from toolgate.apps.store import AppStore

__all__ = ["App", "AppStore", "EnvSchemaEntry", "Visibility"]
