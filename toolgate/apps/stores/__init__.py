"""AppStore implementations."""

from toolgate.apps.stores.inmemory import InMemoryAppStore
from toolgate.apps.stores.postgres import PostgresAppStore

__all__ = ["InMemoryAppStore", "PostgresAppStore"]
