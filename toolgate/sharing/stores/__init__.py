"""ShareStore implementations."""

from toolgate.sharing.stores.inmemory import InMemoryShareStore
from toolgate.sharing.stores.postgres import PostgresShareStore

__all__ = ["InMemoryShareStore", "PostgresShareStore"]
