"""GrantStore implementations."""

from toolgate.grants.stores.inmemory import InMemoryGrantStore
from toolgate.grants.stores.postgres import PostgresGrantStore

__all__ = ["InMemoryGrantStore", "PostgresGrantStore"]
