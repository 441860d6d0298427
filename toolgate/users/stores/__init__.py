"""UserStore implementations."""

from toolgate.users.stores.inmemory import InMemoryUserStore
from toolgate.users.stores.postgres import PostgresUserStore

__all__ = ["InMemoryUserStore", "PostgresUserStore"]
