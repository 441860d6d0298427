"""ContentStore and MemoryStore implementations."""

from toolgate.content.stores.inmemory import InMemoryContentStore, InMemoryMemoryStore
from toolgate.content.stores.postgres import PostgresContentStore, PostgresMemoryStore

__all__ = [
    "InMemoryContentStore",
    "InMemoryMemoryStore",
    "PostgresContentStore",
    "PostgresMemoryStore",
]
