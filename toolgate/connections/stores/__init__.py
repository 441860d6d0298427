"""SecretStore implementations."""

from toolgate.connections.stores.inmemory import InMemorySecretStore
from toolgate.connections.stores.postgres import PostgresSecretStore

__all__ = ["InMemorySecretStore", "PostgresSecretStore"]
