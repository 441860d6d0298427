"""AuditStore implementations."""

from toolgate.audit.stores.inmemory import InMemoryAuditStore
from toolgate.audit.stores.postgres import PostgresAuditStore

__all__ = ["InMemoryAuditStore", "PostgresAuditStore"]
