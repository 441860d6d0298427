"""Audit trail of capability calls and discovery queries."""

from toolgate.audit.models import CallRecord, DiscoveryQueryRecord, truncate_payload
from toolgate.audit.store import AuditStore

__all__ = ["AuditStore", "CallRecord", "DiscoveryQueryRecord", "truncate_payload"]
