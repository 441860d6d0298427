"""In-memory implementation of AuditStore."""

from datetime import datetime

from toolgate.audit.models import CallRecord, DiscoveryQueryRecord
from toolgate.audit.store import AuditStore


class InMemoryAuditStore(AuditStore):
    """In-memory implementation of AuditStore for testing and development."""

    def __init__(self) -> None:
        self.calls: list[CallRecord] = []
        self.queries: dict[str, DiscoveryQueryRecord] = {}

    async def record_call(self, record: CallRecord) -> None:
        self.calls.append(record)

    async def record_query(self, record: DiscoveryQueryRecord) -> None:
        self.queries[record.id] = record

    async def list_calls(
        self,
        app_id: str | None = None,
        user_ids: list[str] | None = None,
        functions: list[str] | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int = 50,
    ) -> list[CallRecord]:
        matched = [
            c
            for c in self.calls
            if (app_id is None or c.app_id == app_id)
            and (user_ids is None or c.user_id in user_ids)
            and (not functions or c.function_name in functions)
            and (since is None or c.created_at >= since)
            and (until is None or c.created_at <= until)
        ]
        matched.sort(key=lambda c: c.created_at, reverse=True)
        return matched[:limit]

    async def recent_app_ids(self, user_id: str, limit: int = 3) -> list[tuple[str, datetime]]:
        seen: dict[str, datetime] = {}
        for call in sorted(self.calls, key=lambda c: c.created_at, reverse=True):
            if call.user_id != user_id or not call.app_id or call.app_id in seen:
                continue
            seen[call.app_id] = call.created_at
            if len(seen) >= limit:
                break
        return list(seen.items())

    async def get_query(self, query_id: str) -> DiscoveryQueryRecord | None:
        return self.queries.get(query_id)
