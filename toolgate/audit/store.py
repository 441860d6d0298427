"""AuditStore abstract interface."""

from abc import ABC, abstractmethod
from datetime import datetime

from toolgate.audit.models import CallRecord, DiscoveryQueryRecord


class AuditStore(ABC):
    """Append-only store of call records and discovery queries."""

    @abstractmethod
    async def record_call(self, record: CallRecord) -> None:
        pass

    @abstractmethod
    async def record_query(self, record: DiscoveryQueryRecord) -> None:
        pass

    @abstractmethod
    async def list_calls(
        self,
        app_id: str | None = None,
        user_ids: list[str] | None = None,
        functions: list[str] | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int = 50,
    ) -> list[CallRecord]:
        """Call records newest first, filtered by the given fields."""
        pass

    @abstractmethod
    async def recent_app_ids(self, user_id: str, limit: int = 3) -> list[tuple[str, datetime]]:
        """Distinct apps the user called most recently, with the last call time."""
        pass

    @abstractmethod
    async def get_query(self, query_id: str) -> DiscoveryQueryRecord | None:
        pass
