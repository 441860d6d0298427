"""GrantStore abstract interface."""

from abc import ABC, abstractmethod
from datetime import datetime

from toolgate.grants.models import ConstraintPatch, Grant, PendingGrant


class GrantStore(ABC):
    """Abstract interface for grants and pending invitations.

    Every write method is a single atomic operation against the backend.
    """

    @abstractmethod
    async def upsert_grants(
        self,
        app_id: str,
        grantee_id: str,
        granted_by: str,
        functions: list[str],
        patch: ConstraintPatch | None = None,
    ) -> list[Grant]:
        """Create or update one grant per function, merging constraints."""
        pass

    @abstractmethod
    async def list_grants(
        self,
        app_id: str,
        grantee_ids: list[str] | None = None,
        functions: list[str] | None = None,
    ) -> list[Grant]:
        """List grants of an app, optionally filtered."""
        pass

    @abstractmethod
    async def list_grants_by_grantor(self, granted_by: str) -> list[Grant]:
        """List every grant issued by a user across their apps."""
        pass

    @abstractmethod
    async def delete_grants(
        self,
        app_id: str,
        grantee_id: str | None = None,
        functions: list[str] | None = None,
    ) -> int:
        """Delete grants matching the filters. Returns the number removed."""
        pass

    @abstractmethod
    async def upsert_pending(
        self,
        app_id: str,
        email: str,
        granted_by: str,
        functions: list[str],
        patch: ConstraintPatch | None = None,
    ) -> list[PendingGrant]:
        """Create or update pending invitations for an unregistered email."""
        pass

    @abstractmethod
    async def list_pending(
        self,
        app_id: str | None = None,
        email: str | None = None,
    ) -> list[PendingGrant]:
        """List pending invitations by app and/or email."""
        pass

    @abstractmethod
    async def delete_pending(
        self,
        app_id: str | None = None,
        email: str | None = None,
        functions: list[str] | None = None,
    ) -> int:
        """Delete pending invitations matching the filters."""
        pass

    @abstractmethod
    async def increment_budget(
        self,
        app_id: str,
        grantee_id: str,
        function_name: str,
        period_start: datetime,
    ) -> Grant | None:
        """Atomically count one use against a grant's budget.

        The counter restarts at 1 when the stored period began before
        period_start.
        """
        pass
