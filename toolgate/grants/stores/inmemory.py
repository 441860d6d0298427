"""In-memory implementation of GrantStore."""

import asyncio
from datetime import datetime

from toolgate.grants.models import (
    ConstraintPatch,
    Grant,
    PendingGrant,
    merge_constraints,
    utc_now,
)
from toolgate.grants.store import GrantStore


class InMemoryGrantStore(GrantStore):
    """In-memory implementation of GrantStore for testing and development."""

    def __init__(self) -> None:
        self._grants: dict[tuple[str, str, str], Grant] = {}
        self._pending: dict[tuple[str, str, str], PendingGrant] = {}
        self._lock = asyncio.Lock()

    async def upsert_grants(
        self,
        app_id: str,
        grantee_id: str,
        granted_by: str,
        functions: list[str],
        patch: ConstraintPatch | None = None,
    ) -> list[Grant]:
        async with self._lock:
            result = []
            now = utc_now()
            for fn in functions:
                key = (app_id, grantee_id, fn)
                existing = self._grants.get(key)
                if existing is None:
                    grant = Grant(
                        app_id=app_id,
                        grantee_id=grantee_id,
                        granted_by=granted_by,
                        function_name=fn,
                        constraints=merge_constraints(None, patch),
                    )
                else:
                    grant = existing.model_copy(
                        update={
                            "granted_by": granted_by,
                            "constraints": merge_constraints(existing.constraints, patch),
                            "updated_at": now,
                        }
                    )
                self._grants[key] = grant
                result.append(grant)
            return result

    async def list_grants(
        self,
        app_id: str,
        grantee_ids: list[str] | None = None,
        functions: list[str] | None = None,
    ) -> list[Grant]:
        grants = [g for g in self._grants.values() if g.app_id == app_id]
        if grantee_ids is not None:
            grants = [g for g in grants if g.grantee_id in grantee_ids]
        if functions is not None:
            grants = [g for g in grants if g.function_name in functions]
        return sorted(grants, key=lambda g: (g.grantee_id, g.function_name))

    async def list_grants_by_grantor(self, granted_by: str) -> list[Grant]:
        return [g for g in self._grants.values() if g.granted_by == granted_by]

    async def delete_grants(
        self,
        app_id: str,
        grantee_id: str | None = None,
        functions: list[str] | None = None,
    ) -> int:
        async with self._lock:
            doomed = [
                key
                for key in self._grants
                if key[0] == app_id
                and (grantee_id is None or key[1] == grantee_id)
                and (functions is None or key[2] in functions)
            ]
            for key in doomed:
                del self._grants[key]
            return len(doomed)

    async def upsert_pending(
        self,
        app_id: str,
        email: str,
        granted_by: str,
        functions: list[str],
        patch: ConstraintPatch | None = None,
    ) -> list[PendingGrant]:
        email = email.lower()
        async with self._lock:
            result = []
            for fn in functions:
                key = (app_id, email, fn)
                existing = self._pending.get(key)
                pending = PendingGrant(
                    app_id=app_id,
                    invited_email=email,
                    granted_by=granted_by,
                    function_name=fn,
                    constraints=merge_constraints(
                        existing.constraints if existing else None, patch
                    ),
                    created_at=existing.created_at if existing else utc_now(),
                )
                self._pending[key] = pending
                result.append(pending)
            return result

    async def list_pending(
        self,
        app_id: str | None = None,
        email: str | None = None,
    ) -> list[PendingGrant]:
        rows = list(self._pending.values())
        if app_id is not None:
            rows = [p for p in rows if p.app_id == app_id]
        if email is not None:
            rows = [p for p in rows if p.invited_email == email.lower()]
        return sorted(rows, key=lambda p: (p.invited_email, p.function_name))

    async def delete_pending(
        self,
        app_id: str | None = None,
        email: str | None = None,
        functions: list[str] | None = None,
    ) -> int:
        email = email.lower() if email else None
        async with self._lock:
            doomed = [
                key
                for key in self._pending
                if (app_id is None or key[0] == app_id)
                and (email is None or key[1] == email)
                and (functions is None or key[2] in functions)
            ]
            for key in doomed:
                del self._pending[key]
            return len(doomed)

    async def increment_budget(
        self,
        app_id: str,
        grantee_id: str,
        function_name: str,
        period_start: datetime,
    ) -> Grant | None:
        async with self._lock:
            key = (app_id, grantee_id, function_name)
            grant = self._grants.get(key)
            if grant is None:
                return None
            constraints = grant.constraints
            stale = (
                constraints.budget_period_start is None
                or constraints.budget_period_start < period_start
            )
            used = 1 if stale else constraints.budget_used + 1
            updated = grant.model_copy(
                update={
                    "constraints": constraints.model_copy(
                        update={
                            "budget_used": used,
                            "budget_period_start": (
                                period_start if stale else constraints.budget_period_start
                            ),
                        }
                    ),
                    "updated_at": utc_now(),
                }
            )
            self._grants[key] = updated
            return updated
