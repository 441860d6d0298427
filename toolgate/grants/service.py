"""Grant service: grant, revoke, list, pending conversion and access checks."""

from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError

from toolgate.apps.models import App
from toolgate.gateway.errors import invalid_params, validation_error
from toolgate.grants.cache import GrantCache
from toolgate.grants.constraints import budget_period_start, check_constraints
from toolgate.grants.models import (
    ConstraintCheckResult,
    ConstraintPatch,
    Grant,
    GrantConstraints,
)
from toolgate.grants.store import GrantStore
from toolgate.observability.logging import get_logger
from toolgate.observability.metrics import GRANT_CHECKS
from toolgate.users.models import User
from toolgate.users.store import UserStore

logger = get_logger(__name__)

PENDING_NOTE = (
    "This email has not registered yet. The permissions will activate "
    "automatically when they sign up."
)


def parse_constraints(raw: Any) -> ConstraintPatch | None:
    """Validate a constraints argument into a patch."""
    if raw is None:
        return None
    if isinstance(raw, ConstraintPatch):
        return raw
    if not isinstance(raw, dict):
        raise invalid_params("constraints must be an object")
    try:
        return ConstraintPatch.model_validate(raw)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise invalid_params(f"Invalid constraints ({location}): {first['msg']}") from e


def patch_from_constraints(constraints: GrantConstraints) -> ConstraintPatch:
    """Patch carrying only the constraint fields that are set."""
    values = {
        name: getattr(constraints, name)
        for name in ConstraintPatch.model_fields
        if getattr(constraints, name) is not None
    }
    return ConstraintPatch(**values)


class GrantService:
    """Additive grants over a GrantStore with a write-through cache port."""

    def __init__(self, store: GrantStore, users: UserStore, cache: GrantCache) -> None:
        self._store = store
        self._users = users
        self._cache = cache

    async def grant(
        self,
        app: App,
        email: str | None,
        functions: list[str] | None = None,
        constraints: Any = None,
    ) -> dict[str, Any]:
        """Grant capabilities of an app to the user behind an email.

        Unregistered emails receive pending invitations instead.
        """
        if not email:
            raise invalid_params("email is required")
        email = email.strip().lower()

        selected = list(functions) if functions else list(app.exports)
        if not selected:
            raise validation_error("App has no exported functions to grant")
        unknown = [fn for fn in selected if app.exports and fn not in app.exports]
        if unknown:
            raise validation_error(
                f"Unknown functions: {', '.join(unknown)}. "
                f"Available: {', '.join(app.exports)}"
            )
        patch = parse_constraints(constraints)

        grantee = await self._users.get_by_email(email)
        if grantee is None:
            await self._store.upsert_pending(app.id, email, app.owner_id, selected, patch)
            await self._cache.invalidate(app.id)
            logger.info(
                "pending_grant_created",
                app_id=app.id,
                functions=selected,
            )
            return {
                "app_id": app.id,
                "email": email,
                "status": "pending",
                "functions_granted": selected,
                "note": PENDING_NOTE,
            }

        if grantee.id == app.owner_id:
            raise invalid_params("Cannot grant permissions to yourself (owner has full access)")

        await self._store.upsert_grants(app.id, grantee.id, app.owner_id, selected, patch)
        await self._cache.invalidate(app.id)
        logger.info(
            "permissions_granted",
            app_id=app.id,
            grantee_id=grantee.id,
            functions=selected,
        )

        result: dict[str, Any] = {
            "app_id": app.id,
            "email": email,
            "user_id": grantee.id,
            "functions_granted": selected,
        }
        applied = patch.applied_kinds() if patch else []
        if applied:
            result["constraints_applied"] = applied
        return result

    async def revoke(
        self,
        app: App,
        email: str | None = None,
        functions: list[str] | None = None,
    ) -> dict[str, Any]:
        """Revoke grants following the (grantee?, functions?) matrix."""
        selected = list(functions) if functions else None

        if not email:
            await self._store.delete_grants(app.id, None, selected)
            await self._store.delete_pending(app_id=app.id, functions=selected)
            await self._cache.invalidate(app.id)
            logger.info("permissions_revoked", app_id=app.id, all_users=True, functions=selected)
            if selected is None:
                return {"app_id": app.id, "all_users": True, "all_access_revoked": True}
            return {"app_id": app.id, "all_users": True, "functions_revoked": selected}

        email = email.strip().lower()
        grantee = await self._users.get_by_email(email)
        if grantee is None:
            await self._store.delete_pending(app_id=app.id, email=email, functions=selected)
            await self._cache.invalidate(app.id)
            result: dict[str, Any] = {
                "app_id": app.id,
                "email": email,
                "pending_invite_revoked": True,
            }
            if selected is not None:
                result["functions_revoked"] = selected
            return result

        await self._store.delete_grants(app.id, grantee.id, selected)
        await self._cache.invalidate(app.id)
        logger.info(
            "permissions_revoked",
            app_id=app.id,
            grantee_id=grantee.id,
            functions=selected,
        )
        if selected is None:
            return {"app_id": app.id, "email": email, "all_access_revoked": True}
        return {"app_id": app.id, "email": email, "functions_revoked": selected}

    async def list_grants(
        self,
        app: App,
        emails: list[str] | None = None,
        functions: list[str] | None = None,
    ) -> dict[str, Any]:
        """Grants of an app grouped by grantee, pending grantees last."""
        wanted = [e.strip().lower() for e in emails] if emails else None

        grantee_ids: list[str] | None = None
        if wanted is not None:
            grantee_ids = []
            for email in wanted:
                user = await self._users.get_by_email(email)
                if user is not None:
                    grantee_ids.append(user.id)

        grants = await self._store.list_grants(app.id, grantee_ids, functions)
        users = {
            u.id: u
            for u in await self._users.get_many(sorted({g.grantee_id for g in grants}))
        }

        grouped: dict[str, dict[str, Any]] = {}
        for grant in grants:
            user = users.get(grant.grantee_id)
            entry = grouped.setdefault(
                grant.grantee_id,
                {
                    "email": user.email if user else None,
                    "display_name": user.display_name if user else None,
                    "functions": [],
                },
            )
            function: dict[str, Any] = {"name": grant.function_name}
            if grant.constraints.has_any():
                function["constraints"] = grant.constraints.to_listing()
            entry["functions"].append(function)

        pending_grouped: dict[str, dict[str, Any]] = {}
        for pending in await self._store.list_pending(app_id=app.id):
            if wanted is not None and pending.invited_email not in wanted:
                continue
            if functions and pending.function_name not in functions:
                continue
            entry = pending_grouped.setdefault(
                pending.invited_email,
                {
                    "email": pending.invited_email,
                    "display_name": None,
                    "functions": [],
                    "status": "pending",
                },
            )
            entry["functions"].append(pending.function_name)

        return {
            "app_id": app.id,
            "users": list(grouped.values()) + list(pending_grouped.values()),
        }

    async def convert_pending(self, user: User) -> int:
        """Turn pending invitations for a user's email into grants.

        Idempotent; failures are logged and never raised.
        """
        try:
            pending = await self._store.list_pending(email=user.email)
            if not pending:
                return 0
            for row in pending:
                await self._store.upsert_grants(
                    row.app_id,
                    user.id,
                    row.granted_by,
                    [row.function_name],
                    patch_from_constraints(row.constraints),
                )
            converted: dict[str, list[str]] = {}
            for row in pending:
                converted.setdefault(row.app_id, []).append(row.function_name)
            # Only the rows listed above; invites added meanwhile wait for the next pass.
            for app_id, functions in sorted(converted.items()):
                await self._store.delete_pending(app_id, user.email, functions)
                await self._cache.invalidate(app_id)
            logger.info("pending_grants_converted", user_id=user.id, count=len(pending))
            return len(pending)
        except Exception as e:
            logger.warning("pending_grant_conversion_failed", user_id=user.id, error=str(e))
            return 0

    async def grants_for(self, app_id: str, user_id: str) -> list[Grant]:
        """Grants a user holds on an app, read through the cache."""
        cached = await self._cache.get(app_id, user_id)
        if cached is not None:
            return cached
        grants = await self._store.list_grants(app_id, [user_id])
        await self._cache.set(app_id, user_id, grants)
        return grants

    async def check_access(
        self,
        app: App,
        user_id: str,
        function_name: str,
        client_ip: str | None = None,
        args: dict[str, Any] | None = None,
        now: datetime | None = None,
    ) -> ConstraintCheckResult:
        """Decide whether a caller may invoke one function of an app.

        Owners always pass. For grantees every present constraint is checked
        and a budgeted grant has its counter incremented.
        Called by the runtime that executes app functions, not by the gateway.
        """
        if user_id == app.owner_id:
            GRANT_CHECKS.labels(result="owner").inc()
            return ConstraintCheckResult(allowed=True)

        current = now or datetime.now(UTC)
        grants = await self.grants_for(app.id, user_id)
        grant = next((g for g in grants if g.function_name == function_name), None)
        if grant is None:
            GRANT_CHECKS.labels(result="no_grant").inc()
            return ConstraintCheckResult(
                allowed=False, reason=f"No permission to call '{function_name}'"
            )

        result = check_constraints(grant.constraints, client_ip, args, current)
        if not result.allowed:
            GRANT_CHECKS.labels(result="denied").inc()
            logger.info(
                "grant_constraint_denied",
                app_id=app.id,
                user_id=user_id,
                function_name=function_name,
                reason=result.reason,
            )
            return result

        if grant.constraints.budget_limit:
            await self._store.increment_budget(
                app.id,
                user_id,
                function_name,
                budget_period_start(grant.constraints.budget_period, current),
            )
            await self._cache.invalidate(app.id)

        GRANT_CHECKS.labels(result="allowed").inc()
        return result
