"""Read side of the audit trail: call logs and permission audit export."""

import csv
import io
from typing import Any

from toolgate.apps.models import App
from toolgate.audit.models import CallRecord
from toolgate.audit.store import AuditStore
from toolgate.gateway.errors import forbidden, invalid_params
from toolgate.gateway.params import clamp_limit, parse_timestamp
from toolgate.grants.store import GrantStore
from toolgate.users.models import is_pro_tier
from toolgate.users.store import UserStore

LOGS_DEFAULT_LIMIT = 50
LOGS_MAX_LIMIT = 200
EXPORT_DEFAULT_LIMIT = 500
EXPORT_MAX_LIMIT = 5000

_EXPORT_FIELDS = (
    "user_id",
    "caller_email",
    "function_name",
    "success",
    "duration_ms",
    "caller_ip",
    "created_at",
    "error_message",
)


class AuditService:
    """Serves call logs to app owners within the scope their tier allows."""

    def __init__(self, store: AuditStore, users: UserStore, grants: GrantStore) -> None:
        self._store = store
        self._users = users
        self._grants = grants

    async def logs(
        self,
        app: App,
        caller_id: str,
        tier: str | None,
        emails: list[str] | None = None,
        functions: list[str] | None = None,
        limit: Any = None,
        since: Any = None,
    ) -> dict[str, Any]:
        """Recent calls of an app.

        Free tiers see their own calls. Pro tiers also see calls made by
        users they granted access to.
        """
        pro = is_pro_tier(tier)
        allowed = [caller_id]
        if pro:
            granted = await self._grants.list_grants(app.id)
            allowed += sorted({g.grantee_id for g in granted} - {caller_id})

        if emails:
            resolved = [await self._users.get_by_email(e.lower()) for e in emails]
            allowed = [u.id for u in resolved if u is not None and u.id in allowed]
            if not allowed:
                return {
                    "app_id": app.id,
                    "logs": [],
                    "total": 0,
                    "message": "No matching users found (or not in your permissions scope)",
                }

        since_at = parse_timestamp(since, "since")
        calls = await self._store.list_calls(
            app_id=app.id,
            user_ids=allowed,
            functions=functions,
            since=since_at,
            limit=clamp_limit(limit, LOGS_DEFAULT_LIMIT, LOGS_MAX_LIMIT),
        )
        emails_by_id = await self._emails_for(calls)

        result: dict[str, Any] = {
            "app_id": app.id,
            "app_name": app.name,
            "logs": [
                {
                    "id": c.id,
                    "caller_email": emails_by_id.get(c.user_id, c.user_id),
                    "function_name": c.function_name,
                    "method": c.method,
                    "success": c.success,
                    "duration_ms": c.duration_ms,
                    "error_message": c.error_message,
                    "created_at": c.created_at.isoformat(),
                }
                for c in calls
            ],
            "total": len(calls),
            "scope": "granted_users" if pro else "own_calls_only",
        }
        if since:
            result["since"] = since
        return result

    async def export(
        self,
        app: App,
        tier: str | None,
        format: str | None = None,
        limit: Any = None,
        since: Any = None,
        until: Any = None,
    ) -> dict[str, Any]:
        """Every call made against an app, as JSON entries or CSV text."""
        if not is_pro_tier(tier):
            raise forbidden("Audit log export requires Pro tier.")
        fmt = format or "json"
        if fmt not in ("json", "csv"):
            raise invalid_params('format must be "json" or "csv"')

        calls = await self._store.list_calls(
            app_id=app.id,
            since=parse_timestamp(since, "since"),
            until=parse_timestamp(until, "until"),
            limit=clamp_limit(limit, EXPORT_DEFAULT_LIMIT, EXPORT_MAX_LIMIT),
        )
        emails_by_id = await self._emails_for(calls)
        entries = [
            {
                "user_id": c.user_id,
                "caller_email": emails_by_id.get(c.user_id),
                "function_name": c.function_name,
                "success": c.success,
                "duration_ms": c.duration_ms,
                "caller_ip": c.caller_ip,
                "created_at": c.created_at.isoformat(),
                "error_message": c.error_message,
            }
            for c in calls
        ]

        if fmt == "csv":
            buffer = io.StringIO()
            if entries:
                writer = csv.DictWriter(buffer, fieldnames=_EXPORT_FIELDS, lineterminator="\n")
                writer.writeheader()
                writer.writerows(entries)
            return {
                "app_id": app.id,
                "format": "csv",
                "data": buffer.getvalue().rstrip("\n"),
                "total": len(entries),
            }
        return {"app_id": app.id, "format": "json", "entries": entries, "total": len(entries)}

    async def _emails_for(self, calls: list[CallRecord]) -> dict[str, str]:
        user_ids = sorted({c.user_id for c in calls})
        if not user_ids:
            return {}
        return {u.id: u.email for u in await self._users.get_many(user_ids)}
