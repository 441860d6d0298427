"""PostgreSQL implementation of GrantStore."""

import json
from datetime import datetime
from typing import Any

from toolgate.db.errors import backend_error
from toolgate.db.pool import PostgresPool, affected_rows
from toolgate.grants.models import (
    ConstraintPatch,
    Grant,
    GrantConstraints,
    PendingGrant,
    TimeWindow,
    merge_constraints,
)
from toolgate.grants.store import GrantStore
from toolgate.observability.logging import get_logger

logger = get_logger(__name__)

_CONSTRAINT_COLUMNS = (
    "allowed_ips",
    "time_window",
    "budget_limit",
    "budget_used",
    "budget_period",
    "budget_period_start",
    "expires_at",
    "allowed_args",
)
_JSON_COLUMNS = {"time_window", "allowed_args"}

_GRANT_COLUMNS = (
    "app_id, grantee_id, granted_by, function_name, "
    + ", ".join(_CONSTRAINT_COLUMNS)
    + ", created_at, updated_at"
)
_PENDING_COLUMNS = (
    "app_id, invited_email, granted_by, function_name, "
    + ", ".join(_CONSTRAINT_COLUMNS)
    + ", created_at"
)


def _constraint_values(constraints: GrantConstraints) -> list[Any]:
    values = []
    for column in _CONSTRAINT_COLUMNS:
        value = getattr(constraints, column)
        if column == "time_window" and value is not None:
            value = json.dumps(value.model_dump())
        elif column in _JSON_COLUMNS and value is not None:
            value = json.dumps(value)
        values.append(value)
    return values


def _updated_columns(patch: ConstraintPatch | None) -> list[str]:
    """Columns an upsert overwrites on conflict."""
    if patch is None:
        return []
    columns = [c for c in _CONSTRAINT_COLUMNS if c in patch.model_fields_set]
    if "budget_limit" in columns:
        columns += ["budget_used", "budget_period_start"]
    return columns


def _upsert_sql(table: str, key_column: str, returning: str, columns: list[str]) -> str:
    placeholders = []
    for i, column in enumerate(_CONSTRAINT_COLUMNS, start=5):
        cast = "::jsonb" if column in _JSON_COLUMNS else ""
        placeholders.append(f"${i}{cast}")

    assignments = ["granted_by = EXCLUDED.granted_by"]
    assignments += [f"{c} = EXCLUDED.{c}" for c in columns]
    if table == "grants":
        assignments.append("updated_at = NOW()")

    return f"""
        INSERT INTO {table} (app_id, {key_column}, granted_by, function_name,
                             {", ".join(_CONSTRAINT_COLUMNS)})
        VALUES ($1, $2, $3, $4, {", ".join(placeholders)})
        ON CONFLICT (app_id, {key_column}, function_name) DO UPDATE SET
            {", ".join(assignments)}
        RETURNING {returning}
    """


class PostgresGrantStore(GrantStore):
    """PostgreSQL implementation of GrantStore."""

    def __init__(self, pool: PostgresPool) -> None:
        self._pool = pool

    async def upsert_grants(
        self,
        app_id: str,
        grantee_id: str,
        granted_by: str,
        functions: list[str],
        patch: ConstraintPatch | None = None,
    ) -> list[Grant]:
        sql = _upsert_sql("grants", "grantee_id", _GRANT_COLUMNS, _updated_columns(patch))
        values = _constraint_values(merge_constraints(None, patch))
        try:
            async with self._pool.acquire() as conn:
                async with conn.transaction():
                    rows = [
                        await conn.fetchrow(sql, app_id, grantee_id, granted_by, fn, *values)
                        for fn in functions
                    ]
                return [self._row_to_grant(row) for row in rows]
        except Exception as e:
            logger.error("postgres_upsert_grants_error", app_id=app_id, error=str(e))
            raise backend_error("Failed to upsert grants", e) from e

    async def list_grants(
        self,
        app_id: str,
        grantee_ids: list[str] | None = None,
        functions: list[str] | None = None,
    ) -> list[Grant]:
        query = f"SELECT {_GRANT_COLUMNS} FROM grants WHERE app_id = $1"
        params: list[Any] = [app_id]
        if grantee_ids is not None:
            params.append(grantee_ids)
            query += f" AND grantee_id = ANY(${len(params)}::text[])"
        if functions is not None:
            params.append(functions)
            query += f" AND function_name = ANY(${len(params)}::text[])"
        query += " ORDER BY grantee_id, function_name"
        try:
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(query, *params)
                return [self._row_to_grant(row) for row in rows]
        except Exception as e:
            logger.error("postgres_list_grants_error", app_id=app_id, error=str(e))
            raise backend_error("Failed to list grants", e) from e

    async def list_grants_by_grantor(self, granted_by: str) -> list[Grant]:
        try:
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(
                    f"SELECT {_GRANT_COLUMNS} FROM grants WHERE granted_by = $1",
                    granted_by,
                )
                return [self._row_to_grant(row) for row in rows]
        except Exception as e:
            logger.error("postgres_list_grants_by_grantor_error", error=str(e))
            raise backend_error("Failed to list grants", e) from e

    async def delete_grants(
        self,
        app_id: str,
        grantee_id: str | None = None,
        functions: list[str] | None = None,
    ) -> int:
        query = "DELETE FROM grants WHERE app_id = $1"
        params: list[Any] = [app_id]
        if grantee_id is not None:
            params.append(grantee_id)
            query += f" AND grantee_id = ${len(params)}"
        if functions is not None:
            params.append(functions)
            query += f" AND function_name = ANY(${len(params)}::text[])"
        try:
            async with self._pool.acquire() as conn:
                status = await conn.execute(query, *params)
                return affected_rows(status)
        except Exception as e:
            logger.error("postgres_delete_grants_error", app_id=app_id, error=str(e))
            raise backend_error("Failed to delete grants", e) from e

    async def upsert_pending(
        self,
        app_id: str,
        email: str,
        granted_by: str,
        functions: list[str],
        patch: ConstraintPatch | None = None,
    ) -> list[PendingGrant]:
        sql = _upsert_sql(
            "pending_grants", "invited_email", _PENDING_COLUMNS, _updated_columns(patch)
        )
        values = _constraint_values(merge_constraints(None, patch))
        try:
            async with self._pool.acquire() as conn:
                async with conn.transaction():
                    rows = [
                        await conn.fetchrow(
                            sql, app_id, email.lower(), granted_by, fn, *values
                        )
                        for fn in functions
                    ]
                return [self._row_to_pending(row) for row in rows]
        except Exception as e:
            logger.error("postgres_upsert_pending_error", app_id=app_id, error=str(e))
            raise backend_error("Failed to upsert pending grants", e) from e

    async def list_pending(
        self,
        app_id: str | None = None,
        email: str | None = None,
    ) -> list[PendingGrant]:
        query = f"SELECT {_PENDING_COLUMNS} FROM pending_grants WHERE TRUE"
        params: list[Any] = []
        if app_id is not None:
            params.append(app_id)
            query += f" AND app_id = ${len(params)}"
        if email is not None:
            params.append(email.lower())
            query += f" AND invited_email = ${len(params)}"
        query += " ORDER BY invited_email, function_name"
        try:
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(query, *params)
                return [self._row_to_pending(row) for row in rows]
        except Exception as e:
            logger.error("postgres_list_pending_error", error=str(e))
            raise backend_error("Failed to list pending grants", e) from e

    async def delete_pending(
        self,
        app_id: str | None = None,
        email: str | None = None,
        functions: list[str] | None = None,
    ) -> int:
        query = "DELETE FROM pending_grants WHERE TRUE"
        params: list[Any] = []
        if app_id is not None:
            params.append(app_id)
            query += f" AND app_id = ${len(params)}"
        if email is not None:
            params.append(email.lower())
            query += f" AND invited_email = ${len(params)}"
        if functions is not None:
            params.append(functions)
            query += f" AND function_name = ANY(${len(params)}::text[])"
        try:
            async with self._pool.acquire() as conn:
                status = await conn.execute(query, *params)
                return affected_rows(status)
        except Exception as e:
            logger.error("postgres_delete_pending_error", error=str(e))
            raise backend_error("Failed to delete pending grants", e) from e

    async def increment_budget(
        self,
        app_id: str,
        grantee_id: str,
        function_name: str,
        period_start: datetime,
    ) -> Grant | None:
        try:
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"""
                    UPDATE grants SET
                        budget_used = CASE
                            WHEN budget_period_start IS NULL OR budget_period_start < $4
                            THEN 1 ELSE budget_used + 1 END,
                        budget_period_start = CASE
                            WHEN budget_period_start IS NULL OR budget_period_start < $4
                            THEN $4 ELSE budget_period_start END,
                        updated_at = NOW()
                    WHERE app_id = $1 AND grantee_id = $2 AND function_name = $3
                    RETURNING {_GRANT_COLUMNS}
                    """,
                    app_id,
                    grantee_id,
                    function_name,
                    period_start,
                )
                return self._row_to_grant(row) if row else None
        except Exception as e:
            logger.error(
                "postgres_increment_budget_error",
                app_id=app_id,
                function_name=function_name,
                error=str(e),
            )
            raise backend_error("Failed to increment budget", e) from e

    def _row_to_constraints(self, row: Any) -> GrantConstraints:
        time_window = row["time_window"]
        allowed_args = row["allowed_args"]
        if isinstance(time_window, str):
            time_window = json.loads(time_window)
        if isinstance(allowed_args, str):
            allowed_args = json.loads(allowed_args)
        return GrantConstraints(
            allowed_ips=list(row["allowed_ips"]) if row["allowed_ips"] else None,
            time_window=TimeWindow(**time_window) if time_window else None,
            budget_limit=row["budget_limit"],
            budget_used=row["budget_used"] or 0,
            budget_period=row["budget_period"],
            budget_period_start=row["budget_period_start"],
            expires_at=row["expires_at"],
            allowed_args=allowed_args,
        )

    def _row_to_grant(self, row: Any) -> Grant:
        return Grant(
            app_id=row["app_id"],
            grantee_id=row["grantee_id"],
            granted_by=row["granted_by"],
            function_name=row["function_name"],
            constraints=self._row_to_constraints(row),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def _row_to_pending(self, row: Any) -> PendingGrant:
        return PendingGrant(
            app_id=row["app_id"],
            invited_email=row["invited_email"],
            granted_by=row["granted_by"],
            function_name=row["function_name"],
            constraints=self._row_to_constraints(row),
            created_at=row["created_at"],
        )
