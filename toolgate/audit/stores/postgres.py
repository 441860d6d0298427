"""PostgreSQL implementation of AuditStore."""

import json
from datetime import datetime
from typing import Any

from toolgate.audit.models import CallRecord, DiscoveryQueryRecord
from toolgate.audit.store import AuditStore
from toolgate.db.errors import backend_error
from toolgate.db.pool import PostgresPool
from toolgate.observability.logging import get_logger

logger = get_logger(__name__)

_CALL_COLUMNS = (
    "id, user_id, app_id, app_name, function_name, method, success, duration_ms, "
    "error_message, input_args, output_result, user_tier, session_id, user_query, "
    "caller_ip, created_at"
)


class PostgresAuditStore(AuditStore):
    """PostgreSQL implementation of AuditStore (tables call_logs, discovery_queries)."""

    def __init__(self, pool: PostgresPool) -> None:
        self._pool = pool

    async def record_call(self, record: CallRecord) -> None:
        try:
            async with self._pool.acquire() as conn:
                await conn.execute(
                    f"""
                    INSERT INTO call_logs ({_CALL_COLUMNS})
                    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14, $15, $16)
                    """,
                    record.id,
                    record.user_id,
                    record.app_id,
                    record.app_name,
                    record.function_name,
                    record.method,
                    record.success,
                    record.duration_ms,
                    record.error_message,
                    _dump(record.input_args),
                    _dump(record.output_result),
                    record.user_tier,
                    record.session_id,
                    record.user_query,
                    record.caller_ip,
                    record.created_at,
                )
        except Exception as e:
            logger.error("postgres_record_call_error", error=str(e))
            raise backend_error("Failed to record call", e) from e

    async def record_query(self, record: DiscoveryQueryRecord) -> None:
        try:
            async with self._pool.acquire() as conn:
                await conn.execute(
                    """
                    INSERT INTO discovery_queries (
                        id, user_id, query, top_similarity, top_final_score,
                        result_count, results, created_at
                    ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
                    """,
                    record.id,
                    record.user_id,
                    record.query,
                    record.top_similarity,
                    record.top_final_score,
                    record.result_count,
                    json.dumps([r.model_dump() for r in record.results]),
                    record.created_at,
                )
        except Exception as e:
            logger.error("postgres_record_query_error", error=str(e))
            raise backend_error("Failed to record discovery query", e) from e

    async def list_calls(
        self,
        app_id: str | None = None,
        user_ids: list[str] | None = None,
        functions: list[str] | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int = 50,
    ) -> list[CallRecord]:
        clauses: list[str] = []
        params: list[Any] = []

        def add(clause: str, value: Any) -> None:
            params.append(value)
            clauses.append(clause.format(n=len(params)))

        if app_id is not None:
            add("app_id = ${n}", app_id)
        if user_ids is not None:
            add("user_id = ANY(${n}::text[])", user_ids)
        if functions:
            add("function_name = ANY(${n}::text[])", functions)
        if since is not None:
            add("created_at >= ${n}", since)
        if until is not None:
            add("created_at <= ${n}", until)
        params.append(limit)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        try:
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(
                    f"""
                    SELECT {_CALL_COLUMNS} FROM call_logs
                    {where}
                    ORDER BY created_at DESC
                    LIMIT ${len(params)}
                    """,
                    *params,
                )
                return [self._row_to_call(row) for row in rows]
        except Exception as e:
            logger.error("postgres_list_calls_error", app_id=app_id, error=str(e))
            raise backend_error("Failed to list calls", e) from e

    async def recent_app_ids(self, user_id: str, limit: int = 3) -> list[tuple[str, datetime]]:
        try:
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(
                    """
                    SELECT app_id, MAX(created_at) AS last_used FROM call_logs
                    WHERE user_id = $1 AND app_id IS NOT NULL
                    GROUP BY app_id
                    ORDER BY last_used DESC
                    LIMIT $2
                    """,
                    user_id,
                    limit,
                )
                return [(row["app_id"], row["last_used"]) for row in rows]
        except Exception as e:
            logger.error("postgres_recent_apps_error", user_id=user_id, error=str(e))
            raise backend_error("Failed to list recent apps", e) from e

    async def get_query(self, query_id: str) -> DiscoveryQueryRecord | None:
        try:
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow(
                    "SELECT * FROM discovery_queries WHERE id = $1", query_id
                )
                if row is None:
                    return None
                data = dict(row)
                data["results"] = json.loads(data["results"] or "[]")
                return DiscoveryQueryRecord(**data)
        except Exception as e:
            logger.error("postgres_get_query_error", query_id=query_id, error=str(e))
            raise backend_error("Failed to get discovery query", e) from e

    def _row_to_call(self, row: Any) -> CallRecord:
        data = dict(row)
        for field in ("input_args", "output_result"):
            if data[field] is not None:
                data[field] = json.loads(data[field])
        return CallRecord(**data)


def _dump(value: Any) -> str | None:
    return None if value is None else json.dumps(value, default=str)
