"""PostgreSQL implementation of FeedbackStore."""

import json

from toolgate.db.errors import backend_error
from toolgate.db.pool import PostgresPool
from toolgate.feedback.models import Gap, Shortcoming
from toolgate.feedback.store import FeedbackStore
from toolgate.observability.logging import get_logger

logger = get_logger(__name__)

_GAP_COLUMNS = "id, title, description, severity, points_value, season, status, created_at"


class PostgresFeedbackStore(FeedbackStore):
    """PostgreSQL implementation of FeedbackStore (tables shortcomings, gaps)."""

    def __init__(self, pool: PostgresPool) -> None:
        self._pool = pool

    async def add_shortcoming(self, shortcoming: Shortcoming) -> None:
        try:
            async with self._pool.acquire() as conn:
                await conn.execute(
                    """
                    INSERT INTO shortcomings (
                        id, user_id, session_id, type, summary, context, created_at
                    ) VALUES ($1, $2, $3, $4, $5, $6, $7)
                    """,
                    shortcoming.id,
                    shortcoming.user_id,
                    shortcoming.session_id,
                    shortcoming.type,
                    shortcoming.summary,
                    json.dumps(shortcoming.context) if shortcoming.context is not None else None,
                    shortcoming.created_at,
                )
        except Exception as e:
            logger.error("postgres_add_shortcoming_error", error=str(e))
            raise backend_error("Failed to save shortcoming", e) from e

    async def save_gap(self, gap: Gap) -> Gap:
        try:
            async with self._pool.acquire() as conn:
                await conn.execute(
                    f"""
                    INSERT INTO gaps ({_GAP_COLUMNS})
                    VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
                    ON CONFLICT (id) DO UPDATE SET
                        title = EXCLUDED.title,
                        description = EXCLUDED.description,
                        severity = EXCLUDED.severity,
                        points_value = EXCLUDED.points_value,
                        season = EXCLUDED.season,
                        status = EXCLUDED.status
                    """,
                    gap.id,
                    gap.title,
                    gap.description,
                    gap.severity,
                    gap.points_value,
                    gap.season,
                    gap.status,
                    gap.created_at,
                )
                return gap
        except Exception as e:
            logger.error("postgres_save_gap_error", gap_id=gap.id, error=str(e))
            raise backend_error("Failed to save gap", e) from e

    async def list_gaps(
        self,
        status: str = "open",
        severity: str | None = None,
        season: int | None = None,
        limit: int = 20,
    ) -> list[Gap]:
        try:
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(
                    f"""
                    SELECT {_GAP_COLUMNS} FROM gaps
                    WHERE status = $1
                      AND ($2::text IS NULL OR severity = $2)
                      AND ($3::int IS NULL OR season = $3)
                    ORDER BY points_value DESC, created_at DESC
                    LIMIT $4
                    """,
                    status,
                    severity,
                    season,
                    limit,
                )
                return [Gap(**dict(row)) for row in rows]
        except Exception as e:
            logger.error("postgres_list_gaps_error", error=str(e))
            raise backend_error("Failed to list gaps", e) from e
