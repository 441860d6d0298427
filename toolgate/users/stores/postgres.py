"""PostgreSQL implementation of UserStore."""

from typing import Any

from toolgate.db.errors import backend_error
from toolgate.db.pool import PostgresPool
from toolgate.observability.logging import get_logger
from toolgate.users.models import User
from toolgate.users.store import UserStore

logger = get_logger(__name__)

_COLUMNS = "id, email, display_name, tier, hosting_balance_cents, created_at"


class PostgresUserStore(UserStore):
    """PostgreSQL implementation of UserStore."""

    def __init__(self, pool: PostgresPool) -> None:
        self._pool = pool

    async def get(self, user_id: str) -> User | None:
        try:
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"SELECT {_COLUMNS} FROM users WHERE id = $1", user_id
                )
                return self._row_to_user(row) if row else None
        except Exception as e:
            logger.error("postgres_get_user_error", user_id=user_id, error=str(e))
            raise backend_error("Failed to get user", e) from e

    async def get_by_email(self, email: str) -> User | None:
        try:
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"SELECT {_COLUMNS} FROM users WHERE lower(email) = lower($1)",
                    email,
                )
                return self._row_to_user(row) if row else None
        except Exception as e:
            logger.error("postgres_get_user_by_email_error", error=str(e))
            raise backend_error("Failed to get user", e) from e

    async def get_many(self, user_ids: list[str]) -> list[User]:
        if not user_ids:
            return []
        try:
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(
                    f"SELECT {_COLUMNS} FROM users WHERE id = ANY($1::text[])",
                    user_ids,
                )
                return [self._row_to_user(row) for row in rows]
        except Exception as e:
            logger.error("postgres_get_users_error", count=len(user_ids), error=str(e))
            raise backend_error("Failed to get users", e) from e

    async def upsert(self, user: User) -> tuple[User, bool]:
        try:
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"""
                    INSERT INTO users (id, email, display_name, tier, created_at)
                    VALUES ($1, lower($2), $3, $4, $5)
                    ON CONFLICT (id) DO UPDATE SET
                        email = EXCLUDED.email,
                        display_name = COALESCE(EXCLUDED.display_name, users.display_name),
                        tier = EXCLUDED.tier
                    RETURNING {_COLUMNS}, (xmax = 0) AS inserted
                    """,
                    user.id,
                    user.email,
                    user.display_name,
                    user.tier,
                    user.created_at,
                )
                return self._row_to_user(row), bool(row["inserted"])
        except Exception as e:
            logger.error("postgres_upsert_user_error", user_id=user.id, error=str(e))
            raise backend_error("Failed to upsert user", e) from e

    def _row_to_user(self, row: Any) -> User:
        return User(
            id=row["id"],
            email=row["email"],
            display_name=row["display_name"],
            tier=row["tier"] or "free",
            hosting_balance_cents=row["hosting_balance_cents"] or 0,
            created_at=row["created_at"],
        )
