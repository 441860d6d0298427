"""PostgreSQL implementation of SecretStore."""

from toolgate.connections.models import Secret
from toolgate.connections.store import SecretStore
from toolgate.db.errors import backend_error
from toolgate.db.pool import PostgresPool, affected_rows
from toolgate.observability.logging import get_logger

logger = get_logger(__name__)

_COLUMNS = "user_id, app_id, key, value_encrypted, updated_at"


class PostgresSecretStore(SecretStore):
    """PostgreSQL implementation of SecretStore."""

    def __init__(self, pool: PostgresPool) -> None:
        self._pool = pool

    async def upsert(self, secret: Secret) -> Secret:
        try:
            async with self._pool.acquire() as conn:
                await conn.execute(
                    """
                    INSERT INTO secrets (user_id, app_id, key, value_encrypted, updated_at)
                    VALUES ($1, $2, $3, $4, $5)
                    ON CONFLICT (user_id, app_id, key) DO UPDATE SET
                        value_encrypted = EXCLUDED.value_encrypted,
                        updated_at = EXCLUDED.updated_at
                    """,
                    secret.user_id,
                    secret.app_id,
                    secret.key,
                    secret.value_encrypted,
                    secret.updated_at,
                )
                return secret
        except Exception as e:
            logger.error("postgres_upsert_secret_error", app_id=secret.app_id, error=str(e))
            raise backend_error("Failed to save secret", e) from e

    async def delete(self, user_id: str, app_id: str, key: str) -> bool:
        try:
            async with self._pool.acquire() as conn:
                result = await conn.execute(
                    "DELETE FROM secrets WHERE user_id = $1 AND app_id = $2 AND key = $3",
                    user_id,
                    app_id,
                    key,
                )
                return affected_rows(result) > 0
        except Exception as e:
            logger.error("postgres_delete_secret_error", app_id=app_id, error=str(e))
            raise backend_error("Failed to delete secret", e) from e

    async def list_for_app(self, user_id: str, app_id: str) -> list[Secret]:
        try:
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(
                    f"""
                    SELECT {_COLUMNS} FROM secrets
                    WHERE user_id = $1 AND app_id = $2
                    ORDER BY key
                    """,
                    user_id,
                    app_id,
                )
                return [Secret(**dict(row)) for row in rows]
        except Exception as e:
            logger.error("postgres_list_secrets_error", app_id=app_id, error=str(e))
            raise backend_error("Failed to list secrets", e) from e

    async def list_for_user(self, user_id: str, app_ids: list[str] | None = None) -> list[Secret]:
        try:
            async with self._pool.acquire() as conn:
                if app_ids is None:
                    rows = await conn.fetch(
                        f"SELECT {_COLUMNS} FROM secrets WHERE user_id = $1 ORDER BY app_id, key",
                        user_id,
                    )
                else:
                    rows = await conn.fetch(
                        f"""
                        SELECT {_COLUMNS} FROM secrets
                        WHERE user_id = $1 AND app_id = ANY($2::text[])
                        ORDER BY app_id, key
                        """,
                        user_id,
                        app_ids,
                    )
                return [Secret(**dict(row)) for row in rows]
        except Exception as e:
            logger.error("postgres_list_secrets_error", user_id=user_id, error=str(e))
            raise backend_error("Failed to list secrets", e) from e
