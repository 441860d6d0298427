"""PostgreSQL implementation of ShareStore (tables content_shares, memory_shares)."""

from typing import Any

from toolgate.db.errors import backend_error
from toolgate.db.pool import PostgresPool, affected_rows
from toolgate.observability.logging import get_logger
from toolgate.sharing.models import ContentShare, KeyShare
from toolgate.sharing.store import ShareStore

logger = get_logger(__name__)

_CONTENT_COLUMNS = (
    "id, content_id, owner_id, shared_with_email, shared_with_user_id, "
    "access_level, expires_at, created_at"
)
_KEY_COLUMNS = (
    "id, owner_id, scope, key_pattern, shared_with_email, shared_with_user_id, "
    "access_level, created_at"
)


class PostgresShareStore(ShareStore):
    """PostgreSQL implementation of ShareStore."""

    def __init__(self, pool: PostgresPool) -> None:
        self._pool = pool

    async def upsert_content_share(self, share: ContentShare) -> ContentShare:
        try:
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"""
                    INSERT INTO content_shares ({_CONTENT_COLUMNS})
                    VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
                    ON CONFLICT (content_id, shared_with_email) DO UPDATE SET
                        shared_with_user_id = EXCLUDED.shared_with_user_id,
                        access_level = EXCLUDED.access_level,
                        expires_at = EXCLUDED.expires_at
                    RETURNING {_CONTENT_COLUMNS}
                    """,
                    share.id,
                    share.content_id,
                    share.owner_id,
                    share.shared_with_email,
                    share.shared_with_user_id,
                    share.access_level,
                    share.expires_at,
                    share.created_at,
                )
                return ContentShare(**dict(row))
        except Exception as e:
            logger.error(
                "postgres_upsert_content_share_error", content_id=share.content_id, error=str(e)
            )
            raise backend_error("Failed to save share", e) from e

    async def delete_content_shares(self, content_id: str, email: str | None = None) -> int:
        try:
            async with self._pool.acquire() as conn:
                if email is None:
                    status = await conn.execute(
                        "DELETE FROM content_shares WHERE content_id = $1", content_id
                    )
                else:
                    status = await conn.execute(
                        """
                        DELETE FROM content_shares
                        WHERE content_id = $1 AND shared_with_email = $2
                        """,
                        content_id,
                        email,
                    )
                return affected_rows(status)
        except Exception as e:
            logger.error(
                "postgres_delete_content_shares_error", content_id=content_id, error=str(e)
            )
            raise backend_error("Failed to delete shares", e) from e

    async def list_content_shares(
        self,
        owner_id: str | None = None,
        content_id: str | None = None,
    ) -> list[ContentShare]:
        clauses: list[str] = []
        params: list[Any] = []
        if owner_id is not None:
            params.append(owner_id)
            clauses.append(f"owner_id = ${len(params)}")
        if content_id is not None:
            params.append(content_id)
            clauses.append(f"content_id = ${len(params)}")
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        try:
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(
                    f"SELECT {_CONTENT_COLUMNS} FROM content_shares {where} ORDER BY created_at",
                    *params,
                )
                return [ContentShare(**dict(row)) for row in rows]
        except Exception as e:
            logger.error("postgres_list_content_shares_error", error=str(e))
            raise backend_error("Failed to list shares", e) from e

    async def list_incoming_content_shares(self, user_id: str, email: str) -> list[ContentShare]:
        try:
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(
                    f"""
                    SELECT {_CONTENT_COLUMNS} FROM content_shares
                    WHERE shared_with_user_id = $1 OR shared_with_email = $2
                    ORDER BY created_at
                    """,
                    user_id,
                    email.lower(),
                )
                return [ContentShare(**dict(row)) for row in rows]
        except Exception as e:
            logger.error("postgres_list_incoming_shares_error", error=str(e))
            raise backend_error("Failed to list shares", e) from e

    async def upsert_key_share(self, share: KeyShare) -> KeyShare:
        try:
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"""
                    INSERT INTO memory_shares ({_KEY_COLUMNS})
                    VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
                    ON CONFLICT (owner_id, scope, key_pattern, shared_with_email) DO UPDATE SET
                        shared_with_user_id = EXCLUDED.shared_with_user_id,
                        access_level = EXCLUDED.access_level
                    RETURNING {_KEY_COLUMNS}
                    """,
                    share.id,
                    share.owner_id,
                    share.scope,
                    share.key_pattern,
                    share.shared_with_email,
                    share.shared_with_user_id,
                    share.access_level,
                    share.created_at,
                )
                return KeyShare(**dict(row))
        except Exception as e:
            logger.error("postgres_upsert_key_share_error", scope=share.scope, error=str(e))
            raise backend_error("Failed to save share", e) from e

    async def delete_key_shares(
        self,
        owner_id: str,
        scope: str,
        key_pattern: str,
        email: str,
    ) -> int:
        try:
            async with self._pool.acquire() as conn:
                status = await conn.execute(
                    """
                    DELETE FROM memory_shares
                    WHERE owner_id = $1 AND scope = $2 AND key_pattern = $3
                      AND shared_with_email = $4
                    """,
                    owner_id,
                    scope,
                    key_pattern,
                    email,
                )
                return affected_rows(status)
        except Exception as e:
            logger.error("postgres_delete_key_shares_error", scope=scope, error=str(e))
            raise backend_error("Failed to delete shares", e) from e

    async def list_key_shares(self, owner_id: str, scope: str | None = None) -> list[KeyShare]:
        try:
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(
                    f"""
                    SELECT {_KEY_COLUMNS} FROM memory_shares
                    WHERE owner_id = $1 AND ($2::text IS NULL OR scope = $2)
                    ORDER BY created_at
                    """,
                    owner_id,
                    scope,
                )
                return [KeyShare(**dict(row)) for row in rows]
        except Exception as e:
            logger.error("postgres_list_key_shares_error", error=str(e))
            raise backend_error("Failed to list shares", e) from e

    async def list_incoming_key_shares(self, user_id: str, email: str) -> list[KeyShare]:
        try:
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(
                    f"""
                    SELECT {_KEY_COLUMNS} FROM memory_shares
                    WHERE shared_with_user_id = $1 OR shared_with_email = $2
                    ORDER BY created_at
                    """,
                    user_id,
                    email.lower(),
                )
                return [KeyShare(**dict(row)) for row in rows]
        except Exception as e:
            logger.error("postgres_list_incoming_key_shares_error", error=str(e))
            raise backend_error("Failed to list shares", e) from e

    async def claim_pending(self, user_id: str, email: str) -> int:
        try:
            async with self._pool.acquire() as conn:
                async with conn.transaction():
                    content = await conn.execute(
                        """
                        UPDATE content_shares SET shared_with_user_id = $1
                        WHERE shared_with_user_id IS NULL AND shared_with_email = $2
                        """,
                        user_id,
                        email.lower(),
                    )
                    keys = await conn.execute(
                        """
                        UPDATE memory_shares SET shared_with_user_id = $1
                        WHERE shared_with_user_id IS NULL AND shared_with_email = $2
                        """,
                        user_id,
                        email.lower(),
                    )
                return affected_rows(content) + affected_rows(keys)
        except Exception as e:
            logger.error("postgres_claim_shares_error", error=str(e))
            raise backend_error("Failed to claim shares", e) from e
