"""PostgreSQL implementation of AppStore (embeddings in a pgvector column)."""

import json
from typing import Any

from pydantic import BaseModel

from toolgate.apps.models import App, AppSearchHit
from toolgate.apps.store import AppStore, Rating
from toolgate.db.errors import ValidationError, backend_error
from toolgate.db.pool import PostgresPool
from toolgate.db.vectors import from_pgvector, to_pgvector
from toolgate.observability.logging import get_logger

logger = get_logger(__name__)

_COLUMNS = (
    "id, slug, name, description, owner_id, visibility, versions, current_version, "
    "exports, download_access, rate_limit_config, pricing_config, external_binding, "
    "env_schema, likes, dislikes, weighted_likes, weighted_dislikes, runs_30d, "
    "embedding::text AS embedding, skills_md, hosting_suspended, created_at, updated_at"
)
_JSON_FIELDS = {"rate_limit_config", "pricing_config", "env_schema"}
_UPDATABLE = {
    "name",
    "description",
    "visibility",
    "download_access",
    "rate_limit_config",
    "pricing_config",
    "external_binding",
    "env_schema",
    "embedding",
    "skills_md",
    "hosting_suspended",
    "runs_30d",
}


def _encode(field: str, value: Any) -> Any:
    if isinstance(value, BaseModel):
        value = value.model_dump()
    if field in _JSON_FIELDS:
        if field == "env_schema" and value is not None:
            value = {
                k: v.model_dump() if isinstance(v, BaseModel) else v for k, v in value.items()
            }
        return json.dumps(value) if value is not None else None
    if field == "embedding":
        return to_pgvector(value)
    if field == "visibility":
        return getattr(value, "value", value)
    return value


def _placeholder(field: str, index: int) -> str:
    if field in _JSON_FIELDS:
        return f"${index}::jsonb"
    if field == "embedding":
        return f"${index}::vector"
    return f"${index}"


class PostgresAppStore(AppStore):
    """PostgreSQL implementation of AppStore."""

    def __init__(self, pool: PostgresPool) -> None:
        self._pool = pool

    async def get(self, app_id: str) -> App | None:
        try:
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow(f"SELECT {_COLUMNS} FROM apps WHERE id = $1", app_id)
                return self._row_to_app(row) if row else None
        except Exception as e:
            logger.error("postgres_get_app_error", app_id=app_id, error=str(e))
            raise backend_error("Failed to get app", e) from e

    async def get_by_slug(self, slug: str, owner_id: str | None = None) -> App | None:
        query = f"SELECT {_COLUMNS} FROM apps WHERE slug = $1"
        params: list[Any] = [slug]
        if owner_id is not None:
            params.append(owner_id)
            query += " AND owner_id = $2"
        query += " ORDER BY created_at LIMIT 1"
        try:
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow(query, *params)
                return self._row_to_app(row) if row else None
        except Exception as e:
            logger.error("postgres_get_app_by_slug_error", slug=slug, error=str(e))
            raise backend_error("Failed to get app", e) from e

    async def get_many(self, app_ids: list[str]) -> list[App]:
        if not app_ids:
            return []
        try:
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(
                    f"SELECT {_COLUMNS} FROM apps WHERE id = ANY($1::text[])", app_ids
                )
                by_id = {row["id"]: self._row_to_app(row) for row in rows}
                return [by_id[a] for a in app_ids if a in by_id]
        except Exception as e:
            logger.error("postgres_get_apps_error", count=len(app_ids), error=str(e))
            raise backend_error("Failed to get apps", e) from e

    async def list_by_owner(self, owner_id: str) -> list[App]:
        try:
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(
                    f"SELECT {_COLUMNS} FROM apps WHERE owner_id = $1 ORDER BY created_at DESC",
                    owner_id,
                )
                return [self._row_to_app(row) for row in rows]
        except Exception as e:
            logger.error("postgres_list_apps_error", owner_id=owner_id, error=str(e))
            raise backend_error("Failed to list apps", e) from e

    async def create(self, app: App) -> App:
        try:
            async with self._pool.acquire() as conn:
                await conn.execute(
                    """
                    INSERT INTO apps (
                        id, slug, name, description, owner_id, visibility, versions,
                        current_version, exports, download_access, rate_limit_config,
                        pricing_config, external_binding, env_schema, embedding,
                        skills_md, hosting_suspended, created_at, updated_at
                    ) VALUES (
                        $1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11::jsonb, $12::jsonb,
                        $13, $14::jsonb, $15::vector, $16, $17, $18, $19
                    )
                    """,
                    app.id,
                    app.slug,
                    app.name,
                    app.description,
                    app.owner_id,
                    app.visibility.value,
                    app.versions,
                    app.current_version,
                    app.exports,
                    app.download_access,
                    _encode("rate_limit_config", app.rate_limit_config),
                    _encode("pricing_config", app.pricing_config),
                    app.external_binding,
                    _encode("env_schema", app.env_schema),
                    to_pgvector(app.embedding),
                    app.skills_md,
                    app.hosting_suspended,
                    app.created_at,
                    app.updated_at,
                )
                return app
        except Exception as e:
            logger.error("postgres_create_app_error", app_id=app.id, error=str(e))
            raise backend_error("Failed to create app", e) from e

    async def append_version(self, app_id: str, version: str) -> App | None:
        try:
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"""
                    UPDATE apps SET versions = array_append(versions, $2), updated_at = NOW()
                    WHERE id = $1 AND NOT ($2 = ANY(versions))
                    RETURNING {_COLUMNS}
                    """,
                    app_id,
                    version,
                )
                return self._row_to_app(row) if row else None
        except Exception as e:
            logger.error("postgres_append_version_error", app_id=app_id, error=str(e))
            raise backend_error("Failed to append version", e) from e

    async def set_live_version(
        self,
        app_id: str,
        version: str,
        exports: list[str],
    ) -> App | None:
        try:
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"""
                    UPDATE apps SET current_version = $2, exports = $3, updated_at = NOW()
                    WHERE id = $1 AND $2 = ANY(versions)
                    RETURNING {_COLUMNS}
                    """,
                    app_id,
                    version,
                    exports,
                )
                return self._row_to_app(row) if row else None
        except Exception as e:
            logger.error("postgres_set_live_error", app_id=app_id, error=str(e))
            raise backend_error("Failed to set live version", e) from e

    async def update_fields(self, app_id: str, fields: dict[str, Any]) -> App | None:
        unknown = set(fields) - _UPDATABLE
        if unknown:
            raise ValidationError(f"Cannot update app fields: {sorted(unknown)}")
        if not fields:
            return await self.get(app_id)

        names = list(fields)
        assignments = [f"{name} = {_placeholder(name, i)}" for i, name in enumerate(names, 2)]
        values = [_encode(name, fields[name]) for name in names]
        try:
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"""
                    UPDATE apps SET {", ".join(assignments)}, updated_at = NOW()
                    WHERE id = $1
                    RETURNING {_COLUMNS}
                    """,
                    app_id,
                    *values,
                )
                return self._row_to_app(row) if row else None
        except Exception as e:
            logger.error("postgres_update_app_error", app_id=app_id, error=str(e))
            raise backend_error("Failed to update app", e) from e

    async def list_featured(self, limit: int) -> list[App]:
        try:
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(
                    f"""
                    SELECT {_COLUMNS} FROM apps
                    WHERE visibility = 'public' AND NOT hosting_suspended
                    ORDER BY weighted_likes DESC, likes DESC, runs_30d DESC
                    LIMIT $1
                    """,
                    limit,
                )
                return [self._row_to_app(row) for row in rows]
        except Exception as e:
            logger.error("postgres_list_featured_error", error=str(e))
            raise backend_error("Failed to list featured apps", e) from e

    async def search_by_embedding(
        self,
        embedding: list[float],
        limit: int,
        min_similarity: float,
        *,
        public_only: bool = True,
        app_ids: list[str] | None = None,
    ) -> list[AppSearchHit]:
        query = f"""
            SELECT {_COLUMNS}, 1 - (embedding <=> $1::vector) AS similarity
            FROM apps
            WHERE embedding IS NOT NULL AND NOT hosting_suspended
              AND 1 - (embedding <=> $1::vector) >= $2
        """
        params: list[Any] = [to_pgvector(embedding), min_similarity]
        if public_only:
            query += " AND visibility = 'public'"
        if app_ids is not None:
            params.append(app_ids)
            query += f" AND id = ANY(${len(params)}::text[])"
        params.append(limit)
        query += f" ORDER BY embedding <=> $1::vector LIMIT ${len(params)}"
        try:
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(query, *params)
                return [
                    AppSearchHit(app=self._row_to_app(row), similarity=float(row["similarity"]))
                    for row in rows
                ]
        except Exception as e:
            logger.error("postgres_search_apps_error", error=str(e))
            raise backend_error("Failed to search apps", e) from e

    async def get_rating(self, app_id: str, user_id: str) -> Rating | None:
        try:
            async with self._pool.acquire() as conn:
                positive = await conn.fetchval(
                    "SELECT positive FROM app_likes WHERE app_id = $1 AND user_id = $2",
                    app_id,
                    user_id,
                )
        except Exception as e:
            logger.error("postgres_get_rating_error", app_id=app_id, error=str(e))
            raise backend_error("Failed to get rating", e) from e
        if positive is None:
            return None
        return "like" if positive else "dislike"

    async def set_rating(
        self,
        app_id: str,
        user_id: str,
        rating: Rating | None,
        weighted: bool,
    ) -> App | None:
        try:
            async with self._pool.acquire() as conn:
                async with conn.transaction():
                    previous = await conn.fetchrow(
                        """
                        DELETE FROM app_likes WHERE app_id = $1 AND user_id = $2
                        RETURNING positive, weighted
                        """,
                        app_id,
                        user_id,
                    )
                    if previous is not None:
                        await self._adjust(
                            conn, app_id, previous["positive"], previous["weighted"], -1
                        )
                    if rating is not None:
                        await conn.execute(
                            """
                            INSERT INTO app_likes (app_id, user_id, positive, weighted)
                            VALUES ($1, $2, $3, $4)
                            """,
                            app_id,
                            user_id,
                            rating == "like",
                            weighted,
                        )
                        await self._adjust(conn, app_id, rating == "like", weighted, 1)
                    row = await conn.fetchrow(f"SELECT {_COLUMNS} FROM apps WHERE id = $1", app_id)
                return self._row_to_app(row) if row else None
        except Exception as e:
            logger.error("postgres_set_rating_error", app_id=app_id, error=str(e))
            raise backend_error("Failed to set rating", e) from e

    async def _adjust(
        self, conn: Any, app_id: str, positive: bool, weighted: bool, delta: int
    ) -> None:
        column = "likes" if positive else "dislikes"
        assignments = [f"{column} = GREATEST(0, {column} + $2)"]
        if weighted:
            assignments.append(f"weighted_{column} = GREATEST(0, weighted_{column} + $2)")
        await conn.execute(
            f"UPDATE apps SET {', '.join(assignments)} WHERE id = $1", app_id, delta
        )

    async def save_to_library(self, user_id: str, app_id: str) -> None:
        await self._execute(
            "postgres_save_library_error",
            """
            INSERT INTO user_app_library (user_id, app_id) VALUES ($1, $2)
            ON CONFLICT (user_id, app_id) DO NOTHING
            """,
            user_id,
            app_id,
        )

    async def remove_from_library(self, user_id: str, app_id: str) -> None:
        await self._execute(
            "postgres_remove_library_error",
            "DELETE FROM user_app_library WHERE user_id = $1 AND app_id = $2",
            user_id,
            app_id,
        )

    async def list_library(self, user_id: str) -> list[str]:
        return await self._fetch_ids(
            "SELECT app_id FROM user_app_library WHERE user_id = $1 ORDER BY created_at DESC",
            user_id,
        )

    async def block(self, user_id: str, app_id: str) -> None:
        await self._execute(
            "postgres_block_app_error",
            """
            INSERT INTO user_app_blocks (user_id, app_id) VALUES ($1, $2)
            ON CONFLICT (user_id, app_id) DO NOTHING
            """,
            user_id,
            app_id,
        )

    async def unblock(self, user_id: str, app_id: str) -> None:
        await self._execute(
            "postgres_unblock_app_error",
            "DELETE FROM user_app_blocks WHERE user_id = $1 AND app_id = $2",
            user_id,
            app_id,
        )

    async def list_blocked(self, user_id: str) -> list[str]:
        return await self._fetch_ids(
            "SELECT app_id FROM user_app_blocks WHERE user_id = $1", user_id
        )

    async def _execute(self, event: str, query: str, *params: Any) -> None:
        try:
            async with self._pool.acquire() as conn:
                await conn.execute(query, *params)
        except Exception as e:
            logger.error(event, error=str(e))
            raise backend_error("Failed to update app engagement", e) from e

    async def _fetch_ids(self, query: str, user_id: str) -> list[str]:
        try:
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(query, user_id)
                return [row["app_id"] for row in rows]
        except Exception as e:
            logger.error("postgres_list_app_ids_error", error=str(e))
            raise backend_error("Failed to list apps", e) from e

    def _row_to_app(self, row: Any) -> App:
        data = {
            key: row[key]
            for key in (
                "id",
                "slug",
                "name",
                "description",
                "owner_id",
                "visibility",
                "current_version",
                "download_access",
                "external_binding",
                "likes",
                "dislikes",
                "weighted_likes",
                "weighted_dislikes",
                "runs_30d",
                "skills_md",
                "hosting_suspended",
                "created_at",
                "updated_at",
            )
        }
        for field in _JSON_FIELDS:
            value = row[field]
            data[field] = json.loads(value) if isinstance(value, str) else value
        data["env_schema"] = data["env_schema"] or {}
        data["versions"] = list(row["versions"] or [])
        data["exports"] = list(row["exports"] or [])
        data["embedding"] = from_pgvector(row["embedding"])
        return App.model_validate(data)
