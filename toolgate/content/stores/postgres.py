"""PostgreSQL implementations of ContentStore and MemoryStore."""

import json
from typing import Any

from toolgate.content.models import Content, ContentSearchHit, ContentType, MemoryEntry
from toolgate.content.store import ContentStore, MemoryStore
from toolgate.db.errors import ValidationError, backend_error
from toolgate.db.pool import PostgresPool, affected_rows
from toolgate.db.vectors import from_pgvector, to_pgvector
from toolgate.observability.logging import get_logger

logger = get_logger(__name__)

_COLUMNS = (
    "id, owner_id, type, slug, title, body, size, visibility, access_token, published, "
    "hosting_suspended, embedding::text AS embedding, created_at, updated_at"
)
_UPDATABLE = {
    "title",
    "body",
    "size",
    "visibility",
    "access_token",
    "published",
    "hosting_suspended",
    "embedding",
}


class PostgresContentStore(ContentStore):
    """PostgreSQL implementation of ContentStore."""

    def __init__(self, pool: PostgresPool) -> None:
        self._pool = pool

    async def get(self, owner_id: str, type: ContentType, slug: str) -> Content | None:
        try:
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"""
                    SELECT {_COLUMNS} FROM content
                    WHERE owner_id = $1 AND type = $2 AND slug = $3
                    """,
                    owner_id,
                    type,
                    slug,
                )
                return self._row_to_content(row) if row else None
        except Exception as e:
            logger.error("postgres_get_content_error", type=type, slug=slug, error=str(e))
            raise backend_error("Failed to get content", e) from e

    async def get_by_id(self, content_id: str) -> Content | None:
        try:
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"SELECT {_COLUMNS} FROM content WHERE id = $1", content_id
                )
                return self._row_to_content(row) if row else None
        except Exception as e:
            logger.error("postgres_get_content_error", content_id=content_id, error=str(e))
            raise backend_error("Failed to get content", e) from e

    async def get_many(self, content_ids: list[str]) -> list[Content]:
        if not content_ids:
            return []
        try:
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(
                    f"SELECT {_COLUMNS} FROM content WHERE id = ANY($1::text[])",
                    content_ids,
                )
                return [self._row_to_content(row) for row in rows]
        except Exception as e:
            logger.error("postgres_get_contents_error", error=str(e))
            raise backend_error("Failed to get content", e) from e

    async def upsert(self, content: Content) -> Content:
        try:
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"""
                    INSERT INTO content (
                        id, owner_id, type, slug, title, body, size, visibility,
                        access_token, published, hosting_suspended, embedding,
                        created_at, updated_at
                    ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12::vector, $13, $13)
                    ON CONFLICT (owner_id, type, slug) DO UPDATE SET
                        title = EXCLUDED.title,
                        body = EXCLUDED.body,
                        size = EXCLUDED.size,
                        visibility = EXCLUDED.visibility,
                        published = EXCLUDED.published,
                        embedding = COALESCE(EXCLUDED.embedding, content.embedding),
                        updated_at = NOW()
                    RETURNING {_COLUMNS}
                    """,
                    content.id,
                    content.owner_id,
                    content.type,
                    content.slug,
                    content.title,
                    content.body,
                    content.size,
                    content.visibility,
                    content.access_token,
                    content.published,
                    content.hosting_suspended,
                    to_pgvector(content.embedding),
                    content.created_at,
                )
                return self._row_to_content(row)
        except Exception as e:
            logger.error("postgres_upsert_content_error", slug=content.slug, error=str(e))
            raise backend_error("Failed to upsert content", e) from e

    async def update_fields(self, content_id: str, fields: dict[str, Any]) -> Content | None:
        unknown = set(fields) - _UPDATABLE
        if unknown:
            raise ValidationError(f"Cannot update content fields: {sorted(unknown)}")
        names = list(fields)
        assignments = [
            f"{name} = ${i}::vector" if name == "embedding" else f"{name} = ${i}"
            for i, name in enumerate(names, 2)
        ]
        values = [
            to_pgvector(fields[name]) if name == "embedding" else fields[name] for name in names
        ]
        try:
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"""
                    UPDATE content SET {", ".join(assignments)}, updated_at = NOW()
                    WHERE id = $1
                    RETURNING {_COLUMNS}
                    """,
                    content_id,
                    *values,
                )
                return self._row_to_content(row) if row else None
        except Exception as e:
            logger.error("postgres_update_content_error", content_id=content_id, error=str(e))
            raise backend_error("Failed to update content", e) from e

    async def list_by_owner(
        self,
        owner_id: str,
        type: ContentType | None = None,
    ) -> list[Content]:
        query = f"SELECT {_COLUMNS} FROM content WHERE owner_id = $1"
        params: list[Any] = [owner_id]
        if type is not None:
            params.append(type)
            query += " AND type = $2"
        query += " ORDER BY updated_at DESC"
        try:
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(query, *params)
                return [self._row_to_content(row) for row in rows]
        except Exception as e:
            logger.error("postgres_list_content_error", owner_id=owner_id, error=str(e))
            raise backend_error("Failed to list content", e) from e

    async def search_pages(
        self,
        embedding: list[float],
        limit: int,
        min_similarity: float,
    ) -> list[ContentSearchHit]:
        try:
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(
                    f"""
                    SELECT {_COLUMNS}, 1 - (embedding <=> $1::vector) AS similarity
                    FROM content
                    WHERE type = 'page' AND visibility = 'public' AND published
                      AND NOT hosting_suspended AND embedding IS NOT NULL
                      AND 1 - (embedding <=> $1::vector) >= $2
                    ORDER BY embedding <=> $1::vector
                    LIMIT $3
                    """,
                    to_pgvector(embedding),
                    min_similarity,
                    limit,
                )
                return [
                    ContentSearchHit(
                        content=self._row_to_content(row),
                        similarity=float(row["similarity"]),
                    )
                    for row in rows
                ]
        except Exception as e:
            logger.error("postgres_search_pages_error", error=str(e))
            raise backend_error("Failed to search pages", e) from e

    def _row_to_content(self, row: Any) -> Content:
        return Content(
            id=row["id"],
            owner_id=row["owner_id"],
            type=row["type"],
            slug=row["slug"],
            title=row["title"],
            body=row["body"] or "",
            size=row["size"] or 0,
            visibility=row["visibility"],
            access_token=row["access_token"],
            published=row["published"],
            hosting_suspended=row["hosting_suspended"],
            embedding=from_pgvector(row["embedding"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


class PostgresMemoryStore(MemoryStore):
    """PostgreSQL implementation of MemoryStore (values stored as JSONB)."""

    def __init__(self, pool: PostgresPool) -> None:
        self._pool = pool

    async def get_entry(self, owner_id: str, scope: str, key: str) -> MemoryEntry | None:
        try:
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow(
                    """
                    SELECT owner_id, scope, key, value, created_at, updated_at
                    FROM memory_entries WHERE owner_id = $1 AND scope = $2 AND key = $3
                    """,
                    owner_id,
                    scope,
                    key,
                )
                return self._row_to_entry(row) if row else None
        except Exception as e:
            logger.error("postgres_get_memory_error", scope=scope, error=str(e))
            raise backend_error("Failed to read memory", e) from e

    async def set_entry(self, owner_id: str, scope: str, key: str, value: Any) -> MemoryEntry:
        try:
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow(
                    """
                    INSERT INTO memory_entries (owner_id, scope, key, value)
                    VALUES ($1, $2, $3, $4::jsonb)
                    ON CONFLICT (owner_id, scope, key) DO UPDATE SET
                        value = EXCLUDED.value,
                        updated_at = NOW()
                    RETURNING owner_id, scope, key, value, created_at, updated_at
                    """,
                    owner_id,
                    scope,
                    key,
                    json.dumps(value),
                )
                return self._row_to_entry(row)
        except Exception as e:
            logger.error("postgres_set_memory_error", scope=scope, error=str(e))
            raise backend_error("Failed to write memory", e) from e

    async def delete_entry(self, owner_id: str, scope: str, key: str) -> bool:
        try:
            async with self._pool.acquire() as conn:
                status = await conn.execute(
                    "DELETE FROM memory_entries WHERE owner_id = $1 AND scope = $2 AND key = $3",
                    owner_id,
                    scope,
                    key,
                )
                return affected_rows(status) > 0
        except Exception as e:
            logger.error("postgres_delete_memory_error", scope=scope, error=str(e))
            raise backend_error("Failed to delete memory", e) from e

    async def query(
        self,
        owner_id: str,
        scope: str,
        prefix: str | None = None,
        limit: int = 100,
    ) -> list[MemoryEntry]:
        query = """
            SELECT owner_id, scope, key, value, created_at, updated_at
            FROM memory_entries WHERE owner_id = $1 AND scope = $2
        """
        params: list[Any] = [owner_id, scope]
        if prefix:
            params.append(prefix)
            query += " AND starts_with(key, $3)"
        params.append(limit)
        query += f" ORDER BY updated_at DESC LIMIT ${len(params)}"
        try:
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(query, *params)
                return [self._row_to_entry(row) for row in rows]
        except Exception as e:
            logger.error("postgres_query_memory_error", scope=scope, error=str(e))
            raise backend_error("Failed to query memory", e) from e

    def _row_to_entry(self, row: Any) -> MemoryEntry:
        value = row["value"]
        return MemoryEntry(
            owner_id=row["owner_id"],
            scope=row["scope"],
            key=row["key"],
            value=json.loads(value) if isinstance(value, str) else value,
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
