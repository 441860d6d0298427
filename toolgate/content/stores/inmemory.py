"""In-memory implementations of ContentStore and MemoryStore."""

import asyncio
from typing import Any

from toolgate.content.models import (
    Content,
    ContentSearchHit,
    ContentType,
    MemoryEntry,
    utc_now,
)
from toolgate.content.store import ContentStore, MemoryStore
from toolgate.db.vectors import cosine_similarity


class InMemoryContentStore(ContentStore):
    """In-memory implementation of ContentStore for testing and development."""

    def __init__(self) -> None:
        self._contents: dict[str, Content] = {}
        self._lock = asyncio.Lock()

    async def get(self, owner_id: str, type: ContentType, slug: str) -> Content | None:
        for content in self._contents.values():
            if content.owner_id == owner_id and content.type == type and content.slug == slug:
                return content
        return None

    async def get_by_id(self, content_id: str) -> Content | None:
        return self._contents.get(content_id)

    async def get_many(self, content_ids: list[str]) -> list[Content]:
        return [self._contents[c] for c in content_ids if c in self._contents]

    async def upsert(self, content: Content) -> Content:
        async with self._lock:
            existing = await self.get(content.owner_id, content.type, content.slug)
            if existing is not None:
                content = content.model_copy(
                    update={
                        "id": existing.id,
                        "created_at": existing.created_at,
                        "access_token": existing.access_token,
                        "updated_at": utc_now(),
                    }
                )
            self._contents[content.id] = content
            return content

    async def update_fields(self, content_id: str, fields: dict[str, Any]) -> Content | None:
        async with self._lock:
            content = self._contents.get(content_id)
            if content is None:
                return None
            updated = content.model_copy(update={**fields, "updated_at": utc_now()})
            self._contents[content_id] = updated
            return updated

    async def list_by_owner(
        self,
        owner_id: str,
        type: ContentType | None = None,
    ) -> list[Content]:
        rows = [
            c
            for c in self._contents.values()
            if c.owner_id == owner_id and (type is None or c.type == type)
        ]
        return sorted(rows, key=lambda c: c.updated_at, reverse=True)

    async def search_pages(
        self,
        embedding: list[float],
        limit: int,
        min_similarity: float,
    ) -> list[ContentSearchHit]:
        hits = []
        for content in self._contents.values():
            if (
                content.type != "page"
                or content.visibility != "public"
                or not content.published
                or content.hosting_suspended
                or content.embedding is None
            ):
                continue
            similarity = cosine_similarity(embedding, content.embedding)
            if similarity >= min_similarity:
                hits.append(ContentSearchHit(content=content, similarity=similarity))
        hits.sort(key=lambda h: h.similarity, reverse=True)
        return hits[:limit]


class InMemoryMemoryStore(MemoryStore):
    """In-memory implementation of MemoryStore for testing and development."""

    def __init__(self) -> None:
        self._entries: dict[tuple[str, str, str], MemoryEntry] = {}

    async def get_entry(self, owner_id: str, scope: str, key: str) -> MemoryEntry | None:
        return self._entries.get((owner_id, scope, key))

    async def set_entry(self, owner_id: str, scope: str, key: str, value: Any) -> MemoryEntry:
        existing = self._entries.get((owner_id, scope, key))
        entry = MemoryEntry(
            owner_id=owner_id,
            scope=scope,
            key=key,
            value=value,
            created_at=existing.created_at if existing else utc_now(),
        )
        self._entries[(owner_id, scope, key)] = entry
        return entry

    async def delete_entry(self, owner_id: str, scope: str, key: str) -> bool:
        return self._entries.pop((owner_id, scope, key), None) is not None

    async def query(
        self,
        owner_id: str,
        scope: str,
        prefix: str | None = None,
        limit: int = 100,
    ) -> list[MemoryEntry]:
        rows = [
            e
            for (owner, entry_scope, key), e in self._entries.items()
            if owner == owner_id
            and entry_scope == scope
            and (prefix is None or key.startswith(prefix))
        ]
        rows.sort(key=lambda e: e.updated_at, reverse=True)
        return rows[:limit]
