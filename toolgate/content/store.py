"""ContentStore and MemoryStore abstract interfaces."""

from abc import ABC, abstractmethod
from typing import Any

from toolgate.content.models import Content, ContentSearchHit, ContentType, MemoryEntry


class ContentStore(ABC):
    """Abstract interface for user documents."""

    @abstractmethod
    async def get(self, owner_id: str, type: ContentType, slug: str) -> Content | None:
        """Get a document by its natural key."""
        pass

    @abstractmethod
    async def get_by_id(self, content_id: str) -> Content | None:
        pass

    @abstractmethod
    async def get_many(self, content_ids: list[str]) -> list[Content]:
        pass

    @abstractmethod
    async def upsert(self, content: Content) -> Content:
        """Insert or replace a document.

        An existing row keeps its id, created_at and access token.
        """
        pass

    @abstractmethod
    async def update_fields(self, content_id: str, fields: dict[str, Any]) -> Content | None:
        """Overwrite the given columns of a document."""
        pass

    @abstractmethod
    async def list_by_owner(
        self,
        owner_id: str,
        type: ContentType | None = None,
    ) -> list[Content]:
        """List an owner's documents, most recently updated first."""
        pass

    @abstractmethod
    async def search_pages(
        self,
        embedding: list[float],
        limit: int,
        min_similarity: float,
    ) -> list[ContentSearchHit]:
        """Vector search over public, published, non-suspended pages."""
        pass


class MemoryStore(ABC):
    """Abstract interface for key/value memory."""

    @abstractmethod
    async def get_entry(self, owner_id: str, scope: str, key: str) -> MemoryEntry | None:
        pass

    @abstractmethod
    async def set_entry(self, owner_id: str, scope: str, key: str, value: Any) -> MemoryEntry:
        """Insert or overwrite a value, preserving created_at."""
        pass

    @abstractmethod
    async def delete_entry(self, owner_id: str, scope: str, key: str) -> bool:
        """Delete a key. Returns True if it existed."""
        pass

    @abstractmethod
    async def query(
        self,
        owner_id: str,
        scope: str,
        prefix: str | None = None,
        limit: int = 100,
    ) -> list[MemoryEntry]:
        """Entries of a scope, most recently updated first."""
        pass
