"""BlobStore abstract interface for version artifacts and documents."""

from abc import ABC, abstractmethod


class BlobStore(ABC):
    """Key/value byte storage addressed by slash-separated keys."""

    @abstractmethod
    async def put(self, key: str, data: bytes, content_type: str | None = None) -> None:
        """Store data under key, replacing any previous object."""
        pass

    @abstractmethod
    async def get(self, key: str) -> bytes | None:
        """Return the object under key, or None if absent."""
        pass

    @abstractmethod
    async def list_keys(self, prefix: str) -> list[str]:
        """Return every key starting with prefix."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove the object under key if it exists."""
        pass

    async def put_text(self, key: str, text: str, content_type: str = "text/plain") -> None:
        await self.put(key, text.encode("utf-8"), content_type)

    async def get_text(self, key: str) -> str | None:
        data = await self.get(key)
        return data.decode("utf-8") if data is not None else None
