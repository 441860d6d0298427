"""In-memory implementation of BlobStore."""

from toolgate.providers.blob.base import BlobStore


class InMemoryBlobStore(BlobStore):
    """In-memory implementation of BlobStore for testing and development."""

    def __init__(self) -> None:
        self._objects: dict[str, bytes] = {}

    async def put(self, key: str, data: bytes, content_type: str | None = None) -> None:
        self._objects[key] = bytes(data)

    async def get(self, key: str) -> bytes | None:
        return self._objects.get(key)

    async def list_keys(self, prefix: str) -> list[str]:
        return sorted(k for k in self._objects if k.startswith(prefix))

    async def delete(self, key: str) -> None:
        self._objects.pop(key, None)
