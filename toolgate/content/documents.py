"""memory.md and library.md: per-user markdown documents."""

from toolgate.content.models import LIBRARY_SLUG, MEMORY_SLUG, Content, ContentType, utc_now
from toolgate.content.store import ContentStore
from toolgate.gateway.errors import validation_error
from toolgate.gateway.sink import BestEffortSink
from toolgate.observability.logging import get_logger
from toolgate.providers.blob.base import BlobStore

logger = get_logger(__name__)

MEMORY_MAX_BYTES = 50 * 1024
MEMORY_HEADER = "# Memory\n\nPersonal context and preferences."

_SLUGS: dict[str, str] = {"memory_md": MEMORY_SLUG, "library_md": LIBRARY_SLUG}
_TITLES: dict[str, str] = {"memory_md": "memory.md", "library_md": "library.md"}


class DocumentService:
    """Reads and writes the two singleton documents every user has."""

    def __init__(self, contents: ContentStore, blob: BlobStore, sink: BestEffortSink) -> None:
        self._contents = contents
        self._blob = blob
        self._sink = sink

    async def get(self, owner_id: str, kind: ContentType) -> Content | None:
        return await self._contents.get(owner_id, kind, _SLUGS[kind])

    async def read_memory(self, owner_id: str) -> str | None:
        doc = await self.get(owner_id, "memory_md")
        return doc.body if doc else None

    async def write_memory(self, owner_id: str, body: str) -> Content:
        size = len(body.encode("utf-8"))
        if size > MEMORY_MAX_BYTES:
            raise validation_error(
                f"memory.md exceeds {MEMORY_MAX_BYTES // 1024}KB limit "
                f"({size / 1024:.1f}KB). Trim content or use key/value memory."
            )
        previous = await self.get(owner_id, "memory_md")
        if previous is not None and previous.body:
            self._sink.submit("memory_snapshot", self._snapshot(owner_id, previous.body))
        return await self._write(owner_id, "memory_md", body, previous)

    async def append_memory(self, owner_id: str, section: str) -> Content:
        existing = await self.read_memory(owner_id)
        body = (existing or MEMORY_HEADER) + "\n\n" + section
        return await self.write_memory(owner_id, body)

    async def read_library(self, owner_id: str) -> str | None:
        doc = await self.get(owner_id, "library_md")
        return doc.body if doc else None

    async def write_library(self, owner_id: str, body: str) -> Content:
        previous = await self.get(owner_id, "library_md")
        return await self._write(owner_id, "library_md", body, previous)

    async def ensure(self, owner_id: str, kind: ContentType, body: str = "") -> Content:
        """Return the document, creating it from body when missing."""
        doc = await self.get(owner_id, kind)
        if doc is not None:
            return doc
        return await self._write(owner_id, kind, body, None)

    async def _write(
        self,
        owner_id: str,
        kind: ContentType,
        body: str,
        previous: Content | None,
    ) -> Content:
        return await self._contents.upsert(
            Content(
                owner_id=owner_id,
                type=kind,
                slug=_SLUGS[kind],
                title=_TITLES[kind],
                body=body,
                size=len(body.encode("utf-8")),
                visibility=previous.visibility if previous else "private",
            )
        )

    async def _snapshot(self, owner_id: str, body: str) -> None:
        stamp = utc_now().strftime("%Y-%m-%dT%H-%M-%S-%fZ")
        await self._blob.put_text(
            f"users/{owner_id}/memory_snapshots/{stamp}.md", body, "text/markdown"
        )
