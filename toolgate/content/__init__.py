"""Content layer: pages, memory.md, library.md and key/value memory."""

from toolgate.content.models import Content, ContentType, MemoryEntry
from toolgate.content.store import ContentStore, MemoryStore

__all__ = ["Content", "ContentStore", "ContentType", "MemoryEntry", "MemoryStore"]
