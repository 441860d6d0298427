"""Content layer models: documents (pages, memory.md, library.md) and KV memory."""

import uuid
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

ContentType = Literal["page", "memory_md", "library_md"]
ContentVisibility = Literal["private", "public", "shared"]

MEMORY_SLUG = "_memory"
LIBRARY_SLUG = "_library"


def utc_now() -> datetime:
    """Return current UTC time."""
    return datetime.now(UTC)


class Content(BaseModel):
    """A markdown document owned by a user. Unique on (owner, type, slug)."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    owner_id: str
    type: ContentType
    slug: str
    title: str | None = None
    body: str = ""
    size: int = 0
    visibility: ContentVisibility = "private"
    access_token: str | None = Field(default=None, description="Token for link-based reads")
    published: bool = True
    hosting_suspended: bool = False
    embedding: list[float] | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class ContentSearchHit(BaseModel):
    """A document returned by a similarity search."""

    content: Content
    similarity: float


class MemoryEntry(BaseModel):
    """One key/value pair of a user's structured memory."""

    owner_id: str
    scope: str = "user"
    key: str
    value: Any = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
