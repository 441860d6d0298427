"""Sharing models: per-document shares and key-pattern shares."""

import uuid
from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, Field

AccessLevel = Literal["read", "readwrite"]
ShareKind = Literal["page", "memory_md", "library_md", "memory_kv"]
DOCUMENT_KINDS: tuple[str, ...] = ("page", "memory_md", "library_md")


def utc_now() -> datetime:
    """Return current UTC time."""
    return datetime.now(UTC)


class ContentShare(BaseModel):
    """A document shared with one email. Unique on (content, email)."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    content_id: str
    owner_id: str
    shared_with_email: str
    shared_with_user_id: str | None = None
    access_level: AccessLevel = "read"
    expires_at: datetime | None = None
    created_at: datetime = Field(default_factory=utc_now)

    def is_expired(self, now: datetime | None = None) -> bool:
        return self.expires_at is not None and (now or utc_now()) >= self.expires_at


class KeyShare(BaseModel):
    """Key/value memory shared by pattern. Unique on (owner, scope, pattern, email)."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    owner_id: str
    scope: str = "user"
    key_pattern: str
    shared_with_email: str
    shared_with_user_id: str | None = None
    access_level: AccessLevel = "read"
    created_at: datetime = Field(default_factory=utc_now)
