"""App (published resource) models."""

from datetime import UTC, datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field


def utc_now() -> datetime:
    """Return current UTC time."""
    return datetime.now(UTC)


class Visibility(str, Enum):
    """Who can see and discover an app."""

    PRIVATE = "private"
    UNLISTED = "unlisted"
    PUBLIC = "public"


class EnvSchemaEntry(BaseModel):
    """Declaration of one secret an app reads from its environment."""

    scope: Literal["universal", "per_user"] = "per_user"
    required: bool = False
    description: str | None = None


class RateLimitSettings(BaseModel):
    """Per-consumer call limits for an app."""

    calls_per_minute: int | None = Field(default=None, ge=1, le=10_000)
    calls_per_day: int | None = Field(default=None, ge=1, le=1_000_000)


class PricingSettings(BaseModel):
    """Per-call prices charged to consumers of an app."""

    default_price_cents: int = Field(default=0, ge=0)
    functions: dict[str, int] = Field(default_factory=dict)


class App(BaseModel):
    """A published unit of tool functionality.

    Invariant: current_version is always a member of versions.
    """

    id: str = Field(..., description="App identifier")
    slug: str = Field(..., description="Human slug, unique per owner")
    name: str
    description: str | None = None
    owner_id: str
    visibility: Visibility = Visibility.PRIVATE
    versions: list[str] = Field(default_factory=lambda: ["1.0.0"])
    current_version: str = "1.0.0"
    exports: list[str] = Field(default_factory=list)
    download_access: Literal["owner", "public"] = "owner"
    rate_limit_config: RateLimitSettings | None = None
    pricing_config: PricingSettings | None = None
    external_binding: str | None = None
    env_schema: dict[str, EnvSchemaEntry] = Field(default_factory=dict)

    likes: int = 0
    dislikes: int = 0
    weighted_likes: int = 0
    weighted_dislikes: int = 0
    runs_30d: int = 0

    embedding: list[float] | None = None
    skills_md: str | None = None
    hosting_suspended: bool = False
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def is_public(self) -> bool:
        return self.visibility == Visibility.PUBLIC

    def required_secrets(self) -> list[str]:
        """Per-user secrets a caller must supply."""
        return sorted(
            key
            for key, entry in self.env_schema.items()
            if entry.scope == "per_user" and entry.required
        )

    def per_user_secrets(self) -> list[str]:
        return sorted(k for k, e in self.env_schema.items() if e.scope == "per_user")


class RatingAction(str, Enum):
    """Outcome of a like/dislike toggle."""

    LIKED = "liked"
    DISLIKED = "disliked"
    UNLIKED = "unliked"
    UNDISLIKED = "undisliked"


class AppSearchHit(BaseModel):
    """An app returned by a similarity search."""

    app: App
    similarity: float
