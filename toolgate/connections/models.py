"""Per-caller secret models."""

from datetime import UTC, datetime

from pydantic import BaseModel, Field


def utc_now() -> datetime:
    """Return current UTC time."""
    return datetime.now(UTC)


class Secret(BaseModel):
    """An encrypted value a caller supplies for one app. Unique on (user, app, key)."""

    user_id: str
    app_id: str
    key: str
    value_encrypted: str
    updated_at: datetime = Field(default_factory=utc_now)
