"""Feedback models: agent-reported shortcomings and curated capability gaps."""

import uuid
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

ShortcomingType = Literal[
    "capability_gap",
    "tool_failure",
    "user_friction",
    "schema_confusion",
    "protocol_limitation",
    "quality_issue",
]
GapSeverity = Literal["low", "medium", "high", "critical"]
GapStatus = Literal["open", "claimed", "fulfilled", "closed"]


def utc_now() -> datetime:
    """Return current UTC time."""
    return datetime.now(UTC)


class Shortcoming(BaseModel):
    """Something an agent could not do well on the platform."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    session_id: str | None = None
    type: ShortcomingType
    summary: str
    context: dict[str, Any] | None = None
    created_at: datetime = Field(default_factory=utc_now)


class Gap(BaseModel):
    """A capability the platform wants someone to build."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    title: str
    description: str | None = None
    severity: GapSeverity = "medium"
    points_value: int = 100
    season: int = 1
    status: GapStatus = "open"
    created_at: datetime = Field(default_factory=utc_now)
