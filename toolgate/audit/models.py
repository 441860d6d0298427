"""Audit trail models: one record per capability invocation and per ranked query."""

import json
import uuid
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field


def utc_now() -> datetime:
    """Return current UTC time."""
    return datetime.now(UTC)


def truncate_payload(value: Any, max_size: int = 10_000, preview_chars: int = 500) -> Any:
    """Replace a value whose JSON form is larger than max_size with a preview."""
    if value is None:
        return None
    try:
        serialized = json.dumps(value, default=str)
    except (TypeError, ValueError):
        serialized = str(value)
    if len(serialized) <= max_size:
        return value
    return {
        "_truncated": True,
        "_original_size": len(serialized),
        "_preview": serialized[:preview_chars],
    }


class CallRecord(BaseModel):
    """One capability invocation."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    app_id: str | None = None
    app_name: str | None = None
    function_name: str
    method: str
    success: bool
    duration_ms: int | None = None
    error_message: str | None = None
    input_args: Any = None
    output_result: Any = None
    user_tier: str | None = None
    session_id: str | None = None
    user_query: str | None = None
    caller_ip: str | None = None
    created_at: datetime = Field(default_factory=utc_now)


class RankedResult(BaseModel):
    """Position and scores of one returned discovery candidate."""

    id: str
    kind: str
    position: int
    final_score: float
    similarity: float


class DiscoveryQueryRecord(BaseModel):
    """One search-mode discovery query and what it returned."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    query: str
    top_similarity: float | None = None
    top_final_score: float | None = None
    result_count: int = 0
    results: list[RankedResult] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
