"""Discovery candidate model."""

from typing import Any, Literal

from pydantic import BaseModel, Field

CandidateKind = Literal["app", "page"]


class DiscoveryCandidate(BaseModel):
    """A scored item produced during a discovery query, before final ordering."""

    id: str
    kind: CandidateKind
    similarity: float
    native_boost: float = 0.0
    community_signal: float = 0.0
    final_score: float = 0.0
    metadata: dict[str, Any] = Field(default_factory=dict)
