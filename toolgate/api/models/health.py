"""Bodies for GET /health and GET /health/ready."""

from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, Field

HealthStatus = Literal["healthy", "degraded", "unhealthy"]

_SEVERITY: dict[HealthStatus, int] = {"healthy": 0, "degraded": 1, "unhealthy": 2}


class ComponentHealth(BaseModel):
    name: str
    status: HealthStatus
    latency_ms: float | None = None
    message: str | None = None


class HealthResponse(BaseModel):
    status: HealthStatus
    version: str
    protocol_version: str
    storage_backend: str
    capabilities: int
    components: list[ComponentHealth] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


def overall_status(components: list[ComponentHealth]) -> HealthStatus:
    """The worst component status; healthy when there are none."""
    return max((c.status for c in components), key=_SEVERITY.__getitem__, default="healthy")


class ReadinessResponse(BaseModel):
    status: Literal["ready"] = "ready"
