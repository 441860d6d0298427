"""Health, readiness and metrics endpoints."""

import time

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from toolgate.api.dependencies import SettingsDep, SinkDep, postgres_healthy
from toolgate.api.exceptions import ServiceUnavailableError
from toolgate.api.models.health import (
    ComponentHealth,
    HealthResponse,
    ReadinessResponse,
    overall_status,
)
from toolgate.gateway.registry import CAPABILITIES
from toolgate.observability.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


async def _database_health() -> ComponentHealth:
    start = time.perf_counter()
    try:
        healthy = await postgres_healthy()
    except Exception as e:
        return ComponentHealth(name="postgres", status="unhealthy", message=str(e))
    if healthy is None:
        return ComponentHealth(name="postgres", status="healthy", message="not in use")
    return ComponentHealth(
        name="postgres",
        status="healthy" if healthy else "unhealthy",
        latency_ms=(time.perf_counter() - start) * 1000,
    )


@router.get("/health", response_model=HealthResponse)
async def health_check(settings: SettingsDep, sink: SinkDep) -> HealthResponse:
    """Database reachability and background sink backlog.

    A full sink is degraded, not unhealthy: calls still succeed and only
    their audit records are dropped.
    """
    saturated = sink.pending >= settings.gateway.sink_max_pending
    components = [
        await _database_health(),
        ComponentHealth(
            name="best_effort_sink",
            status="degraded" if saturated else "healthy",
            message=f"{sink.pending} pending",
        ),
    ]
    status = overall_status(components)

    logger.debug("health_check_completed", status=status)
    return HealthResponse(
        status=status,
        version=settings.gateway.server_version,
        protocol_version=settings.gateway.protocol_version,
        storage_backend=settings.storage.backend,
        capabilities=len(CAPABILITIES),
        components=components,
    )


@router.get("/health/ready", response_model=ReadinessResponse)
async def readiness() -> ReadinessResponse:
    """503 while the relational store is configured but unreachable."""
    component = await _database_health()
    if component.status == "unhealthy":
        raise ServiceUnavailableError(component.message or "Database unreachable")
    return ReadinessResponse()


async def get_metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
