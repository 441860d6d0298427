"""API route registration."""

from fastapi import FastAPI

from toolgate.observability.logging import get_logger

logger = get_logger(__name__)


def register_routes(app: FastAPI, metrics_path: str | None = "/metrics") -> None:
    """Register the gateway and health routes, and metrics when a path is given."""
    from toolgate.api.routes.gateway import router as gateway_router
    from toolgate.api.routes.health import get_metrics
    from toolgate.api.routes.health import router as health_router

    app.include_router(gateway_router, tags=["Gateway"])
    app.include_router(health_router, tags=["Health"])
    if metrics_path:
        app.add_api_route(metrics_path, get_metrics, methods=["GET"], tags=["Health"])

    logger.info("routes_registered", metrics_path=metrics_path)
