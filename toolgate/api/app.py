"""FastAPI application factory and module-level `app` for uvicorn."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

from toolgate import __version__
from toolgate.api.dependencies import reset_dependencies
from toolgate.api.exceptions import ToolgateAPIError
from toolgate.api.middleware.context import RequestContextMiddleware
from toolgate.api.models.errors import ErrorCode, ErrorDetail, ErrorResponse
from toolgate.api.routes import register_routes
from toolgate.api.routes.gateway import GATEWAY_PATH
from toolgate.config import get_settings
from toolgate.gateway.errors import ErrorCode as RPCErrorCode
from toolgate.gateway.results import rpc_error
from toolgate.observability.logging import configure_logging, get_logger
from toolgate.observability.tracing import configure_tracing

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Drain background work and close pools on shutdown."""
    logger.info("app_starting")
    yield
    await reset_dependencies()
    logger.info("app_stopped")


def create_app() -> FastAPI:
    """Build the app from current settings.

    Logging and tracing are configured here, so settings changes take effect
    on the next call. CORS exposes Mcp-Session-Id and WWW-Authenticate for
    browser clients of the gateway route.
    """
    settings = get_settings()
    observability = settings.observability

    configure_logging(observability.logging)
    if observability.tracing.enabled:
        configure_tracing(observability.tracing)

    app = FastAPI(
        title="Toolgate API",
        description="JSON-RPC tool gateway for hosted apps",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.cors_origins,
        allow_credentials=settings.api.cors_allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Mcp-Session-Id", "WWW-Authenticate", "X-Request-ID"],
    )
    app.add_middleware(RequestContextMiddleware)

    _register_exception_handlers(app)
    register_routes(
        app,
        metrics_path=observability.metrics.path if observability.metrics.enabled else None,
    )

    if observability.tracing.enabled:
        FastAPIInstrumentor.instrument_app(app)
        logger.info("opentelemetry_instrumentation_enabled")

    logger.info(
        "app_created",
        app=settings.app_name,
        debug=settings.debug,
        storage=settings.storage.backend,
    )
    return app


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ToolgateAPIError)
    async def toolgate_api_error_handler(request: Request, exc: ToolgateAPIError) -> JSONResponse:
        logger.warning(
            "api_error",
            error_code=exc.error_code.value,
            message=exc.message,
            path=request.url.path,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse.of(exc.error_code, exc.message),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        logger.warning("validation_error", errors=exc.errors(), path=request.url.path)
        details = [
            ErrorDetail(field=".".join(str(loc) for loc in error["loc"]), message=error["msg"])
            for error in exc.errors()
        ]
        return JSONResponse(
            status_code=400,
            content=ErrorResponse.of(
                ErrorCode.INVALID_REQUEST, "Request validation failed", details
            ),
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Unexpected failures; the gateway route answers in JSON-RPC form."""
        logger.exception(
            "unexpected_error",
            error=str(exc),
            error_type=type(exc).__name__,
            path=request.url.path,
        )
        if request.url.path == GATEWAY_PATH:
            return JSONResponse(
                status_code=500,
                content=rpc_error(None, RPCErrorCode.INTERNAL_ERROR, "Internal error"),
            )
        return JSONResponse(
            status_code=500,
            content=ErrorResponse.of(ErrorCode.INTERNAL_ERROR, "An unexpected error occurred"),
        )


app = create_app()
