"""OpenTelemetry tracing for the gateway.

Each capability invocation runs inside a `capability_span`; HTTP spans come
from the FastAPI instrumentation enabled in `create_app()`.
"""

import os
from collections.abc import Generator
from contextlib import contextmanager

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.sampling import TraceIdRatioBased
from opentelemetry.trace import Span, Status, StatusCode, Tracer

from toolgate.config.models.observability import TracingConfig

TRACER_NAME = "toolgate.gateway"

_tracer: Tracer | None = None


def configure_tracing(config: TracingConfig) -> Tracer:
    """Install a sampled tracer provider; spans are exported only when an
    OTLP endpoint is configured or set in OTEL_EXPORTER_OTLP_ENDPOINT."""
    global _tracer

    provider = TracerProvider(
        resource=Resource.create({SERVICE_NAME: config.service_name}),
        sampler=TraceIdRatioBased(config.sample_rate),
    )
    endpoint = config.otlp_endpoint or os.environ.get("OTEL_EXPORTER_OTLP_ENDPOINT")
    if endpoint:
        provider.add_span_processor(
            BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint, insecure=True))
        )

    trace.set_tracer_provider(provider)
    _tracer = trace.get_tracer(TRACER_NAME)
    return _tracer


def current_trace_id() -> str | None:
    context = trace.get_current_span().get_span_context()
    if context.is_valid:
        return format(context.trace_id, "032x")
    return None


@contextmanager
def capability_span(
    capability: str,
    user_id: str,
    method: str,
) -> Generator[Span, None, None]:
    """Span around one capability handler. No-op until tracing is configured."""
    tracer = _tracer or trace.get_tracer(TRACER_NAME)
    attributes = {
        "toolgate.capability": capability,
        "toolgate.user_id": user_id,
        "rpc.system": "jsonrpc",
        "rpc.method": method,
    }
    with tracer.start_as_current_span(f"capability {capability}", attributes=attributes) as span:
        yield span


def mark_failed(span: Span, error: BaseException, code: int | None = None) -> None:
    """Attach the error to the span; `code` is the JSON-RPC error code if any."""
    if code is not None:
        span.set_attribute("rpc.jsonrpc.error_code", code)
    if isinstance(error, Exception):
        span.record_exception(error)
    span.set_status(Status(StatusCode.ERROR, str(error)))
