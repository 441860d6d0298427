"""[observability.*] tables: structlog output, OTLP tracing, Prometheus endpoint."""

from typing import Literal

from pydantic import BaseModel, Field, field_validator


class LoggingConfig(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["json", "console"] = "json"
    include_trace_id: bool = True
    # Masks emails, bearer tokens and secret values in every event.
    redact_pii: bool = True


class TracingConfig(BaseModel):
    enabled: bool = False
    service_name: str = "toolgate"
    otlp_endpoint: str | None = None
    sample_rate: float = Field(default=1.0, ge=0.0, le=1.0)


class MetricsConfig(BaseModel):
    enabled: bool = True
    path: str = "/metrics"

    @field_validator("path")
    @classmethod
    def absolute_path(cls, v: str) -> str:
        if not v.startswith("/"):
            raise ValueError("metrics path must start with '/'")
        return v


class ObservabilityConfig(BaseModel):
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    tracing: TracingConfig = Field(default_factory=TracingConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)
