"""[api] table: HTTP server, CORS, advertised metadata and request limits."""

from typing import Literal

from pydantic import BaseModel, Field, field_validator

# Requests per window for the protocol methods; anything else uses default_limit.
METHOD_LIMITS = {
    "initialize": 10,
    "tools/list": 30,
    "capabilities/list": 30,
    "tools/call": 100,
    "capabilities/invoke": 100,
}


class RateLimitConfig(BaseModel):
    """Fixed-window limits keyed by caller and JSON-RPC method."""

    enabled: bool = True
    backend: Literal["memory", "redis"] = "memory"
    window_seconds: int = Field(default=60, gt=0)
    default_limit: int = Field(default=100, gt=0)
    method_limits: dict[str, int] = Field(default_factory=lambda: dict(METHOD_LIMITS))

    def limit_for(self, method: str) -> int:
        return self.method_limits.get(method, self.default_limit)


class APIConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = Field(default=8000, ge=1, le=65535)
    workers: int = Field(default=4, ge=1)
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])
    cors_allow_credentials: bool = True
    # Used in /.well-known documents; derived from the request when unset.
    public_base_url: str | None = None
    authorization_servers: list[str] = Field(default_factory=list)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)

    @field_validator("cors_origins", "authorization_servers", mode="before")
    @classmethod
    def split_commas(cls, v: str | list[str]) -> list[str]:
        """Accept ``"a, b"`` from environment variables."""
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v
