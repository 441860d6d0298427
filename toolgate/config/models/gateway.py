"""Gateway lifecycle configuration models."""

from typing import Literal

from pydantic import BaseModel, Field


class WeeklyQuotaConfig(BaseModel):
    """Weekly invocation quota per tier.

    Hard tiers reject calls past the limit; soft tiers allow them and flag
    the overage.
    """

    enabled: bool = Field(default=True, description="Enable weekly quotas")
    backend: Literal["memory", "redis"] = Field(default="memory")
    free_limit: int = Field(default=500_000, gt=0, description="Calls per week (free)")
    pro_limit: int = Field(default=10_000_000, gt=0, description="Calls per week (pro)")
    hard_tiers: list[str] = Field(
        default_factory=lambda: ["free"],
        description="Canonical tiers that are rejected once over quota",
    )


class GatewayConfig(BaseModel):
    """Protocol gateway configuration."""

    server_name: str = Field(default="Toolgate Platform", description="serverInfo.name")
    server_version: str = Field(default="2.0.0", description="serverInfo.version")
    protocol_version: str = Field(
        default="2025-03-26",
        description="Protocol version returned by initialize",
    )
    instructions: str = Field(
        default="Tool hosting platform. Publish, configure, share, and discover tools.",
        description="initialize instructions text",
    )
    max_io_size: int = Field(
        default=10_000,
        gt=0,
        description="Max serialized size of audited input/output before truncation",
    )
    preview_chars: int = Field(
        default=500,
        gt=0,
        description="Preview length kept for truncated audit values",
    )
    sink_max_pending: int = Field(
        default=1000,
        gt=0,
        description="Max in-flight best-effort tasks before new ones are dropped",
    )
    min_publish_balance_cents: int = Field(
        default=0,
        ge=0,
        description="Minimum hosting balance required to leave private visibility",
    )
    page_max_bytes: int = Field(
        default=100 * 1024,
        gt=0,
        description="Max page size in bytes",
    )
    weekly_quota: WeeklyQuotaConfig = Field(
        default_factory=WeeklyQuotaConfig,
        description="Weekly quota settings",
    )


class DiscoveryConfig(BaseModel):
    """Discovery ranking configuration."""

    appstore_default_limit: int = Field(default=10, gt=0)
    featured_padding: int = Field(
        default=5,
        ge=0,
        description="Extra rows fetched in featured mode to absorb hidden items",
    )
    search_overfetch: int = Field(
        default=3,
        gt=0,
        description="Multiplier applied to limit when fetching search candidates",
    )
    min_similarity: float = Field(default=0.4, ge=0.0, le=1.0)
    library_min_similarity: float = Field(default=0.3, ge=0.0, le=1.0)
    library_search_limit: int = Field(default=20, gt=0)
    shuffle_window: int = Field(
        default=5,
        ge=0,
        description="Size of the head slice perturbed by the luck shuffle",
    )
    similarity_weight: float = Field(default=0.7, ge=0.0)
    native_weight: float = Field(default=0.15, ge=0.0)
    community_weight: float = Field(default=0.15, ge=0.0)
    page_native_boost: float = Field(default=0.5, ge=0.0, le=1.0)
    include_pages: bool = Field(default=True, description="Search public pages too")
