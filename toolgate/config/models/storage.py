"""Storage backend configuration models."""

from typing import Literal

from pydantic import BaseModel, Field

BackendType = Literal["memory", "postgres"]


class PostgresConfig(BaseModel):
    """PostgreSQL connection pool configuration."""

    dsn: str | None = Field(
        default=None,
        description="Connection string; falls back to TOOLGATE_DATABASE_URL/DATABASE_URL",
    )
    min_pool_size: int = Field(default=5, gt=0, description="Minimum connections")
    max_pool_size: int = Field(default=20, gt=0, description="Maximum connections")
    max_inactive_connection_lifetime: float = Field(
        default=300.0,
        gt=0,
        description="Close connections idle longer than this (seconds)",
    )
    command_timeout: float = Field(
        default=60.0,
        gt=0,
        description="Default timeout for queries (seconds)",
    )


class RedisConfig(BaseModel):
    """Redis connection configuration."""

    url: str = Field(default="redis://localhost:6379/0", description="Redis URL")
    key_prefix: str = Field(default="toolgate", description="Prefix for all keys")


class BlobConfig(BaseModel):
    """Blob storage for version artifacts and compiled documents."""

    backend: Literal["memory", "s3"] = Field(default="memory")
    bucket: str | None = Field(default=None, description="S3 bucket name")
    prefix: str = Field(default="", description="Key prefix inside the bucket")
    region: str | None = Field(default=None, description="AWS region")
    endpoint_url: str | None = Field(
        default=None,
        description="S3-compatible endpoint (R2, MinIO)",
    )


class GrantCacheConfig(BaseModel):
    """Cache in front of grant lookups on the invocation path."""

    backend: Literal["memory", "redis"] = Field(default="memory")
    ttl_seconds: int = Field(default=60, gt=0)
    max_entries: int = Field(default=10_000, gt=0)


class StorageConfig(BaseModel):
    """Storage configuration for all stores."""

    backend: BackendType = Field(
        default="memory",
        description="Relational backend for every store",
    )
    postgres: PostgresConfig = Field(default_factory=PostgresConfig)
    redis: RedisConfig = Field(default_factory=RedisConfig)
    blob: BlobConfig = Field(default_factory=BlobConfig)
    grant_cache: GrantCacheConfig = Field(default_factory=GrantCacheConfig)
