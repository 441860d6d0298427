"""External collaborator configuration models."""

from typing import Literal

from pydantic import BaseModel, Field


class EmbeddingProviderConfig(BaseModel):
    """Query and artifact embedding provider."""

    provider: Literal["none", "mock", "http"] = Field(default="mock")
    base_url: str | None = Field(default=None, description="OpenAI-compatible /embeddings base URL")
    api_key: str | None = Field(default=None, description="Bearer key for the provider")
    model: str = Field(default="text-embedding-3-small")
    dimensions: int = Field(default=1536, gt=0)
    timeout: float = Field(default=30.0, gt=0)


class SandboxConfig(BaseModel):
    """Remote sandbox that executes tenant code."""

    base_url: str | None = Field(default=None, description="Sandbox service URL")
    timeout: float = Field(default=30.0, gt=0)


class BundlerConfig(BaseModel):
    """Remote source bundler."""

    base_url: str | None = Field(default=None, description="Bundler service URL")
    timeout: float = Field(default=60.0, gt=0)


class ProvidersConfig(BaseModel):
    """All external collaborator settings."""

    embedding: EmbeddingProviderConfig = Field(default_factory=EmbeddingProviderConfig)
    sandbox: SandboxConfig = Field(default_factory=SandboxConfig)
    bundler: BundlerConfig = Field(default_factory=BundlerConfig)
