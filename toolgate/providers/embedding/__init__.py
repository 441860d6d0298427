"""Embedding providers for discovery search and app/page indexing."""

from toolgate.config.models.providers import EmbeddingProviderConfig
from toolgate.providers.embedding.base import (
    EmbeddingError,
    EmbeddingProvider,
    EmbeddingResponse,
    document_text,
)
from toolgate.providers.embedding.http import HttpEmbeddingProvider
from toolgate.providers.embedding.mock import MockEmbeddingProvider


def create_embedding_provider(config: EmbeddingProviderConfig) -> EmbeddingProvider | None:
    """Build the configured provider; None disables semantic search."""
    if config.provider == "none":
        return None
    if config.provider == "http":
        return HttpEmbeddingProvider(config)
    return MockEmbeddingProvider(dimensions=config.dimensions, default_model=config.model)


__all__ = [
    "EmbeddingError",
    "EmbeddingProvider",
    "EmbeddingResponse",
    "HttpEmbeddingProvider",
    "MockEmbeddingProvider",
    "create_embedding_provider",
    "document_text",
]
