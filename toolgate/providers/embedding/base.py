"""Embedding provider interface.

Apps and public pages are indexed by a single vector each; discovery
embeds the caller's query with the same provider and compares by cosine
similarity, so every vector a provider returns must have `dimensions`
entries.
"""

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, Field

DOCUMENT_CHARS = 4000


class EmbeddingResponse(BaseModel):
    embeddings: list[list[float]]
    model: str
    dimensions: int
    usage: dict[str, int] | None = Field(default=None, description="Token usage stats")


class EmbeddingError(RuntimeError):
    """Provider returned no vector or one of the wrong size."""


def document_text(title: str, body: str, limit: int = DOCUMENT_CHARS) -> str:
    """Text indexed for a titled document, body clipped to `limit` chars."""
    return f"{title}\n\n{body[:limit]}"


class EmbeddingProvider(ABC):
    @property
    @abstractmethod
    def provider_name(self) -> str: ...

    @property
    @abstractmethod
    def dimensions(self) -> int: ...

    @abstractmethod
    async def embed(
        self,
        texts: list[str],
        *,
        model: str | None = None,
        **kwargs: Any,
    ) -> EmbeddingResponse:
        """Embed texts in order; one vector per input."""

    async def embed_single(self, text: str, *, model: str | None = None) -> list[float]:
        response = await self.embed([text], model=model)
        if not response.embeddings:
            raise EmbeddingError(f"{self.provider_name} returned no embedding")
        vector = response.embeddings[0]
        if len(vector) != self.dimensions:
            raise EmbeddingError(
                f"{self.provider_name} returned {len(vector)} dimensions, "
                f"expected {self.dimensions}"
            )
        return vector

    async def close(self) -> None:
        return None
