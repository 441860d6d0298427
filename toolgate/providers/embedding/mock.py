"""Hash-based embeddings for tests and local development."""

import hashlib
import math
from typing import Any

from toolgate.providers.embedding.base import EmbeddingProvider, EmbeddingResponse


class MockEmbeddingProvider(EmbeddingProvider):
    """Equal texts get equal unit vectors; anything else is effectively random.

    Tests that need a known similarity pin vectors with ``overrides`` or
    `set_vector`.
    """

    def __init__(
        self,
        dimensions: int = 384,
        default_model: str = "mock-embedding",
        overrides: dict[str, list[float]] | None = None,
    ) -> None:
        self._dimensions = dimensions
        self._model = default_model
        self._overrides = dict(overrides or {})
        self.call_history: list[list[str]] = []

    @property
    def provider_name(self) -> str:
        return "mock"

    @property
    def dimensions(self) -> int:
        return self._dimensions

    def set_vector(self, text: str, vector: list[float]) -> None:
        self._overrides[text] = vector

    def vector_for(self, text: str) -> list[float]:
        if text in self._overrides:
            return list(self._overrides[text])
        digest = hashlib.sha256(text.encode()).digest()
        raw = [digest[i % len(digest)] / 127.5 - 1.0 for i in range(self._dimensions)]
        norm = math.sqrt(sum(x * x for x in raw)) or 1.0
        return [x / norm for x in raw]

    async def embed(
        self,
        texts: list[str],
        *,
        model: str | None = None,
        **kwargs: Any,
    ) -> EmbeddingResponse:
        self.call_history.append(list(texts))
        return EmbeddingResponse(
            embeddings=[self.vector_for(t) for t in texts],
            model=model or self._model,
            dimensions=self._dimensions,
        )
