"""Client for OpenAI-compatible ``POST {base_url}/embeddings`` services."""

from typing import Any

import httpx

from toolgate.config.models.providers import EmbeddingProviderConfig
from toolgate.observability.logging import get_logger
from toolgate.providers.embedding.base import (
    EmbeddingError,
    EmbeddingProvider,
    EmbeddingResponse,
)

logger = get_logger(__name__)

# Inputs per request; larger calls are split and the results concatenated.
BATCH_SIZE = 64
# Per-input character cap, roughly the 8k token context of common models.
MAX_INPUT_CHARS = 24_000


class HttpEmbeddingProvider(EmbeddingProvider):
    def __init__(
        self,
        config: EmbeddingProviderConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not config.base_url:
            raise ValueError("providers.embedding.base_url is required for the http provider")
        headers = {"Authorization": f"Bearer {config.api_key}"} if config.api_key else {}
        self._model = config.model
        self._dimensions = config.dimensions
        self._client = httpx.AsyncClient(
            base_url=config.base_url.rstrip("/"),
            headers=headers,
            timeout=config.timeout,
            transport=transport,
        )

    @property
    def provider_name(self) -> str:
        return "http"

    @property
    def dimensions(self) -> int:
        return self._dimensions

    async def embed(
        self,
        texts: list[str],
        *,
        model: str | None = None,
        **kwargs: Any,
    ) -> EmbeddingResponse:
        use_model = model or self._model
        vectors: list[list[float]] = []
        total_tokens = 0
        for start in range(0, len(texts), BATCH_SIZE):
            batch = [t[:MAX_INPUT_CHARS] for t in texts[start : start + BATCH_SIZE]]
            data = await self._post(batch, use_model, kwargs)
            items = sorted(data.get("data", []), key=lambda item: item.get("index", 0))
            vectors.extend(item["embedding"] for item in items)
            total_tokens += data.get("usage", {}).get("total_tokens", 0)

        if len(vectors) != len(texts):
            raise EmbeddingError(f"Expected {len(texts)} embeddings, got {len(vectors)}")
        return EmbeddingResponse(
            embeddings=vectors,
            model=use_model,
            dimensions=self._dimensions,
            usage={"total_tokens": total_tokens},
        )

    async def _post(self, batch: list[str], model: str, extra: dict[str, Any]) -> dict[str, Any]:
        payload = {"input": batch, "model": model, "dimensions": self._dimensions, **extra}
        logger.debug("embed_request", model=model, num_texts=len(batch))
        try:
            response = await self._client.post("/embeddings", json=payload)
        except httpx.HTTPError as e:
            logger.error("embed_transport_error", error=str(e))
            raise EmbeddingError(f"Embedding service unreachable: {e}") from e
        if response.status_code != 200:
            logger.error(
                "embed_error",
                status_code=response.status_code,
                error=response.text[:500],
            )
            raise EmbeddingError(f"Embedding API error ({response.status_code})")
        return response.json()

    async def close(self) -> None:
        await self._client.aclose()
