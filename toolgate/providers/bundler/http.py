"""HTTP client for a remote bundling service."""

import httpx

from toolgate.observability.logging import get_logger
from toolgate.providers.bundler.base import BundleResult, Bundler, SourceFile

logger = get_logger(__name__)


class HttpBundler(Bundler):
    """Posts sources to {base_url}/bundle."""

    def __init__(self, base_url: str, timeout: float = 60.0):
        self._url = base_url.rstrip("/") + "/bundle"
        self._client = httpx.AsyncClient(timeout=timeout)

    async def bundle(self, files: list[SourceFile], entry_point: str) -> BundleResult:
        payload = {
            "entry_point": entry_point,
            "files": [f.model_dump() for f in files],
        }
        try:
            response = await self._client.post(self._url, json=payload)
        except httpx.HTTPError as e:
            logger.warning("bundler_request_failed", entry_point=entry_point, error=str(e))
            return BundleResult(success=False, errors=[str(e)])

        if response.status_code != 200:
            return BundleResult(
                success=False,
                errors=[f"Bundler returned HTTP {response.status_code}"],
            )
        return BundleResult.model_validate(response.json())

    async def close(self) -> None:
        await self._client.aclose()
