"""HTTP client for a remote sandbox service."""

from typing import Any

import httpx

from toolgate.observability.logging import get_logger
from toolgate.providers.sandbox.base import SandboxResult, SandboxRunner

logger = get_logger(__name__)


class HttpSandboxRunner(SandboxRunner):
    """Posts code and arguments to {base_url}/execute."""

    def __init__(self, base_url: str, timeout: float = 30.0, api_key: str | None = None):
        self._url = base_url.rstrip("/") + "/execute"
        self._api_key = api_key
        self._client = httpx.AsyncClient(timeout=timeout)

    async def execute(
        self,
        code: str,
        function_name: str,
        args: dict[str, Any],
        *,
        user_id: str,
        app_id: str | None = None,
        env: dict[str, str] | None = None,
    ) -> SandboxResult:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"

        payload = {
            "code": code,
            "function": function_name,
            "args": args,
            "user_id": user_id,
            "app_id": app_id,
            "env": env or {},
        }
        try:
            response = await self._client.post(self._url, headers=headers, json=payload)
        except httpx.HTTPError as e:
            logger.error("sandbox_request_failed", function_name=function_name, error=str(e))
            return SandboxResult(
                success=False,
                error_type="SandboxUnavailable",
                error_message=f"Sandbox request failed: {e}",
            )

        if response.status_code != 200:
            logger.error(
                "sandbox_error_response",
                status_code=response.status_code,
                function_name=function_name,
            )
            return SandboxResult(
                success=False,
                error_type="SandboxError",
                error_message=f"Sandbox returned HTTP {response.status_code}",
            )
        return SandboxResult.model_validate(response.json())

    async def close(self) -> None:
        await self._client.aclose()
