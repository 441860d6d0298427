"""Sandbox port: executes tenant code outside the gateway process."""

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, Field


class SandboxLogEntry(BaseModel):
    """One console line captured during execution."""

    level: str = "log"
    message: str
    time: str | None = None


class SandboxResult(BaseModel):
    """Outcome of one sandboxed function execution."""

    success: bool
    result: Any = None
    logs: list[SandboxLogEntry] = Field(default_factory=list)
    duration_ms: int = 0
    error_type: str | None = None
    error_message: str | None = None


class SandboxRunner(ABC):
    """Abstract interface for running a bundled function once."""

    @abstractmethod
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
        """Run function_name from code with args and return its result."""
        pass

    async def close(self) -> None:
        return None
