"""Run one function of an unpublished upload in the sandbox."""

from typing import Any

from toolgate.apps.lifecycle import decode_files
from toolgate.apps.versioning import extract_exports, is_entry_file
from toolgate.gateway.errors import ErrorCode, ToolError, invalid_params, validation_error
from toolgate.observability.logging import get_logger
from toolgate.providers.bundler.base import Bundler, SourceFile
from toolgate.providers.sandbox.base import SandboxRunner

logger = get_logger(__name__)


class SandboxTester:
    """Bundles uploaded files and executes a single export, storing nothing."""

    def __init__(self, runner: SandboxRunner | None = None, bundler: Bundler | None = None):
        self._runner = runner
        self._bundler = bundler

    async def test(
        self,
        user_id: str,
        files: Any,
        function_name: str | None,
        args: Any = None,
        secrets: Any = None,
    ) -> dict[str, Any]:
        if not function_name:
            raise invalid_params("function_name is required")
        if args is not None and not isinstance(args, dict):
            raise invalid_params("args must be an object")
        if secrets is not None and not isinstance(secrets, dict):
            raise invalid_params("secrets must be an object")

        sources = decode_files(files)
        entry_path = next((p for p in sources if is_entry_file(p)), None)
        if entry_path is None:
            raise validation_error("Must include an entry file (index.ts/tsx/js/jsx)")

        exports = extract_exports(sources[entry_path])
        if function_name not in exports:
            raise validation_error(
                f'Function "{function_name}" is not exported. '
                f"Exports: {', '.join(exports) or 'none'}"
            )

        code = await self._build(sources, entry_path)
        if self._runner is None:
            raise ToolError(ErrorCode.INTERNAL_ERROR, "Sandbox service not available")

        outcome = await self._runner.execute(
            code,
            function_name,
            args or {},
            user_id=user_id,
            env={str(k): str(v) for k, v in (secrets or {}).items()},
        )
        logger.info(
            "sandbox_test_completed",
            user_id=user_id,
            function_name=function_name,
            success=outcome.success,
            duration_ms=outcome.duration_ms,
        )

        result: dict[str, Any] = {
            "success": outcome.success,
            "function_name": function_name,
            "result": outcome.result,
            "logs": [entry.model_dump() for entry in outcome.logs],
            "duration_ms": outcome.duration_ms,
            "exports": exports,
        }
        if not outcome.success:
            result["error"] = {"type": outcome.error_type, "message": outcome.error_message}
        return result

    async def _build(self, sources: dict[str, str], entry_path: str) -> str:
        if self._bundler is None:
            return sources[entry_path]
        bundled = await self._bundler.bundle(
            [SourceFile(path=p, content=c) for p, c in sources.items()], entry_path
        )
        if not bundled.success:
            raise ToolError(
                ErrorCode.BUILD_FAILED,
                f"Build failed: {'; '.join(bundled.errors) or 'unknown error'}",
                data={"errors": bundled.errors},
            )
        return bundled.code
