"""The tool gateway request lifecycle.

One envelope goes through: decode, admission (rate limit, weekly quota),
dispatch by method, encode. Invocations additionally strip call metadata,
run the capability handler and leave exactly one audit record behind.
"""

import json
import time
import uuid
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from toolgate.audit.models import CallRecord, truncate_payload
from toolgate.audit.store import AuditStore
from toolgate.config.models.api import RateLimitConfig
from toolgate.config.models.gateway import GatewayConfig
from toolgate.db.errors import (
    ConflictError,
    NotFoundError,
    StoreError,
)
from toolgate.db.errors import ValidationError as StoreValidationError
from toolgate.gateway.capabilities import HANDLERS
from toolgate.gateway.context import CallContext, GatewayServices, extract_call_meta
from toolgate.gateway.errors import ErrorCode, GatewayError, ToolError, http_status_for
from toolgate.gateway.quota import WeeklyQuota
from toolgate.gateway.ratelimit import RateLimiter, rate_limit_key
from toolgate.gateway.registry import get_capability, list_descriptors
from toolgate.gateway.resources import list_resources, read_resource
from toolgate.gateway.results import (
    GatewayResponse,
    RPCRequest,
    format_tool_result,
    rpc_error,
    rpc_result,
)
from toolgate.gateway.sink import BestEffortSink
from toolgate.observability.logging import get_logger
from toolgate.observability.metrics import (
    CAPABILITY_CALLS,
    CAPABILITY_DURATION,
    GATEWAY_REQUESTS,
    QUOTA_EXCEEDED,
    RATE_LIMIT_EXCEEDED,
)
from toolgate.observability.tracing import capability_span, mark_failed
from toolgate.users.models import User
from toolgate.users.store import UserStore

logger = get_logger(__name__)

INVOKE_METHODS = frozenset({"capabilities/invoke", "tools/call"})
LIST_METHODS = frozenset({"capabilities/list", "tools/list"})


def parse_envelope(body: bytes | str) -> RPCRequest:
    """Decode and validate one JSON-RPC request body."""
    try:
        payload = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise GatewayError(ErrorCode.PARSE_ERROR, "Parse error") from None

    if not isinstance(payload, dict):
        raise GatewayError(ErrorCode.INVALID_REQUEST, "Invalid Request")
    request_id = payload.get("id")
    if request_id is not None and not isinstance(request_id, (str, int)):
        request_id = None

    version = payload.get("jsonrpc", payload.get("protocol_version"))
    method = payload.get("method")
    if version != "2.0" or not isinstance(method, str) or not method:
        raise GatewayError(ErrorCode.INVALID_REQUEST, "Invalid Request", data={"id": request_id})

    params = payload.get("params")
    if params is None:
        params = {}
    if not isinstance(params, dict):
        raise GatewayError(
            ErrorCode.INVALID_PARAMS, "params must be an object", data={"id": request_id}
        )
    try:
        return RPCRequest(id=request_id, method=method, params=params)
    except PydanticValidationError:
        raise GatewayError(
            ErrorCode.INVALID_REQUEST, "Invalid Request", data={"id": request_id}
        ) from None


class Gateway:
    """Dispatches decoded JSON-RPC envelopes for authenticated callers."""

    def __init__(
        self,
        services: GatewayServices,
        users: UserStore,
        audit: AuditStore,
        sink: BestEffortSink,
        config: GatewayConfig,
        rate_limit: RateLimitConfig,
        limiter: RateLimiter | None = None,
        quota: WeeklyQuota | None = None,
    ) -> None:
        self._services = services
        self._users = users
        self._audit = audit
        self._sink = sink
        self._config = config
        self._rate_limit = rate_limit
        self._limiter = limiter
        self._quota = quota

    async def admit(self, identity: User) -> User:
        """Ensure the caller's user row and claim invitations sent to their email."""
        user, created = await self._users.upsert(identity)
        if created:
            logger.info("user_created", user_id=user.id)
        await self._services.grants.convert_pending(user)
        await self._services.sharing.convert_pending(user)
        return user

    async def handle(self, request: RPCRequest, ctx: CallContext) -> GatewayResponse:
        """Run one envelope to completion and return what to send back."""
        try:
            await self._check_rate_limit(request.method, ctx)
            response = await self._dispatch(request, ctx)
        except GatewayError as e:
            response = self._error_response(request.id, e.code, e.message, e.data, e.headers)
        except ToolError as e:
            response = self._error_response(request.id, e.code, e.message, e.data)
        except Exception as e:
            logger.error(
                "gateway_internal_error",
                method=request.method,
                error=str(e),
                error_type=type(e).__name__,
            )
            response = self._error_response(request.id, ErrorCode.INTERNAL_ERROR, "Internal error")

        GATEWAY_REQUESTS.labels(
            method=request.method,
            status="error" if response.body and "error" in response.body else "ok",
        ).inc()

        if request.is_notification:
            return GatewayResponse(status_code=202, headers=response.headers)
        return response

    async def _dispatch(self, request: RPCRequest, ctx: CallContext) -> GatewayResponse:
        method = request.method
        if method == "initialize":
            return GatewayResponse(
                body=rpc_result(request.id, self._initialize_result()),
                headers={"Mcp-Session-Id": str(uuid.uuid4())},
            )
        if method == "notifications/initialized":
            return GatewayResponse(status_code=202)
        if method in LIST_METHODS:
            return GatewayResponse(body=rpc_result(request.id, {"tools": list_descriptors()}))
        if method in INVOKE_METHODS:
            return await self._invoke(request, ctx)
        if method == "resources/list":
            return GatewayResponse(body=rpc_result(request.id, list_resources()))
        if method == "resources/read":
            uri = request.params.get("uri")
            result = await read_resource(
                self._services, ctx, uri if isinstance(uri, str) else None
            )
            return GatewayResponse(body=rpc_result(request.id, result))
        raise GatewayError(ErrorCode.METHOD_NOT_FOUND, f"Method not found: {method}")

    def _initialize_result(self) -> dict[str, Any]:
        return {
            "protocolVersion": self._config.protocol_version,
            "capabilities": {
                "tools": {"listChanged": False},
                "resources": {"subscribe": False, "listChanged": False},
            },
            "serverInfo": {
                "name": self._config.server_name,
                "version": self._config.server_version,
            },
            "instructions": self._config.instructions,
        }

    async def _check_rate_limit(self, method: str, ctx: CallContext) -> None:
        if self._limiter is None or not self._rate_limit.enabled:
            return
        result = await self._limiter.check(
            rate_limit_key(ctx.user_id, method), self._rate_limit.limit_for(method)
        )
        if result.allowed:
            return
        RATE_LIMIT_EXCEEDED.labels(method=method).inc()
        logger.warning("rate_limit_exceeded", user_id=ctx.user_id, method=method)
        reset_at = result.reset_at.isoformat()
        raise GatewayError(
            ErrorCode.RATE_LIMITED,
            f"Rate limit exceeded. Try again after {reset_at}",
            data={"reset_at": reset_at},
            headers={
                "X-RateLimit-Limit": str(result.limit),
                "X-RateLimit-Remaining": "0",
                "X-RateLimit-Reset": str(int(result.reset_at.timestamp())),
            },
        )

    async def _consume_quota(self, ctx: CallContext) -> bool:
        """Count the call against the weekly quota; True when over a soft limit."""
        if self._quota is None:
            return False
        result = await self._quota.consume(ctx.user_id, ctx.tier)
        if not result.allowed:
            QUOTA_EXCEEDED.labels(tier=ctx.tier, action="rejected").inc()
            logger.warning(
                "weekly_quota_exceeded",
                user_id=ctx.user_id,
                tier=ctx.tier,
                count=result.count,
                limit=result.limit,
            )
            raise GatewayError(
                ErrorCode.QUOTA_EXCEEDED,
                f"Weekly call limit reached ({result.limit:,} calls/week). Upgrade your plan.",
                data={"limit": result.limit},
            )
        if result.overage:
            QUOTA_EXCEEDED.labels(tier=ctx.tier, action="flagged").inc()
            logger.warning(
                "weekly_quota_overage",
                user_id=ctx.user_id,
                tier=ctx.tier,
                count=result.count,
                limit=result.limit,
            )
        return result.overage

    async def _invoke(self, request: RPCRequest, ctx: CallContext) -> GatewayResponse:
        overage = await self._consume_quota(ctx)

        name = request.params.get("name")
        if not isinstance(name, str) or not name:
            raise GatewayError(ErrorCode.INVALID_PARAMS, "Missing tool name")
        raw_args = request.params.get("arguments") or {}
        if not isinstance(raw_args, dict):
            raise GatewayError(ErrorCode.INVALID_PARAMS, "arguments must be an object")

        handler = HANDLERS.get(name)
        if handler is None or get_capability(name) is None:
            raise GatewayError(ErrorCode.INVALID_PARAMS, f"Unknown tool: {name}")

        args, user_query, session_id = extract_call_meta(raw_args)
        ctx.user_query = user_query
        ctx.session_id = session_id

        started = time.perf_counter()
        outcome = "success"
        result: Any = None
        error: BaseException | None = None
        with capability_span(name, ctx.user_id, request.method) as span:
            try:
                result = await handler(self._services, ctx, args)
            except Exception as e:
                error = self._translate(e)
                outcome = "tool_error" if isinstance(error, ToolError) else "error"
                mark_failed(span, e, getattr(error, "code", None))
        duration = time.perf_counter() - started

        CAPABILITY_CALLS.labels(capability=name, outcome=outcome).inc()
        CAPABILITY_DURATION.labels(capability=name).observe(duration)
        self._record_call(ctx, name, request.method, args, result, error, duration)

        if isinstance(error, ToolError):
            logger.info("capability_rejected", capability=name, code=error.code)
            raise error
        if error is not None:
            logger.error(
                "capability_failed",
                capability=name,
                user_id=ctx.user_id,
                error=str(error),
                error_type=type(error).__name__,
            )
            return self._error_response(request.id, ErrorCode.INTERNAL_ERROR, "Internal error")

        meta = {"quota_overage": True} if overage else None
        return GatewayResponse(body=rpc_result(request.id, format_tool_result(result, meta)))

    @staticmethod
    def _translate(error: Exception) -> BaseException:
        """Map store failures that carry a caller-facing meaning to ToolError."""
        if isinstance(error, ToolError) or not isinstance(error, StoreError):
            return error
        if isinstance(error, NotFoundError):
            return ToolError(ErrorCode.NOT_FOUND, str(error))
        if isinstance(error, (ConflictError, StoreValidationError)):
            return ToolError(ErrorCode.VALIDATION_ERROR, str(error))
        return error

    def _record_call(
        self,
        ctx: CallContext,
        name: str,
        method: str,
        args: dict[str, Any],
        result: Any,
        error: BaseException | None,
        duration: float,
    ) -> None:
        max_size = self._config.max_io_size
        preview = self._config.preview_chars
        record = CallRecord(
            user_id=ctx.user_id,
            app_id=args.get("app_id") if isinstance(args.get("app_id"), str) else None,
            function_name=name,
            method=method,
            success=error is None,
            duration_ms=int(duration * 1000),
            error_message=str(error) if error is not None else None,
            input_args=truncate_payload(args, max_size, preview),
            output_result=truncate_payload(
                result if error is None else {"error": str(error)}, max_size, preview
            ),
            user_tier=ctx.tier,
            session_id=ctx.session_id,
            user_query=ctx.user_query,
            caller_ip=ctx.client_ip,
        )
        self._sink.submit("call_log", self._audit.record_call(record))

    @staticmethod
    def _error_response(
        request_id: str | int | None,
        code: int,
        message: str,
        data: Any = None,
        headers: dict[str, str] | None = None,
    ) -> GatewayResponse:
        return GatewayResponse(
            status_code=http_status_for(code),
            body=rpc_error(request_id, code, message, data),
            headers=headers or {},
        )
