"""JSON-RPC error codes and the two gateway error tiers.

GatewayError is raised for protocol-level failures (envelope, auth, limits)
before any capability runs. ToolError is raised by capability handlers and
the services behind them; the gateway translates it using its code.
"""

from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Reserved JSON-RPC error codes."""

    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603

    RATE_LIMITED = -32000
    AUTH_REQUIRED = -32001
    NOT_FOUND = -32002
    FORBIDDEN = -32003
    QUOTA_EXCEEDED = -32004
    BUILD_FAILED = -32005
    VALIDATION_ERROR = -32006


def http_status_for(code: int) -> int:
    """Map a JSON-RPC error code to the HTTP status of the response."""
    if code == ErrorCode.AUTH_REQUIRED:
        return 401
    if code in (ErrorCode.RATE_LIMITED, ErrorCode.QUOTA_EXCEEDED):
        return 429
    if code == ErrorCode.INTERNAL_ERROR:
        return 500
    if code < 0:
        return 400
    return 500


class GatewayError(Exception):
    """Protocol-level failure surfaced directly as a JSON-RPC error."""

    def __init__(
        self,
        code: int,
        message: str,
        data: Any = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = int(code)
        self.message = message
        self.data = data
        self.headers = headers or {}


class ToolError(Exception):
    """Operation-level failure carrying the code it should be reported with."""

    def __init__(self, code: int, message: str, data: Any = None) -> None:
        super().__init__(message)
        self.code = int(code)
        self.message = message
        self.data = data


def invalid_params(message: str) -> ToolError:
    return ToolError(ErrorCode.INVALID_PARAMS, message)


def not_found(message: str) -> ToolError:
    return ToolError(ErrorCode.NOT_FOUND, message)


def forbidden(message: str) -> ToolError:
    return ToolError(ErrorCode.FORBIDDEN, message)


def validation_error(message: str) -> ToolError:
    return ToolError(ErrorCode.VALIDATION_ERROR, message)
