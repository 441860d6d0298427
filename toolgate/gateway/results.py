"""JSON-RPC envelopes and tool result payloads."""

import json
from typing import Any, Literal

from pydantic import BaseModel, Field

JSONRPC_VERSION = "2.0"


class RPCRequest(BaseModel):
    """A decoded JSON-RPC request or notification."""

    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    id: str | int | None = None
    method: str
    params: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_notification(self) -> bool:
        return self.id is None


class GatewayResponse(BaseModel):
    """What the HTTP layer should send back for one envelope."""

    status_code: int = 200
    body: dict[str, Any] | None = None
    headers: dict[str, str] = Field(default_factory=dict)


def rpc_result(request_id: str | int | None, result: Any) -> dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "result": result}


def rpc_error(
    request_id: str | int | None,
    code: int,
    message: str,
    data: Any = None,
) -> dict[str, Any]:
    error: dict[str, Any] = {"code": int(code), "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "error": error}


def format_tool_result(result: Any, meta: dict[str, Any] | None = None) -> dict[str, Any]:
    """Wrap an operation result as text content plus structured content."""
    payload: dict[str, Any] = {
        "content": [{"type": "text", "text": json.dumps(result, indent=2, default=str)}],
        "structuredContent": result,
        "isError": False,
    }
    if meta:
        payload["_meta"] = meta
    return payload
