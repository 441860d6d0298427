"""Tool gateway transport and discovery documents."""

from typing import Any

from fastapi import APIRouter, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from toolgate.api.dependencies import GatewayDep, IdentityVerifierDep, SettingsDep
from toolgate.api.middleware.auth import AuthenticationFailed
from toolgate.api.middleware.context import bind_user
from toolgate.gateway.context import CallContext
from toolgate.gateway.dispatcher import parse_envelope
from toolgate.gateway.errors import ErrorCode, GatewayError, http_status_for
from toolgate.gateway.registry import CAPABILITIES
from toolgate.gateway.resources import list_resources
from toolgate.gateway.results import GatewayResponse, rpc_error
from toolgate.observability.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()

GATEWAY_PATH = "/mcp/platform"


def _base_url(request: Request, configured: str | None) -> str:
    if configured:
        return configured.rstrip("/")
    host = request.headers.get("host") or request.url.netloc
    proto = request.headers.get("x-forwarded-proto") or request.url.scheme
    return f"{proto}://{host}"


def _client_ip(request: Request) -> str | None:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def _render(response: GatewayResponse) -> Response:
    if response.body is None:
        return Response(status_code=response.status_code, headers=response.headers)
    return JSONResponse(
        status_code=response.status_code,
        content=jsonable_encoder(response.body),
        headers=response.headers,
    )


@router.post(GATEWAY_PATH)
async def handle_rpc(
    request: Request,
    gateway: GatewayDep,
    verifier: IdentityVerifierDep,
    settings: SettingsDep,
) -> Response:
    """Handle one JSON-RPC envelope."""
    try:
        rpc = parse_envelope(await request.body())
    except GatewayError as e:
        request_id = e.data.get("id") if isinstance(e.data, dict) else None
        return JSONResponse(
            status_code=http_status_for(e.code),
            content=rpc_error(request_id, e.code, e.message),
        )

    try:
        identity = verifier.verify(request.headers.get("authorization"))
    except AuthenticationFailed as e:
        base_url = _base_url(request, settings.api.public_base_url)
        return JSONResponse(
            status_code=401,
            content=rpc_error(rpc.id, ErrorCode.AUTH_REQUIRED, e.message, {"type": e.error_type}),
            headers={
                "WWW-Authenticate": (
                    f'Bearer resource_metadata="{base_url}/.well-known/oauth-protected-resource"'
                )
            },
        )

    user = await gateway.admit(identity)
    bind_user(user.id)
    ctx = CallContext(user=user, client_ip=_client_ip(request))
    return _render(await gateway.handle(rpc, ctx))


@router.get(GATEWAY_PATH)
async def reject_stream() -> Response:
    return JSONResponse(
        status_code=405,
        content={"error": "SSE stream not supported. Use POST for MCP requests."},
        headers={"Allow": "POST, DELETE"},
    )


@router.delete(GATEWAY_PATH)
async def terminate_session() -> Response:
    return Response(status_code=200)


@router.get("/.well-known/mcp.json")
async def discovery_document(settings: SettingsDep) -> dict[str, Any]:
    """Describe the gateway for clients that discover servers by URL."""
    return {
        "name": settings.gateway.server_name,
        "version": settings.gateway.server_version,
        "protocolVersion": settings.gateway.protocol_version,
        "description": settings.gateway.instructions,
        "transport": {"type": "http-post", "url": GATEWAY_PATH},
        "capabilities": {"tools": {"listChanged": False}, "resources": {"listChanged": False}},
        "tools_count": len(CAPABILITIES),
        "resources_count": len(list_resources()["resources"]),
    }


@router.get("/.well-known/oauth-protected-resource")
async def protected_resource_metadata(request: Request, settings: SettingsDep) -> dict[str, Any]:
    base_url = _base_url(request, settings.api.public_base_url)
    return {
        "resource": f"{base_url}{GATEWAY_PATH}",
        "authorization_servers": settings.api.authorization_servers or [base_url],
        "bearer_methods_supported": ["header"],
    }
