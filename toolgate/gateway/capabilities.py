"""Capability handlers: argument extraction and delegation to services.

Each handler receives the service bundle, the call context and the cleaned
arguments, and returns a JSON-serializable result or raises ToolError.
"""

from collections.abc import Awaitable, Callable
from typing import Any

from toolgate.gateway.context import CallContext, GatewayServices
from toolgate.gateway.errors import invalid_params
from toolgate.gateway.params import (
    optional_int,
    optional_str,
    parse_timestamp,
    require_str,
    string_list,
)

Handler = Callable[[GatewayServices, CallContext, dict[str, Any]], Awaitable[Any]]


# Apps


async def _publish(s: GatewayServices, ctx: CallContext, args: dict[str, Any]) -> Any:
    return await s.lifecycle.publish(
        ctx.user_id,
        args.get("files"),
        app_id=optional_str(args, "app_id"),
        version=optional_str(args, "version"),
        name=optional_str(args, "name"),
        description=optional_str(args, "description"),
        visibility=optional_str(args, "visibility"),
    )


async def _source_fetch(s: GatewayServices, ctx: CallContext, args: dict[str, Any]) -> Any:
    return await s.lifecycle.fetch_source(
        ctx.user_id, optional_str(args, "app_id"), optional_str(args, "version")
    )


async def _sandbox_test(s: GatewayServices, ctx: CallContext, args: dict[str, Any]) -> Any:
    return await s.sandbox.test(
        ctx.user_id,
        args.get("files"),
        optional_str(args, "function_name"),
        args=args.get("args"),
        secrets=args.get("secrets"),
    )


async def _set_version(s: GatewayServices, ctx: CallContext, args: dict[str, Any]) -> Any:
    return await s.lifecycle.set_live(
        ctx.user_id, optional_str(args, "app_id"), optional_str(args, "version")
    )


async def _set_visibility(s: GatewayServices, ctx: CallContext, args: dict[str, Any]) -> Any:
    return await s.lifecycle.set_visibility(
        ctx.user_id, optional_str(args, "app_id"), optional_str(args, "visibility")
    )


async def _set_download(s: GatewayServices, ctx: CallContext, args: dict[str, Any]) -> Any:
    return await s.lifecycle.set_download(
        ctx.user_id, optional_str(args, "app_id"), optional_str(args, "access")
    )


async def _set_binding(s: GatewayServices, ctx: CallContext, args: dict[str, Any]) -> Any:
    if "server_name" not in args:
        raise invalid_params("server_name is required (null removes the binding)")
    return await s.lifecycle.set_binding(
        ctx.user_id, optional_str(args, "app_id"), optional_str(args, "server_name")
    )


async def _set_ratelimit(s: GatewayServices, ctx: CallContext, args: dict[str, Any]) -> Any:
    return await s.lifecycle.set_ratelimit(
        ctx.user_id,
        optional_str(args, "app_id"),
        calls_per_minute=optional_int(args, "calls_per_minute"),
        calls_per_day=optional_int(args, "calls_per_day"),
    )


async def _set_pricing(s: GatewayServices, ctx: CallContext, args: dict[str, Any]) -> Any:
    functions = args.get("functions")
    if functions is not None and not isinstance(functions, dict):
        raise invalid_params("functions must be an object of function name to cents")
    return await s.lifecycle.set_pricing(
        ctx.user_id,
        optional_str(args, "app_id"),
        default_price_cents=optional_int(args, "default_price_cents"),
        functions=functions,
    )


async def _rate(s: GatewayServices, ctx: CallContext, args: dict[str, Any]) -> Any:
    app = await s.lifecycle.find_app(optional_str(args, "app_id"))
    return await s.ratings.rate(ctx.user_id, ctx.tier, app, args.get("rating"))


# Permissions and audit


async def _permissions_grant(s: GatewayServices, ctx: CallContext, args: dict[str, Any]) -> Any:
    app = await s.lifecycle.resolve_app(ctx.user_id, optional_str(args, "app_id"))
    return await s.grants.grant(
        app,
        optional_str(args, "email"),
        functions=string_list(args, "functions"),
        constraints=args.get("constraints"),
    )


async def _permissions_revoke(s: GatewayServices, ctx: CallContext, args: dict[str, Any]) -> Any:
    app = await s.lifecycle.resolve_app(ctx.user_id, optional_str(args, "app_id"))
    return await s.grants.revoke(
        app, email=optional_str(args, "email"), functions=string_list(args, "functions")
    )


async def _permissions_list(s: GatewayServices, ctx: CallContext, args: dict[str, Any]) -> Any:
    app = await s.lifecycle.resolve_app(ctx.user_id, optional_str(args, "app_id"))
    return await s.grants.list_grants(
        app, emails=string_list(args, "emails"), functions=string_list(args, "functions")
    )


async def _permissions_export(s: GatewayServices, ctx: CallContext, args: dict[str, Any]) -> Any:
    app = await s.lifecycle.resolve_app(ctx.user_id, optional_str(args, "app_id"))
    return await s.audit.export(
        app,
        ctx.tier,
        format=optional_str(args, "format"),
        limit=args.get("limit"),
        since=args.get("since"),
        until=args.get("until"),
    )


async def _logs(s: GatewayServices, ctx: CallContext, args: dict[str, Any]) -> Any:
    app = await s.lifecycle.resolve_app(ctx.user_id, optional_str(args, "app_id"))
    return await s.audit.logs(
        app,
        ctx.user_id,
        ctx.tier,
        emails=string_list(args, "emails"),
        functions=string_list(args, "functions"),
        limit=args.get("limit"),
        since=args.get("since"),
    )


# Discovery


async def _discover_desk(s: GatewayServices, ctx: CallContext, args: dict[str, Any]) -> Any:
    return await s.discovery.desk(ctx.user_id)


async def _discover_library(s: GatewayServices, ctx: CallContext, args: dict[str, Any]) -> Any:
    return await s.discovery.library(ctx.user_id, optional_str(args, "query"))


async def _discover_appstore(s: GatewayServices, ctx: CallContext, args: dict[str, Any]) -> Any:
    return await s.discovery.appstore(
        ctx.user_id, optional_str(args, "query"), optional_int(args, "limit")
    )


# Connections


async def _connect(s: GatewayServices, ctx: CallContext, args: dict[str, Any]) -> Any:
    app = await s.lifecycle.find_app(optional_str(args, "app_id"))
    return await s.connections.connect(ctx.user_id, app, args.get("secrets"))


async def _connections(s: GatewayServices, ctx: CallContext, args: dict[str, Any]) -> Any:
    app_ref = optional_str(args, "app_id")
    if app_ref:
        app = await s.lifecycle.find_app(app_ref)
        return await s.connections.app_status(ctx.user_id, app)
    by_app = await s.connections.connected_keys(ctx.user_id)
    apps = await s.apps.get_many(sorted(by_app)) if by_app else []
    return await s.connections.connections(ctx.user_id, apps)


# Memory, pages and sharing


async def _memory_read(s: GatewayServices, ctx: CallContext, args: dict[str, Any]) -> Any:
    return await s.memory.read(
        ctx.user,
        key=optional_str(args, "key"),
        scope=optional_str(args, "scope"),
        owner_email=optional_str(args, "owner_email"),
    )


async def _memory_write(s: GatewayServices, ctx: CallContext, args: dict[str, Any]) -> Any:
    return await s.memory.write(
        ctx.user,
        content=optional_str(args, "content"),
        append=bool(args.get("append", False)),
        key=optional_str(args, "key"),
        value=args.get("value"),
        scope=optional_str(args, "scope"),
    )


async def _memory_query(s: GatewayServices, ctx: CallContext, args: dict[str, Any]) -> Any:
    return await s.memory.query(
        ctx.user,
        scope=optional_str(args, "scope"),
        prefix=optional_str(args, "prefix"),
        limit=args.get("limit"),
        owner_email=optional_str(args, "owner_email"),
    )


async def _memory_forget(s: GatewayServices, ctx: CallContext, args: dict[str, Any]) -> Any:
    return await s.memory.forget(
        ctx.user, require_str(args, "key"), scope=optional_str(args, "scope")
    )


async def _pages_publish(s: GatewayServices, ctx: CallContext, args: dict[str, Any]) -> Any:
    published = args.get("published")
    if published is not None and not isinstance(published, bool):
        raise invalid_params("published must be a boolean")
    return await s.pages.publish(
        ctx.user_id,
        optional_str(args, "slug"),
        optional_str(args, "content"),
        title=optional_str(args, "title"),
        visibility=optional_str(args, "visibility"),
        published=published,
    )


async def _pages_list(s: GatewayServices, ctx: CallContext, args: dict[str, Any]) -> Any:
    return await s.pages.list_pages(ctx.user_id)


async def _share(s: GatewayServices, ctx: CallContext, args: dict[str, Any]) -> Any:
    action = require_str(args, "action")
    if action == "list":
        direction = optional_str(args, "direction") or "outgoing"
        if direction == "incoming":
            return await s.sharing.list_incoming(ctx.user)
        if direction != "outgoing":
            raise invalid_params('direction must be "outgoing" or "incoming"')
        return await s.sharing.list_outgoing(ctx.user)

    kind = require_str(args, "kind")
    if action == "grant":
        return await s.sharing.grant(
            ctx.user,
            kind,
            optional_str(args, "email"),
            access_level=optional_str(args, "access_level") or "read",
            slug=optional_str(args, "slug"),
            scope=optional_str(args, "scope"),
            key_pattern=optional_str(args, "key_pattern"),
            expires_at=parse_timestamp(args.get("expires_at"), "expires_at"),
        )
    if action == "revoke":
        return await s.sharing.revoke(
            ctx.user,
            kind,
            email=optional_str(args, "email"),
            slug=optional_str(args, "slug"),
            scope=optional_str(args, "scope"),
            key_pattern=optional_str(args, "key_pattern"),
        )
    if action == "regenerate_token":
        return await s.sharing.regenerate_token(ctx.user, kind, slug=optional_str(args, "slug"))
    raise invalid_params('action must be one of "grant", "revoke", "list", "regenerate_token"')


# Feedback


async def _shortcomings_report(s: GatewayServices, ctx: CallContext, args: dict[str, Any]) -> Any:
    return s.feedback.report(
        ctx.user_id,
        args.get("type"),
        args.get("summary"),
        context=args.get("context"),
        session_id=ctx.session_id,
    )


async def _gaps_browse(s: GatewayServices, ctx: CallContext, args: dict[str, Any]) -> Any:
    return await s.feedback.browse(
        status=optional_str(args, "status"),
        severity=optional_str(args, "severity"),
        season=optional_int(args, "season"),
        limit=args.get("limit"),
    )


HANDLERS: dict[str, Handler] = {
    "publish": _publish,
    "source.fetch": _source_fetch,
    "sandbox.test": _sandbox_test,
    "set.version": _set_version,
    "set.visibility": _set_visibility,
    "set.download": _set_download,
    "set.binding": _set_binding,
    "set.ratelimit": _set_ratelimit,
    "set.pricing": _set_pricing,
    "permissions.grant": _permissions_grant,
    "permissions.revoke": _permissions_revoke,
    "permissions.list": _permissions_list,
    "permissions.export": _permissions_export,
    "discover.desk": _discover_desk,
    "discover.library": _discover_library,
    "discover.appstore": _discover_appstore,
    "rate": _rate,
    "logs": _logs,
    "connect": _connect,
    "connections": _connections,
    "memory.read": _memory_read,
    "memory.write": _memory_write,
    "memory.query": _memory_query,
    "memory.forget": _memory_forget,
    "pages.publish": _pages_publish,
    "pages.list": _pages_list,
    "share": _share,
    "shortcomings.report": _shortcomings_report,
    "gaps.browse": _gaps_browse,
}
