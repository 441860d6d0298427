"""Readable resources served by resources/list and resources/read."""

from typing import Any

from toolgate.gateway.context import CallContext, GatewayServices
from toolgate.gateway.errors import invalid_params, not_found

GUIDE_URI = "toolgate://platform/guide.md"
LIBRARY_URI = "toolgate://platform/library.md"

GUIDE_MD = """# Toolgate Platform Guide

Endpoint: `POST /mcp/platform` (JSON-RPC 2.0)

List operations with `capabilities/list` (or `tools/list`) and call them with
`capabilities/invoke` (or `tools/call`) as `{"name": ..., "arguments": {...}}`.

## Call context

Every invocation accepts two optional arguments that are recorded with the
call and removed before the operation runs:

| Field | Description |
|-------|-------------|
| `_user_query` | The end user's request that led to this call |
| `_session_id` | A stable identifier for the conversation |

## Discovery

Search in this order:

1. `discover.desk`: the last 3 apps you called.
2. `discover.library`: apps you own or saved, plus your memory.md.
3. `discover.appstore`: every public app and page. Without a query it returns
   featured apps; with one it ranks by relevance, readiness and community
   signal.

`rate` with `like` saves an app to your library; `dislike` hides it from the
app store. Repeating the same rating removes it.

## Publishing

- `publish` without `app_id` creates an app at 1.0.0 and makes it live.
- `publish` with `app_id` adds a version without making it live.
- `set.version` moves the live pointer to an existing version.
- `set.visibility` controls listing; `public` puts the app in the app store.
- `sandbox.test` runs one function of an upload without publishing it.

## Access

- `permissions.grant` is additive per function and accepts constraints:
  `allowed_ips`, `time_window`, `budget_limit` with `budget_period`,
  `expires_at` and `allowed_args`.
- Unregistered emails receive pending invites that activate on first sign-in.
- `permissions.revoke` without email revokes everyone; without functions it
  revokes all access.

## Memory and pages

- `memory.read` / `memory.write` work on memory.md, or on a key when `key` is
  given. `memory.query` lists keys by scope and prefix.
- `pages.publish` publishes markdown at `/p/{user}/{slug}`.
- `share` grants, revokes and lists access to pages, memory.md, library.md and
  key/value patterns.

## Connections

Apps may declare per-user secrets. Use `connect` to set them (null removes a
key) and `connections` to see what is connected.
"""


def list_resources() -> dict[str, Any]:
    return {
        "resources": [
            {
                "uri": GUIDE_URI,
                "name": "Toolgate Platform Guide",
                "description": "How to use the platform operations, discovery and sharing.",
                "mimeType": "text/markdown",
            },
            {
                "uri": LIBRARY_URI,
                "name": "Your App Library",
                "description": "Your owned and saved apps with their capabilities.",
                "mimeType": "text/markdown",
            },
        ]
    }


async def read_resource(
    services: GatewayServices, ctx: CallContext, uri: str | None
) -> dict[str, Any]:
    if not uri:
        raise invalid_params("Missing required parameter: uri")

    if uri == GUIDE_URI:
        text = GUIDE_MD
    elif uri == LIBRARY_URI:
        text = await services.library.compiled(ctx.user_id)
    else:
        raise not_found(f"Resource not found: {uri}")

    return {"contents": [{"uri": uri, "mimeType": "text/markdown", "text": text}]}
