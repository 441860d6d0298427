"""Static catalog of platform capabilities with input schemas and hints."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class CapabilityAnnotations(BaseModel):
    """Behavior hints for agents choosing a capability."""

    model_config = ConfigDict(populate_by_name=True)

    read_only: bool = Field(serialization_alias="readOnlyHint")
    destructive: bool = Field(serialization_alias="destructiveHint")
    idempotent: bool = Field(serialization_alias="idempotentHint")
    open_world: bool = Field(default=False, serialization_alias="openWorldHint")


class Capability(BaseModel):
    """Descriptor of one operation reachable through capabilities/invoke."""

    name: str
    title: str
    description: str
    input_schema: dict[str, Any]
    annotations: CapabilityAnnotations

    def descriptor(self) -> dict[str, Any]:
        """Wire form used by capabilities/list."""
        return {
            "name": self.name,
            "title": self.title,
            "description": self.description,
            "inputSchema": self.input_schema,
            "annotations": self.annotations.model_dump(by_alias=True),
        }


def _hints(
    read_only: bool,
    destructive: bool,
    idempotent: bool,
    open_world: bool = False,
) -> CapabilityAnnotations:
    return CapabilityAnnotations(
        read_only=read_only,
        destructive=destructive,
        idempotent=idempotent,
        open_world=open_world,
    )


def _schema(properties: dict[str, Any], required: list[str] | None = None) -> dict[str, Any]:
    schema: dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required
    return schema


_APP_ID = {"type": "string", "description": "App ID or slug"}
_STRINGS = {"type": "array", "items": {"type": "string"}}
_FILES = {
    "type": "array",
    "items": {
        "type": "object",
        "properties": {
            "path": {"type": "string", "description": 'Relative file path (e.g. "index.ts")'},
            "content": {"type": "string", "description": "File content (text or base64)"},
            "encoding": {"type": "string", "enum": ["text", "base64"]},
        },
        "required": ["path", "content"],
    },
    "description": "Source files. Must include an entry file (index.ts/tsx/js/jsx)",
}
_CONSTRAINTS = {
    "type": "object",
    "description": "Constraints applied to every granted function",
    "properties": {
        "allowed_ips": {**_STRINGS, "description": "IP addresses or CIDR ranges"},
        "time_window": {
            "type": "object",
            "properties": {
                "start_hour": {"type": "integer", "minimum": 0, "maximum": 23},
                "end_hour": {"type": "integer", "minimum": 0, "maximum": 24},
                "timezone": {"type": "string", "description": "IANA timezone, default UTC"},
                "days": {
                    "type": "array",
                    "items": {"type": "integer", "minimum": 0, "maximum": 6},
                    "description": "Days of week, 0 = Sunday",
                },
            },
            "required": ["start_hour", "end_hour"],
        },
        "budget_limit": {"type": "integer", "minimum": 0, "description": "Max calls per period"},
        "budget_period": {"type": "string", "enum": ["hour", "day", "week", "month"]},
        "expires_at": {"type": "string", "description": "ISO timestamp after which access ends"},
        "allowed_args": {
            "type": "object",
            "description": "Parameter name to list of allowed values",
            "additionalProperties": {"type": "array"},
        },
    },
}
_VISIBILITY = {"type": "string", "enum": ["private", "unlisted", "public", "published"]}


CAPABILITIES: tuple[Capability, ...] = (
    Capability(
        name="publish",
        title="Publish App",
        description=(
            "Upload source files. Without app_id a new app is created at 1.0.0 and made live. "
            "With app_id a new version is added but not made live; use set.version."
        ),
        input_schema=_schema(
            {
                "files": _FILES,
                "app_id": {"type": "string", "description": "Existing app ID or slug"},
                "name": {"type": "string", "description": "App name (new apps only)"},
                "description": {"type": "string"},
                "visibility": _VISIBILITY,
                "version": {"type": "string", "description": "Default: patch bump"},
            },
            ["files"],
        ),
        annotations=_hints(False, False, False),
    ),
    Capability(
        name="source.fetch",
        title="Fetch Source",
        description="Download the source files of an app version, if its download policy allows.",
        input_schema=_schema(
            {"app_id": _APP_ID, "version": {"type": "string", "description": "Default: live"}},
            ["app_id"],
        ),
        annotations=_hints(True, False, True),
    ),
    Capability(
        name="sandbox.test",
        title="Test in Sandbox",
        description="Bundle source files and run one exported function without publishing.",
        input_schema=_schema(
            {
                "files": _FILES,
                "function_name": {"type": "string", "description": "Exported function to call"},
                "args": {"type": "object", "description": "Arguments passed to the function"},
                "secrets": {
                    "type": "object",
                    "description": "Environment values for this run only",
                    "additionalProperties": {"type": "string"},
                },
            },
            ["files", "function_name"],
        ),
        annotations=_hints(False, False, False, open_world=True),
    ),
    Capability(
        name="set.version",
        title="Set Live Version",
        description="Make an existing version live and rebuild the owner's library.",
        input_schema=_schema(
            {"app_id": _APP_ID, "version": {"type": "string"}}, ["app_id", "version"]
        ),
        annotations=_hints(False, False, True),
    ),
    Capability(
        name="set.visibility",
        title="Set Visibility",
        description="Change who can see an app. Public apps are indexed for app store search.",
        input_schema=_schema(
            {"app_id": _APP_ID, "visibility": _VISIBILITY}, ["app_id", "visibility"]
        ),
        annotations=_hints(False, False, True),
    ),
    Capability(
        name="set.download",
        title="Set Download Policy",
        description="Control who can fetch an app's source code.",
        input_schema=_schema(
            {"app_id": _APP_ID, "access": {"type": "string", "enum": ["owner", "public"]}},
            ["app_id", "access"],
        ),
        annotations=_hints(False, False, True),
    ),
    Capability(
        name="set.binding",
        title="Bind External Service",
        description="Bind an app to one of your registered external data services. null unbinds.",
        input_schema=_schema(
            {"app_id": _APP_ID, "server_name": {"type": ["string", "null"]}},
            ["app_id", "server_name"],
        ),
        annotations=_hints(False, False, True),
    ),
    Capability(
        name="set.ratelimit",
        title="Set Rate Limit",
        description="Per-consumer call limits for an app. Pass nulls to use platform defaults.",
        input_schema=_schema(
            {
                "app_id": _APP_ID,
                "calls_per_minute": {"type": ["integer", "null"], "minimum": 1, "maximum": 10000},
                "calls_per_day": {"type": ["integer", "null"], "minimum": 1, "maximum": 1000000},
            },
            ["app_id"],
        ),
        annotations=_hints(False, False, True),
    ),
    Capability(
        name="set.pricing",
        title="Set Pricing",
        description="Per-call prices in cents with per-function overrides. Nulls remove pricing.",
        input_schema=_schema(
            {
                "app_id": _APP_ID,
                "default_price_cents": {"type": ["integer", "null"], "minimum": 0},
                "functions": {
                    "type": ["object", "null"],
                    "additionalProperties": {"type": "integer", "minimum": 0},
                },
            },
            ["app_id"],
        ),
        annotations=_hints(False, False, True),
    ),
    Capability(
        name="permissions.grant",
        title="Grant Permissions",
        description=(
            "Grant a user access to functions of your app. Additive. Omit functions to grant "
            "all exports. Unregistered emails get a pending invite."
        ),
        input_schema=_schema(
            {
                "app_id": _APP_ID,
                "email": {"type": "string"},
                "functions": _STRINGS,
                "constraints": _CONSTRAINTS,
            },
            ["app_id", "email"],
        ),
        annotations=_hints(False, False, True),
    ),
    Capability(
        name="permissions.revoke",
        title="Revoke Permissions",
        description=(
            "Revoke access. Without email every user is revoked. Without functions all "
            "access is revoked."
        ),
        input_schema=_schema(
            {"app_id": _APP_ID, "email": {"type": "string"}, "functions": _STRINGS},
            ["app_id"],
        ),
        annotations=_hints(False, True, True),
    ),
    Capability(
        name="permissions.list",
        title="List Permissions",
        description="Granted users, their functions and active constraints, plus pending invites.",
        input_schema=_schema(
            {"app_id": _APP_ID, "emails": _STRINGS, "functions": _STRINGS}, ["app_id"]
        ),
        annotations=_hints(True, False, True),
    ),
    Capability(
        name="permissions.export",
        title="Export Audit Log",
        description="Pro: export the call audit of an app as JSON or CSV.",
        input_schema=_schema(
            {
                "app_id": _APP_ID,
                "format": {"type": "string", "enum": ["json", "csv"]},
                "since": {"type": "string"},
                "until": {"type": "string"},
                "limit": {"type": "integer", "minimum": 1, "maximum": 5000},
            },
            ["app_id"],
        ),
        annotations=_hints(True, False, True),
    ),
    Capability(
        name="discover.desk",
        title="Check Desk",
        description="The last 3 distinct apps you called. Check here before searching.",
        input_schema=_schema({}),
        annotations=_hints(True, False, True),
    ),
    Capability(
        name="discover.library",
        title="Search Your Library",
        description="Your own and saved apps. No query returns library.md and memory.md.",
        input_schema=_schema({"query": {"type": "string"}}),
        annotations=_hints(True, False, True),
    ),
    Capability(
        name="discover.appstore",
        title="Browse App Store",
        description=(
            "Search public apps and pages ranked by relevance, readiness and community "
            "signal. Without a query returns featured apps."
        ),
        input_schema=_schema(
            {"query": {"type": "string"}, "limit": {"type": "integer", "minimum": 1}}
        ),
        annotations=_hints(True, False, True, open_world=True),
    ),
    Capability(
        name="rate",
        title="Rate an App",
        description=(
            "Like (saves to library) or dislike (hides from app store) an app. Repeating "
            "the same rating removes it."
        ),
        input_schema=_schema(
            {"app_id": _APP_ID, "rating": {"type": "string", "enum": ["like", "dislike"]}},
            ["app_id", "rating"],
        ),
        annotations=_hints(False, False, False),
    ),
    Capability(
        name="logs",
        title="View Call Logs",
        description="Recent calls to an app you own, filterable by caller and function.",
        input_schema=_schema(
            {
                "app_id": _APP_ID,
                "emails": _STRINGS,
                "functions": _STRINGS,
                "limit": {"type": "integer", "minimum": 1, "maximum": 200},
                "since": {"type": "string"},
            },
            ["app_id"],
        ),
        annotations=_hints(True, False, True),
    ),
    Capability(
        name="connect",
        title="Connect to App",
        description="Set or remove (null) your per-user secrets for an app.",
        input_schema=_schema(
            {
                "app_id": _APP_ID,
                "secrets": {
                    "type": "object",
                    "additionalProperties": {"type": ["string", "null"]},
                },
            },
            ["app_id", "secrets"],
        ),
        annotations=_hints(False, False, True),
    ),
    Capability(
        name="connections",
        title="View Connections",
        description="Without app_id lists apps you are connected to; with app_id shows key status.",
        input_schema=_schema({"app_id": _APP_ID}),
        annotations=_hints(True, False, True),
    ),
    Capability(
        name="memory.read",
        title="Read Memory",
        description=(
            "Read memory.md, or one key of key/value memory. With owner_email, read a key "
            "another user shared with you."
        ),
        input_schema=_schema(
            {
                "key": {"type": "string"},
                "scope": {"type": "string", "description": "Default: user"},
                "owner_email": {"type": "string"},
            }
        ),
        annotations=_hints(True, False, True),
    ),
    Capability(
        name="memory.write",
        title="Write Memory",
        description="Overwrite or append to memory.md, or set one key of key/value memory.",
        input_schema=_schema(
            {
                "content": {"type": "string", "description": "memory.md body or section"},
                "append": {"type": "boolean", "description": "Append instead of overwrite"},
                "key": {"type": "string"},
                "value": {"description": "JSON value for key"},
                "scope": {"type": "string", "description": "Default: user"},
            }
        ),
        annotations=_hints(False, True, False),
    ),
    Capability(
        name="memory.query",
        title="Query Memory",
        description="Key/value entries by scope and key prefix, most recently updated first.",
        input_schema=_schema(
            {
                "scope": {"type": "string"},
                "prefix": {"type": "string"},
                "limit": {"type": "integer", "minimum": 1},
                "owner_email": {"type": "string"},
            }
        ),
        annotations=_hints(True, False, True),
    ),
    Capability(
        name="memory.forget",
        title="Forget Memory Key",
        description="Delete one key of key/value memory.",
        input_schema=_schema({"key": {"type": "string"}, "scope": {"type": "string"}}, ["key"]),
        annotations=_hints(False, True, True),
    ),
    Capability(
        name="pages.publish",
        title="Publish Page",
        description="Publish markdown as a page. The same slug overwrites the previous body.",
        input_schema=_schema(
            {
                "content": {"type": "string"},
                "slug": {"type": "string", "description": 'e.g. "weekly-report"'},
                "title": {"type": "string"},
                "visibility": {"type": "string", "enum": ["private", "public"]},
                "published": {"type": "boolean"},
            },
            ["content", "slug"],
        ),
        annotations=_hints(False, False, True, open_world=True),
    ),
    Capability(
        name="pages.list",
        title="List Pages",
        description="Your pages with URLs, titles, sizes and update times.",
        input_schema=_schema({}),
        annotations=_hints(True, False, True),
    ),
    Capability(
        name="share",
        title="Share Content",
        description=(
            "Grant, revoke or list shares of pages, memory.md, library.md and key/value "
            "memory, or regenerate a document's access token."
        ),
        input_schema=_schema(
            {
                "action": {
                    "type": "string",
                    "enum": ["grant", "revoke", "list", "regenerate_token"],
                },
                "kind": {
                    "type": "string",
                    "enum": ["page", "memory_md", "library_md", "memory_kv"],
                },
                "slug": {"type": "string"},
                "scope": {"type": "string"},
                "key_pattern": {"type": "string", "description": "Exact key or prefix ending in *"},
                "email": {"type": "string"},
                "access_level": {"type": "string", "enum": ["read", "readwrite"]},
                "direction": {"type": "string", "enum": ["outgoing", "incoming"]},
                "expires_at": {"type": "string"},
            },
            ["action"],
        ),
        annotations=_hints(False, False, False),
    ),
    Capability(
        name="shortcomings.report",
        title="Report Shortcoming",
        description="Report something that did not work well. Always acknowledged.",
        input_schema=_schema(
            {
                "type": {
                    "type": "string",
                    "enum": [
                        "capability_gap",
                        "tool_failure",
                        "user_friction",
                        "schema_confusion",
                        "protocol_limitation",
                        "quality_issue",
                    ],
                },
                "summary": {"type": "string"},
                "context": {"type": "object"},
            },
            ["type", "summary"],
        ),
        annotations=_hints(False, False, False),
    ),
    Capability(
        name="gaps.browse",
        title="Browse Gaps",
        description="Capabilities the platform is looking for, with their point values.",
        input_schema=_schema(
            {
                "status": {"type": "string", "enum": ["open", "claimed", "fulfilled", "closed"]},
                "severity": {"type": "string", "enum": ["low", "medium", "high", "critical"]},
                "season": {"type": "integer"},
                "limit": {"type": "integer", "minimum": 1, "maximum": 100},
            }
        ),
        annotations=_hints(True, False, True),
    ),
)

_BY_NAME: dict[str, Capability] = {c.name: c for c in CAPABILITIES}


def get_capability(name: str) -> Capability | None:
    return _BY_NAME.get(name)


def list_descriptors() -> list[dict[str, Any]]:
    return [c.descriptor() for c in CAPABILITIES]
