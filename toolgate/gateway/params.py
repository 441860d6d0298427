"""Argument coercion shared by capability handlers and services."""

from datetime import UTC, datetime
from typing import Any

from toolgate.gateway.errors import invalid_params


def require_str(args: dict[str, Any], name: str) -> str:
    value = args.get(name)
    if not isinstance(value, str) or not value:
        raise invalid_params(f"{name} is required")
    return value


def optional_str(args: dict[str, Any], name: str) -> str | None:
    value = args.get(name)
    if value is None:
        return None
    if not isinstance(value, str):
        raise invalid_params(f"{name} must be a string")
    return value


def optional_int(args: dict[str, Any], name: str) -> int | None:
    value = args.get(name)
    if value is None:
        return None
    if not isinstance(value, int) or isinstance(value, bool):
        raise invalid_params(f"{name} must be an integer")
    return value


def string_list(args: dict[str, Any], name: str) -> list[str] | None:
    """A list-of-strings argument; a bare string is accepted as one item."""
    value = args.get(name)
    if value is None:
        return None
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise invalid_params(f"{name} must be an array of strings")
    return value


def parse_timestamp(value: Any, field: str) -> datetime | None:
    """Parse an ISO-8601 argument; naive values are taken as UTC."""
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise invalid_params(f"{field} must be an ISO-8601 timestamp")
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise invalid_params(f"{field} must be an ISO-8601 timestamp") from None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def clamp_limit(value: Any, default: int, maximum: int) -> int:
    if value is None:
        return default
    if not isinstance(value, int) or isinstance(value, bool) or value < 1:
        raise invalid_params("limit must be a positive integer")
    return min(value, maximum)
