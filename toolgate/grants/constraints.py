"""Call-time enforcement of grant constraints.

Checks run in order: expiry, IP allowlist, time window, usage budget,
per-parameter allowlist. The first failure wins.
"""

import ipaddress
from datetime import UTC, datetime, timedelta
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from toolgate.grants.models import ConstraintCheckResult, GrantConstraints, TimeWindow

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def check_constraints(
    constraints: GrantConstraints,
    client_ip: str | None,
    args: dict[str, Any] | None = None,
    now: datetime | None = None,
) -> ConstraintCheckResult:
    """Evaluate every present constraint against the current call."""
    current = now or datetime.now(UTC)

    if constraints.expires_at is not None and current >= constraints.expires_at:
        return ConstraintCheckResult(
            allowed=False,
            reason=f"Permission expired at {constraints.expires_at.isoformat()}",
        )

    if constraints.allowed_ips and client_ip:
        if not is_ip_allowed(client_ip, constraints.allowed_ips):
            return ConstraintCheckResult(
                allowed=False, reason=f"IP {client_ip} not in allowlist"
            )

    if constraints.time_window is not None:
        if not is_within_time_window(constraints.time_window, current):
            return ConstraintCheckResult(allowed=False, reason="Outside allowed time window")

    if constraints.budget_limit is not None and constraints.budget_limit > 0:
        used = effective_budget_used(constraints, current)
        if used >= constraints.budget_limit:
            return ConstraintCheckResult(
                allowed=False,
                reason=f"Usage budget exhausted ({used}/{constraints.budget_limit})",
            )

    if constraints.allowed_args:
        for param, allowed_values in constraints.allowed_args.items():
            if args is None or param not in args:
                continue
            if args[param] not in allowed_values:
                return ConstraintCheckResult(
                    allowed=False,
                    reason=f"Value for '{param}' is not in the allowed set",
                )

    return ConstraintCheckResult(allowed=True)


def is_ip_allowed(client_ip: str, allowed_ips: list[str]) -> bool:
    """Match an address against exact entries and CIDR ranges."""
    try:
        address = ipaddress.ip_address(client_ip)
    except ValueError:
        return False

    for entry in allowed_ips:
        if "/" in entry:
            try:
                if address in ipaddress.ip_network(entry, strict=False):
                    return True
            except ValueError:
                continue
        elif entry == client_ip:
            return True
    return False


def is_within_time_window(window: TimeWindow, now: datetime) -> bool:
    """Check the local hour and weekday of now against a window."""
    try:
        local = now.astimezone(ZoneInfo(window.timezone or "UTC"))
    except ZoneInfoNotFoundError:
        local = now.astimezone(UTC)

    # isoweekday: Monday=1..Sunday=7, windows use Sunday=0
    weekday = local.isoweekday() % 7
    if window.days and weekday not in window.days:
        return False

    hour = local.hour
    if window.start_hour <= window.end_hour:
        return window.start_hour <= hour < window.end_hour
    return hour >= window.start_hour or hour < window.end_hour


def budget_period_start(period: str | None, now: datetime | None = None) -> datetime:
    """Start of the budget period containing now; epoch when unbounded."""
    current = (now or datetime.now(UTC)).astimezone(UTC)

    if period == "hour":
        return current.replace(minute=0, second=0, microsecond=0)
    if period == "day":
        return current.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == "week":
        midnight = current.replace(hour=0, minute=0, second=0, microsecond=0)
        return midnight - timedelta(days=current.isoweekday() % 7)
    if period == "month":
        return current.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    return _EPOCH


def effective_budget_used(constraints: GrantConstraints, now: datetime) -> int:
    """Usage counter as seen in the current period (0 after a boundary)."""
    if constraints.budget_period is None:
        return constraints.budget_used
    start = budget_period_start(constraints.budget_period, now)
    if constraints.budget_period_start is None or constraints.budget_period_start < start:
        return 0
    return constraints.budget_used
