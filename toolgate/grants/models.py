"""Grant domain models and the additive constraint merge."""

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

BudgetPeriod = Literal["hour", "day", "week", "month"]


def utc_now() -> datetime:
    """Return current UTC time."""
    return datetime.now(UTC)


class TimeWindow(BaseModel):
    """Hours (and optionally weekdays) during which a grant is usable.

    When start_hour > end_hour the window wraps past midnight.
    Days use 0 = Sunday.
    """

    model_config = ConfigDict(extra="forbid")

    start_hour: int = Field(..., ge=0, le=23)
    end_hour: int = Field(..., ge=0, le=24)
    timezone: str = Field(default="UTC", description="IANA timezone name")
    days: list[int] | None = Field(default=None, description="Allowed weekdays, 0 = Sunday")


class ConstraintPatch(BaseModel):
    """Constraint fields supplied with a grant request.

    Only fields explicitly present in the request take part in a merge;
    sending a field as null clears it.
    """

    model_config = ConfigDict(extra="forbid")

    allowed_ips: list[str] | None = None
    time_window: TimeWindow | None = None
    budget_limit: int | None = Field(default=None, ge=0)
    budget_period: BudgetPeriod | None = None
    expires_at: datetime | None = None
    allowed_args: dict[str, list[Any]] | None = None

    def applied_kinds(self) -> list[str]:
        """Names of the constraint kinds set to a value by this patch."""
        kinds = []
        if self.allowed_ips:
            kinds.append("ip_allowlist")
        if self.time_window is not None:
            kinds.append("time_window")
        if self.budget_limit is not None:
            kinds.append("usage_budget")
        if self.expires_at is not None:
            kinds.append("expiry")
        if self.allowed_args:
            kinds.append("arg_allowlist")
        return kinds


class GrantConstraints(BaseModel):
    """Constraint record stored with every grant row."""

    allowed_ips: list[str] | None = None
    time_window: TimeWindow | None = None
    budget_limit: int | None = None
    budget_used: int = 0
    budget_period: BudgetPeriod | None = None
    budget_period_start: datetime | None = Field(
        default=None,
        description="Start of the period budget_used was counted in",
    )
    expires_at: datetime | None = None
    allowed_args: dict[str, list[Any]] | None = None

    def has_any(self) -> bool:
        """True if at least one constraint is set."""
        return bool(
            self.allowed_ips
            or self.time_window is not None
            or self.budget_limit is not None
            or self.expires_at is not None
            or self.allowed_args
        )

    def to_listing(self) -> dict[str, Any]:
        """Nested constraint view for permission listings (non-null only)."""
        view: dict[str, Any] = {}
        if self.allowed_ips:
            view["allowed_ips"] = self.allowed_ips
        if self.time_window is not None:
            view["time_window"] = self.time_window.model_dump()
        if self.budget_limit is not None:
            view["budget_limit"] = self.budget_limit
            view["budget_used"] = self.budget_used
            if self.budget_period:
                view["budget_period"] = self.budget_period
        if self.expires_at is not None:
            view["expires_at"] = self.expires_at.isoformat()
        if self.allowed_args:
            view["allowed_args"] = self.allowed_args
        return view


def merge_constraints(
    existing: GrantConstraints | None,
    patch: ConstraintPatch | None,
) -> GrantConstraints:
    """Merge a patch into a stored constraint record field by field.

    Fields present in the patch overwrite; absent fields are preserved.
    Supplying budget_limit restarts the usage counter.
    """
    base = existing or GrantConstraints()
    if patch is None:
        return base

    updates: dict[str, Any] = {
        name: getattr(patch, name) for name in patch.model_fields_set
    }
    if "budget_limit" in updates:
        updates["budget_used"] = 0
        updates["budget_period_start"] = None
    return base.model_copy(update=updates)


class Grant(BaseModel):
    """Permission for one grantee to call one capability of a resource."""

    app_id: str
    grantee_id: str
    granted_by: str
    function_name: str
    constraints: GrantConstraints = Field(default_factory=GrantConstraints)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class PendingGrant(BaseModel):
    """Grant recorded against an email that has not registered yet."""

    app_id: str
    invited_email: str
    granted_by: str
    function_name: str
    constraints: GrantConstraints = Field(default_factory=GrantConstraints)
    created_at: datetime = Field(default_factory=utc_now)


class ConstraintCheckResult(BaseModel):
    """Outcome of evaluating a grant on the invocation path."""

    allowed: bool
    reason: str | None = None
