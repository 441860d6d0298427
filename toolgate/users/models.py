"""User models and tier helpers."""

from datetime import UTC, datetime

from pydantic import BaseModel, Field

PRO_TIERS: frozenset[str] = frozenset({"pro", "scale", "enterprise"})


def utc_now() -> datetime:
    """Return current UTC time."""
    return datetime.now(UTC)


def is_pro_tier(tier: str | None) -> bool:
    """Return True for tiers with pro-level access (pro, scale, enterprise)."""
    return (tier or "free") in PRO_TIERS


def canonical_tier(tier: str | None) -> str:
    """Collapse legacy tier aliases: fun -> free, scale/enterprise -> pro."""
    return "pro" if is_pro_tier(tier) else "free"


class User(BaseModel):
    """A registered platform user."""

    id: str = Field(..., description="Identity subject")
    email: str = Field(..., description="Primary email (lower-cased)")
    display_name: str | None = Field(default=None)
    tier: str = Field(default="free", description="Billing tier")
    hosting_balance_cents: int = Field(default=0, description="Prepaid hosting balance")
    created_at: datetime = Field(default_factory=utc_now)
