"""User directory: identities, tiers and hosting balances."""

from toolgate.users.models import PRO_TIERS, User, canonical_tier, is_pro_tier
from toolgate.users.store import UserStore

__all__ = ["PRO_TIERS", "User", "UserStore", "canonical_tier", "is_pro_tier"]
