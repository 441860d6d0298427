"""Grants: additive per-function permissions with optional constraints."""

from toolgate.grants.models import (
    ConstraintCheckResult,
    ConstraintPatch,
    Grant,
    GrantConstraints,
    PendingGrant,
    TimeWindow,
    merge_constraints,
)
from toolgate.grants.store import GrantStore

__all__ = [
    "ConstraintCheckResult",
    "ConstraintPatch",
    "Grant",
    "GrantConstraints",
    "GrantStore",
    "PendingGrant",
    "TimeWindow",
    "merge_constraints",
]
