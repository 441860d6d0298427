"""Pure ranking functions for discovery search.

final = similarity * 0.7 + native_boost * 0.15 + community_signal * 0.15

The luck shuffle perturbs only the head of the list, and never by more than
half the gap to the current leader.
"""

import random
from collections.abc import Mapping

from toolgate.apps.models import EnvSchemaEntry
from toolgate.discovery.models import DiscoveryCandidate

SIMILARITY_WEIGHT = 0.7
NATIVE_WEIGHT = 0.15
COMMUNITY_WEIGHT = 0.15


def native_boost(
    env_schema: Mapping[str, EnvSchemaEntry],
    connected_keys: list[str] | set[str],
) -> float:
    """Reward apps the caller can run without further setup.

    1.0 when no per-caller secrets are declared, 0.3 when only optional
    ones are, 0.8 when every required one is connected, else 0.0.
    """
    per_user = {k: e for k, e in env_schema.items() if e.scope == "per_user"}
    if not per_user:
        return 1.0
    required = [k for k, e in per_user.items() if e.required]
    if not required:
        return 0.3
    if all(k in connected_keys for k in required):
        return 0.8
    return 0.0


def community_signal(weighted_likes: int, weighted_dislikes: int) -> float:
    """Like ratio among pro-tier raters, damped for small counts."""
    return weighted_likes / (weighted_likes + weighted_dislikes + 1)


def final_score(
    similarity: float,
    native: float,
    community: float,
    weights: tuple[float, float, float] = (
        SIMILARITY_WEIGHT,
        NATIVE_WEIGHT,
        COMMUNITY_WEIGHT,
    ),
) -> float:
    w_sim, w_native, w_community = weights
    return similarity * w_sim + native * w_native + community * w_community


def rank(candidates: list[DiscoveryCandidate]) -> list[DiscoveryCandidate]:
    """Sort by final score, highest first."""
    return sorted(candidates, key=lambda c: c.final_score, reverse=True)


def luck_shuffle(
    candidates: list[DiscoveryCandidate],
    rng: random.Random,
    window: int = 5,
) -> list[DiscoveryCandidate]:
    """Reorder the top ``window`` of an already ranked list.

    Each head item gets a bonus drawn from [0, gap * 0.5) where gap is its
    distance to the leader. Items past the window keep their positions.
    """
    if len(candidates) < 2 or window < 2:
        return list(candidates)
    size = min(window, len(candidates))
    head = candidates[:size]
    top = head[0].final_score

    perturbed = []
    for item in head:
        gap = top - item.final_score
        perturbed.append((item.final_score + rng.random() * gap * 0.5, item))
    perturbed.sort(key=lambda pair: pair[0], reverse=True)

    return [item for _, item in perturbed] + list(candidates[size:])
