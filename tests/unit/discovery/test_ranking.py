"""Tests for discovery scoring and the luck shuffle."""

import random

import pytest

from toolgate.apps.models import EnvSchemaEntry
from toolgate.discovery.models import DiscoveryCandidate
from toolgate.discovery.ranking import (
    community_signal,
    final_score,
    luck_shuffle,
    native_boost,
    rank,
)


def candidate(name: str, score: float) -> DiscoveryCandidate:
    return DiscoveryCandidate(id=name, kind="app", similarity=score, final_score=score)


class TestNativeBoost:
    def test_no_secrets_needed(self) -> None:
        assert native_boost({}, []) == 1.0

    def test_universal_secrets_ignored(self) -> None:
        schema = {"API_KEY": EnvSchemaEntry(scope="universal", required=True)}
        assert native_boost(schema, []) == 1.0

    def test_only_optional_secrets(self) -> None:
        schema = {"TOKEN": EnvSchemaEntry(scope="per_user", required=False)}
        assert native_boost(schema, []) == 0.3

    def test_required_connected(self) -> None:
        schema = {"TOKEN": EnvSchemaEntry(scope="per_user", required=True)}
        assert native_boost(schema, {"TOKEN"}) == 0.8

    def test_required_missing(self) -> None:
        schema = {
            "TOKEN": EnvSchemaEntry(scope="per_user", required=True),
            "ORG": EnvSchemaEntry(scope="per_user", required=True),
        }
        assert native_boost(schema, ["TOKEN"]) == 0.0


class TestScores:
    def test_community_signal_damped(self) -> None:
        assert community_signal(0, 0) == 0.0
        assert community_signal(1, 0) == 0.5
        assert community_signal(9, 0) == pytest.approx(0.9)

    def test_final_score_weights(self) -> None:
        assert final_score(1.0, 1.0, 1.0) == pytest.approx(1.0)
        assert final_score(0.5, 0.0, 0.0) == pytest.approx(0.35)
        assert final_score(0.5, 1.0, 0.0, weights=(1.0, 0.0, 0.0)) == pytest.approx(0.5)

    def test_rank_orders_descending(self) -> None:
        ranked = rank([candidate("a", 0.2), candidate("b", 0.9), candidate("c", 0.5)])
        assert [c.id for c in ranked] == ["b", "c", "a"]


class TestLuckShuffle:
    @pytest.mark.parametrize("seed", range(20))
    def test_leader_keeps_first_place(self, seed: int) -> None:
        ranked = rank([candidate(str(i), 1.0 - i * 0.05) for i in range(8)])
        shuffled = luck_shuffle(ranked, random.Random(seed))
        assert shuffled[0].id == "0"

    @pytest.mark.parametrize("seed", range(20))
    def test_tail_is_untouched(self, seed: int) -> None:
        ranked = rank([candidate(str(i), 1.0 - i * 0.05) for i in range(8)])
        shuffled = luck_shuffle(ranked, random.Random(seed), window=5)

        assert [c.id for c in shuffled[5:]] == ["5", "6", "7"]
        assert sorted(c.id for c in shuffled[:5]) == ["0", "1", "2", "3", "4"]

    @pytest.mark.parametrize("seed", range(20))
    def test_bonus_bounded_by_half_gap(self, seed: int) -> None:
        # c trails the leader by 0.4, so it gains under 0.2 and stays behind b
        ranked = rank([candidate("a", 1.0), candidate("b", 0.85), candidate("c", 0.6)])
        shuffled = luck_shuffle(ranked, random.Random(seed))
        assert [c.id for c in shuffled].index("b") < [c.id for c in shuffled].index("c")

    def test_short_lists_unchanged(self) -> None:
        ranked = [candidate("only", 0.9)]
        assert luck_shuffle(ranked, random.Random(0)) == ranked

    def test_scores_are_not_modified(self) -> None:
        ranked = rank([candidate("a", 0.9), candidate("b", 0.8), candidate("c", 0.7)])
        shuffled = luck_shuffle(ranked, random.Random(3))
        assert {c.id: c.final_score for c in shuffled} == {"a": 0.9, "b": 0.8, "c": 0.7}
