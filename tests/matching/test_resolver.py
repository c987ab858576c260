"""Tests for greedy conflict resolution of fuzzy candidates."""

from typing import Dict, Sequence, Tuple

import pytest

from collection_matcher.matching.comparator import ResolvedRecord
from collection_matcher.matching.models import DEFAULT_MATCH_CONFIG, MatchCandidate, MatchConfig, MatchTier
from collection_matcher.matching.resolver import clears_threshold, resolve_conflicts, within_margin
from tests.helpers import make_record, make_resolved


def _items(*ids: str) -> Tuple[ResolvedRecord, ...]:
    return tuple(
        make_resolved(make_record(record_id, f"Game {record_id}"), position) for position, record_id in enumerate(ids)
    )


def _candidates(left_id: str, *entries: Tuple[str, float]) -> Tuple[MatchCandidate, ...]:
    return tuple(
        MatchCandidate(
            left_id=left_id,
            right_id=right_id,
            tier=MatchTier.FUZZY if score >= DEFAULT_MATCH_CONFIG.fuzzy_threshold else MatchTier.MULTI_FIELD,
            score=score,
        )
        for right_id, score in entries
    )


def _resolve(
    left_ids: Sequence[str],
    right_ids: Sequence[str],
    candidates: Dict[str, Tuple[MatchCandidate, ...]],
    config: MatchConfig = DEFAULT_MATCH_CONFIG,
):
    right = {item.id: item for item in _items(*right_ids)}
    return resolve_conflicts(_items(*left_ids), candidates, right, config)


# ============================================================================
# Helpers
# ============================================================================


class TestThresholdHelpers:
    def test_fuzzy_uses_fuzzy_threshold(self) -> None:
        candidate = MatchCandidate(left_id="l", right_id="r", tier=MatchTier.FUZZY, score=0.8)
        assert clears_threshold(candidate, DEFAULT_MATCH_CONFIG)
        assert not clears_threshold(candidate, MatchConfig(fuzzy_threshold=0.81))

    def test_multi_field_uses_field_threshold(self) -> None:
        candidate = MatchCandidate(left_id="l", right_id="r", tier=MatchTier.MULTI_FIELD, score=0.6)
        assert clears_threshold(candidate, DEFAULT_MATCH_CONFIG)
        assert not clears_threshold(candidate, MatchConfig(field_threshold=0.61))

    def test_within_margin(self) -> None:
        best = MatchCandidate(left_id="l", right_id="r1", tier=MatchTier.FUZZY, score=0.95)
        close = MatchCandidate(left_id="l", right_id="r2", tier=MatchTier.FUZZY, score=0.85)
        far = MatchCandidate(left_id="l", right_id="r3", tier=MatchTier.FUZZY, score=0.80)
        assert within_margin(best, close, DEFAULT_MATCH_CONFIG)
        # a gap of exactly the margin auto-resolves
        assert not within_margin(best, far, DEFAULT_MATCH_CONFIG)


# ============================================================================
# Resolution
# ============================================================================


class TestResolveConflicts:
    def test_single_candidate_committed(self) -> None:
        resolution = _resolve(["l1"], ["r1"], {"l1": _candidates("l1", ("r1", 0.92))})
        assert len(resolution.matched) == 1
        pair = resolution.matched[0]
        assert (pair.left.id, pair.right.id, pair.tier, pair.score) == ("l1", "r1", MatchTier.FUZZY, 0.92)
        assert resolution.ambiguous == ()
        assert resolution.unmatched_left == ()

    def test_higher_score_claims_contested_right(self) -> None:
        resolution = _resolve(
            ["l1", "l2"],
            ["r1", "r2"],
            {
                "l1": _candidates("l1", ("r1", 0.90), ("r2", 0.70)),
                "l2": _candidates("l2", ("r1", 0.95)),
            },
        )
        pairs = {pair.left.id: (pair.right.id, pair.score) for pair in resolution.matched}
        assert pairs == {"l2": ("r1", 0.95), "l1": ("r2", 0.70)}
        # outputs follow left-input order
        assert [pair.left.id for pair in resolution.matched] == ["l1", "l2"]

    def test_tie_goes_to_earlier_left(self) -> None:
        resolution = _resolve(
            ["l1", "l2"],
            ["r1"],
            {"l1": _candidates("l1", ("r1", 0.9)), "l2": _candidates("l2", ("r1", 0.9))},
        )
        assert [(pair.left.id, pair.right.id) for pair in resolution.matched] == [("l1", "r1")]
        assert [record.id for record in resolution.unmatched_left] == ["l2"]

    def test_close_candidates_become_ambiguous(self) -> None:
        resolution = _resolve(["l1"], ["r1", "r2"], {"l1": _candidates("l1", ("r1", 0.92), ("r2", 0.90))})
        assert resolution.matched == ()
        assert len(resolution.ambiguous) == 1
        group = resolution.ambiguous[0]
        assert group.left.id == "l1"
        assert [record.id for record in group.right] == ["r1", "r2"]
        assert len(group) == 3
        assert group.best_score == 0.92

    def test_clear_winner_resolves(self) -> None:
        resolution = _resolve(["l1"], ["r1", "r2"], {"l1": _candidates("l1", ("r1", 0.95), ("r2", 0.70))})
        assert [(pair.left.id, pair.right.id) for pair in resolution.matched] == [("l1", "r1")]

    def test_ambiguous_group_reserves_rights(self) -> None:
        resolution = _resolve(
            ["l1", "l2"],
            ["r1", "r2"],
            {
                "l1": _candidates("l1", ("r1", 0.95), ("r2", 0.94)),
                "l2": _candidates("l2", ("r2", 0.90)),
            },
        )
        assert [group.left.id for group in resolution.ambiguous] == ["l1"]
        assert resolution.matched == ()
        assert [record.id for record in resolution.unmatched_left] == ["l2"]

    def test_left_that_lost_close_candidates_is_queued_for_review(self) -> None:
        resolution = _resolve(
            ["l1", "l2", "l3"],
            ["r1", "r2"],
            {
                "l1": _candidates("l1", ("r1", 0.99)),
                "l2": _candidates("l2", ("r1", 0.95), ("r2", 0.94)),
                "l3": _candidates("l3", ("r2", 0.98)),
            },
        )
        assert [(pair.left.id, pair.right.id) for pair in resolution.matched] == [("l1", "r1"), ("l3", "r2")]
        assert len(resolution.ambiguous) == 1
        group = resolution.ambiguous[0]
        assert group.left.id == "l2"
        assert group.right == ()
        assert len(group) == 1
        assert [c.right_id for c in group.candidates] == ["r1", "r2"]

    def test_below_threshold_unmatched(self) -> None:
        candidate = MatchCandidate(left_id="l1", right_id="r1", tier=MatchTier.MULTI_FIELD, score=0.5)
        resolution = _resolve(["l1"], ["r1"], {"l1": (candidate,)})
        assert resolution.matched == ()
        assert [record.id for record in resolution.unmatched_left] == ["l1"]

    def test_no_candidates(self) -> None:
        resolution = _resolve(["l1", "l2"], [], {})
        assert [record.id for record in resolution.unmatched_left] == ["l1", "l2"]

    @pytest.mark.parametrize("margin,expect_ambiguous", [(0.0, False), (0.05, True)])
    def test_margin_configurable(self, margin: float, expect_ambiguous: bool) -> None:
        config = MatchConfig(ambiguity_margin=margin)
        resolution = _resolve(["l1"], ["r1", "r2"], {"l1": _candidates("l1", ("r1", 0.92), ("r2", 0.90))}, config)
        assert bool(resolution.ambiguous) is expect_ambiguous
