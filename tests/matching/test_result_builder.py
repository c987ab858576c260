"""Tests for result assembly and the partition check."""

import pytest

from collection_matcher.matching.errors import InvariantViolation
from collection_matcher.matching.models import (
    AmbiguousGroup,
    ComparisonResult,
    MatchCandidate,
    MatchedPair,
    MatchTier,
)
from collection_matcher.matching.result_builder import build_comparison_result, validate_partition
from tests.helpers import make_record


LEFT = (make_record("l1", "Tetris"), make_record("l2", "Doom"), make_record("l3", "Quake"))
RIGHT = (make_record("r1", "Tetris"), make_record("r2", "Tetris DX"), make_record("r3", "Myst"))


def _pair(left_index: int, right_index: int) -> MatchedPair:
    return MatchedPair(left=LEFT[left_index], right=RIGHT[right_index], tier=MatchTier.FUZZY, score=0.9)


class TestBuildComparisonResult:
    def test_residuals_in_input_order(self) -> None:
        result = build_comparison_result(LEFT, RIGHT, [_pair(1, 2)], [])
        assert [r.id for r in result.unmatched_left] == ["l1", "l3"]
        assert [r.id for r in result.unmatched_right] == ["r1", "r2"]

    def test_ambiguous_rights_not_unmatched(self) -> None:
        group = AmbiguousGroup(
            left=LEFT[0],
            right=(RIGHT[0], RIGHT[1]),
            candidates=(
                MatchCandidate(left_id="l1", right_id="r1", tier=MatchTier.FUZZY, score=1.0),
                MatchCandidate(left_id="l1", right_id="r2", tier=MatchTier.FUZZY, score=0.95),
            ),
        )
        result = build_comparison_result(LEFT, RIGHT, [], [group])
        assert [r.id for r in result.unmatched_left] == ["l2", "l3"]
        assert [r.id for r in result.unmatched_right] == ["r3"]

    def test_empty_inputs(self) -> None:
        result = build_comparison_result((), (), [], [])
        assert result.matched == ()
        assert result.unmatched_left == ()
        assert result.metadata == {}

    def test_right_used_twice_rejected(self) -> None:
        with pytest.raises(InvariantViolation, match="more than once"):
            build_comparison_result(LEFT, RIGHT, [_pair(0, 0), _pair(1, 0)], [])

    def test_unknown_record_rejected(self) -> None:
        stranger = MatchedPair(left=make_record("x9", "Myst"), right=RIGHT[2], tier=MatchTier.FUZZY, score=0.9)
        with pytest.raises(InvariantViolation, match="not present"):
            build_comparison_result(LEFT, RIGHT, [stranger], [])


class TestValidatePartition:
    def test_dropped_record_rejected(self) -> None:
        result = ComparisonResult(
            matched=(_pair(0, 0),),
            ambiguous=(),
            unmatched_left=(LEFT[1],),
            unmatched_right=RIGHT[1:],
        )
        with pytest.raises(InvariantViolation, match="dropped"):
            validate_partition(LEFT, RIGHT, result)

    def test_valid_partition_returned(self) -> None:
        result = ComparisonResult(
            matched=(_pair(0, 0),),
            ambiguous=(),
            unmatched_left=LEFT[1:],
            unmatched_right=RIGHT[1:],
        )
        assert validate_partition(LEFT, RIGHT, result) is result

    def test_is_an_assertion_error(self) -> None:
        assert issubclass(InvariantViolation, AssertionError)
