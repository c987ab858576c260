"""Tests for field type checking and per-field scoring."""

import pytest

from collection_matcher.matching.comparator import (
    aggregate_score,
    check_field_type,
    compare_records_detailed,
    matched_fields,
    primary_field_similarity,
    resolve_record_fields,
    score_records,
)
from collection_matcher.matching.errors import TypeMismatchError
from collection_matcher.matching.models import (
    DEFAULT_MATCH_CONFIG,
    FieldKind,
    FieldSpec,
    MatchConfig,
    SimilarityMetric,
)
from tests.helpers import make_record


PLATFORM_CONFIG = MatchConfig(
    fields=(
        FieldSpec(name="title", kind=FieldKind.TEXT, weight=2.0, metric=SimilarityMetric.LEVENSHTEIN),
        FieldSpec(name="platform", kind=FieldKind.EXACT, weight=1.0),
        FieldSpec(name="year", kind=FieldKind.NUMERIC, weight=1.0, tolerance=4.0),
    ),
    identity_fields=("title",),
)


# ============================================================================
# Type checking
# ============================================================================


class TestCheckFieldType:
    def test_text_requires_string(self) -> None:
        check_field_type(FieldSpec(name="title"), "r1", "Tetris")
        with pytest.raises(TypeMismatchError, match="title"):
            check_field_type(FieldSpec(name="title"), "r1", 1989)

    def test_numeric_rejects_bool_and_string(self) -> None:
        spec = FieldSpec(name="year", kind=FieldKind.NUMERIC)
        check_field_type(spec, "r1", 1989)
        check_field_type(spec, "r1", 1989.5)
        with pytest.raises(TypeMismatchError):
            check_field_type(spec, "r1", True)
        with pytest.raises(TypeMismatchError):
            check_field_type(spec, "r1", "1989")

    def test_numeric_rejects_non_finite(self) -> None:
        spec = FieldSpec(name="year", kind=FieldKind.NUMERIC)
        with pytest.raises(TypeMismatchError) as exc_info:
            check_field_type(spec, "r1", float("nan"))
        assert exc_info.value.actual == "float (nan)"
        with pytest.raises(TypeMismatchError):
            check_field_type(spec, "r1", float("-inf"))

    def test_exact_accepts_string_and_int(self) -> None:
        spec = FieldSpec(name="sku", kind=FieldKind.EXACT)
        check_field_type(spec, "r1", "NES-TR-USA")
        check_field_type(spec, "r1", 42)
        with pytest.raises(TypeMismatchError):
            check_field_type(spec, "r1", 4.2)

    def test_error_carries_context(self) -> None:
        with pytest.raises(TypeMismatchError) as exc_info:
            check_field_type(FieldSpec(name="title"), "game-7", 7)
        assert exc_info.value.record_id == "game-7"
        assert exc_info.value.field == "title"
        assert exc_info.value.actual == "int"


class TestResolveRecordFields:
    def test_well_typed_fields_kept(self) -> None:
        resolved, mismatches = resolve_record_fields(make_record("a", "Tetris", 1989), DEFAULT_MATCH_CONFIG, "left")
        assert resolved.values == {"title": "Tetris", "year": 1989}
        assert mismatches == ()

    def test_mistyped_field_excluded_and_reported(self) -> None:
        resolved, mismatches = resolve_record_fields(make_record("a", 1989, 1989), DEFAULT_MATCH_CONFIG, "right")
        assert "title" not in resolved.values
        assert resolved.get("year") == 1989
        assert len(mismatches) == 1
        assert mismatches[0].side == "right"
        assert mismatches[0].record_id == "a"
        assert mismatches[0].field == "title"

    def test_strict_types_propagates(self) -> None:
        config = MatchConfig(strict_types=True)
        with pytest.raises(TypeMismatchError):
            resolve_record_fields(make_record("a", 1989), config, "left")

    def test_blank_and_unconfigured_fields_dropped(self) -> None:
        record = make_record("a", "   ", 1989, developer="Nintendo")
        resolved, mismatches = resolve_record_fields(record, DEFAULT_MATCH_CONFIG, "left", position=3)
        assert resolved.values == {"year": 1989}
        assert resolved.position == 3
        assert resolved.id == "a"
        assert mismatches == ()


# ============================================================================
# Scoring
# ============================================================================


class TestCompareRecordsDetailed:
    def test_only_shared_fields_scored(self) -> None:
        scores = compare_records_detailed({"title": "Tetris", "year": 1989}, {"title": "Tetris"}, DEFAULT_MATCH_CONFIG)
        assert [score.field for score in scores] == ["title"]
        assert scores[0].similarity == 1.0

    def test_field_order_follows_config(self) -> None:
        left = {"year": 1989, "platform": "NES", "title": "Tetris"}
        scores = compare_records_detailed(left, dict(left), PLATFORM_CONFIG)
        assert [score.field for score in scores] == ["title", "platform", "year"]

    def test_weighted_score(self) -> None:
        scores = compare_records_detailed({"title": "abc"}, {"title": "abd"}, PLATFORM_CONFIG)
        assert scores[0].weight == 2.0
        assert scores[0].weighted_score == pytest.approx(scores[0].similarity * 2.0)

    def test_details(self) -> None:
        scores = compare_records_detailed(
            {"title": "Tetris", "platform": "NES", "year": 1989},
            {"title": "Tetris", "platform": "GB", "year": 1990},
            PLATFORM_CONFIG,
        )
        details = {score.field: score.details for score in scores}
        assert details["title"].startswith("levenshtein")
        assert details["platform"] == "No exact match"
        assert "1989 vs 1990" in details["year"]


class TestAggregateScore:
    def test_renormalized_over_applicable_fields(self) -> None:
        # title 1.0 (weight 1.0), year 1985 vs 1990 -> 0.0 (weight 0.5)
        left = {"title": "Metroid", "year": 1985}
        total = score_records(left, {"title": "Metroid", "year": 1990}, DEFAULT_MATCH_CONFIG)
        assert total == pytest.approx(1.0 / 1.5)

    def test_missing_field_does_not_penalize(self) -> None:
        total = score_records({"title": "Metroid", "year": 1986}, {"title": "Metroid"}, DEFAULT_MATCH_CONFIG)
        assert total == 1.0

    def test_no_applicable_fields(self) -> None:
        assert score_records({"title": "Metroid"}, {"year": 1986}, DEFAULT_MATCH_CONFIG) == 0.0
        assert aggregate_score(()) == 0.0

    def test_symmetric(self) -> None:
        left = {"title": "Mega Man 2", "platform": "NES", "year": 1988}
        right = {"title": "Megaman II", "platform": "nes", "year": 1989}
        assert score_records(left, right, PLATFORM_CONFIG) == score_records(right, left, PLATFORM_CONFIG)


class TestPrimaryFieldSimilarity:
    def test_uses_highest_weighted_text_field(self) -> None:
        assert primary_field_similarity({"title": "Tetris"}, {"title": "TETRIS"}, PLATFORM_CONFIG) == 1.0

    def test_none_when_missing(self) -> None:
        assert primary_field_similarity({"title": "Tetris"}, {"year": 1989}, PLATFORM_CONFIG) is None

    def test_none_without_text_field(self) -> None:
        config = MatchConfig(fields=(FieldSpec(name="sku", kind=FieldKind.EXACT),), identity_fields=())
        assert primary_field_similarity({"sku": "A"}, {"sku": "A"}, config) is None


class TestMatchedFields:
    def test_zero_similarity_fields_left_out(self) -> None:
        fields = matched_fields(
            {"title": "Tetris", "platform": "NES", "year": 1989},
            {"title": "Tetris", "platform": "GB", "year": 1989},
            PLATFORM_CONFIG,
        )
        assert fields == ("title", "year")
