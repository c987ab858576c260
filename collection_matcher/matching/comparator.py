import math
from typing import Mapping, Tuple

import attrs
from aletk.utils import get_logger

from collection_matcher.matching.errors import TypeMismatchError
from collection_matcher.matching.models import (
    FieldKind,
    FieldScore,
    FieldSpec,
    FieldTypeMismatch,
    FieldValue,
    MatchConfig,
    Record,
)
from collection_matcher.matching.normalization import is_blank
from collection_matcher.matching.similarity import exact_similarity, get_text_metric, numeric_similarity


logger = get_logger(__name__)


type FieldValues = Mapping[str, FieldValue]


@attrs.define(frozen=True, slots=True)
class ResolvedRecord:
    """
    A record with its configured fields type-checked once per comparison.

    ``values`` only holds present, well-typed values; lookups of anything else return None.
    """

    record: Record
    position: int
    values: Mapping[str, FieldValue] = attrs.field(factory=dict, converter=dict)

    @property
    def id(self) -> str:
        return self.record.id

    def get(self, name: str) -> FieldValue:
        return self.values.get(name)


############
# Type checking
############


def _type_name(value: FieldValue) -> str:
    if isinstance(value, float) and not math.isfinite(value):
        return f"float ({value})"
    return type(value).__name__


def check_field_type(spec: FieldSpec, record_id: str, value: FieldValue) -> None:
    """Raise TypeMismatchError if ``value`` does not have the runtime type ``spec.kind`` declares."""
    if spec.kind == FieldKind.TEXT:
        ok = isinstance(value, str)
        expected = "text (str)"
    elif spec.kind == FieldKind.NUMERIC:
        ok = isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)
        expected = "numeric (finite int or float)"
    else:
        ok = isinstance(value, (str, int)) and not isinstance(value, bool)
        expected = "exact (str or int)"

    if not ok:
        raise TypeMismatchError(record_id=record_id, field=spec.name, expected=expected, actual=_type_name(value))


def resolve_record_fields(
    record: Record,
    config: MatchConfig,
    side: str,
    position: int = 0,
) -> Tuple[ResolvedRecord, Tuple[FieldTypeMismatch, ...]]:
    """
    Type-check every configured field of ``record``.

    A mistyped field is excluded from scoring for this record and reported as a
    FieldTypeMismatch. With ``config.strict_types`` the TypeMismatchError propagates instead.
    Blank strings count as missing values.
    """
    values: dict[str, FieldValue] = {}
    mismatches: list[FieldTypeMismatch] = []

    for spec in config.fields:
        value = record.get(spec.name)
        if is_blank(value):
            continue
        try:
            check_field_type(spec, record.id, value)
        except TypeMismatchError as e:
            if config.strict_types:
                raise
            logger.warning(f"Excluding field from scoring ({side} collection): {e}")
            mismatches.append(
                FieldTypeMismatch(side=side, record_id=record.id, field=spec.name, expected=e.expected, actual=e.actual)
            )
            continue
        values[spec.name] = value

    return ResolvedRecord(record=record, position=position, values=values), tuple(mismatches)


############
# Scoring
############


def field_similarity(spec: FieldSpec, value_1: FieldValue, value_2: FieldValue) -> float:
    """Similarity of two present, well-typed values of the field described by ``spec``."""
    if spec.kind == FieldKind.TEXT:
        return get_text_metric(spec.metric)(str(value_1), str(value_2))
    if spec.kind == FieldKind.NUMERIC:
        return numeric_similarity(float(value_1), float(value_2), spec.tolerance)  # type: ignore[arg-type]
    return exact_similarity(value_1, value_2)  # type: ignore[arg-type]


def _describe(spec: FieldSpec, similarity: float, value_1: FieldValue, value_2: FieldValue) -> str:
    if spec.kind == FieldKind.TEXT:
        return f"{spec.metric.value}: {similarity:.3f}"
    if spec.kind == FieldKind.NUMERIC:
        if similarity == 1.0:
            return f"Exact value match: {value_1}"
        return f"Numeric: {value_1} vs {value_2} (tolerance {spec.tolerance:g})"
    return "Exact match" if similarity == 1.0 else "No exact match"


def _score_field(spec: FieldSpec, left: FieldValues, right: FieldValues) -> FieldScore | None:
    value_1 = left.get(spec.name)
    value_2 = right.get(spec.name)
    if is_blank(value_1) or is_blank(value_2):
        return None

    similarity = field_similarity(spec, value_1, value_2)
    return FieldScore(
        field=spec.name,
        kind=spec.kind,
        similarity=similarity,
        weight=spec.weight,
        weighted_score=similarity * spec.weight,
        details=_describe(spec, similarity, value_1, value_2),
    )


def compare_records_detailed(left: FieldValues, right: FieldValues, config: MatchConfig) -> Tuple[FieldScore, ...]:
    """
    Per-field scoring breakdown of a record pair.

    Only fields present on both sides are returned, in the order of ``config.fields``.

    Args:
        left: resolved field values of the left record
        right: resolved field values of the right record
        config: match configuration holding the field specs

    Returns:
        Tuple of FieldScore, one per applicable field
    """
    scores = (_score_field(spec, left, right) for spec in config.fields)
    return tuple(score for score in scores if score is not None)


def aggregate_score(field_scores: Tuple[FieldScore, ...]) -> float:
    """Weighted mean over applicable fields; 0.0 when no field is applicable."""
    denominator = sum(score.weight for score in field_scores)
    if denominator == 0:
        return 0.0
    return sum(score.weighted_score for score in field_scores) / denominator


def score_records(left: FieldValues, right: FieldValues, config: MatchConfig) -> float:
    field_scores = compare_records_detailed(left, right, config)
    total = aggregate_score(field_scores)
    logger.debug(f"Scored {len(field_scores)} field(s): {total:.4f}")
    return total


def primary_field_similarity(left: FieldValues, right: FieldValues, config: MatchConfig) -> float | None:
    """Similarity of the highest-weighted text field alone, or None if either side lacks it."""
    spec = config.primary_text_field
    if spec is None:
        return None
    partial = _score_field(spec, left, right)
    return partial.similarity if partial is not None else None


def matched_fields(left: FieldValues, right: FieldValues, config: MatchConfig) -> Tuple[str, ...]:
    """Names of the fields with non-zero similarity, for audit of a committed pair."""
    return tuple(score.field for score in compare_records_detailed(left, right, config) if score.similarity > 0)
