from collections import Counter
from typing import Iterable, Sequence

from collection_matcher.matching.errors import InvariantViolation
from collection_matcher.matching.models import (
    AmbiguousGroup,
    ComparisonMetadata,
    ComparisonResult,
    FieldTypeMismatch,
    MatchedPair,
    Record,
)


def _check_side(side: str, inputs: Sequence[Record], referenced: Iterable[str], residual: Sequence[Record]) -> None:
    input_ids = Counter(record.id for record in inputs)
    placed = Counter(referenced)
    placed.update(record.id for record in residual)

    unknown = sorted(set(placed) - set(input_ids))
    if unknown:
        raise InvariantViolation(f"{side} records not present in the input: {unknown}")

    duplicated = sorted(record_id for record_id, count in placed.items() if count > input_ids[record_id])
    if duplicated:
        raise InvariantViolation(f"{side} records placed more than once: {duplicated}")

    missing = sorted(record_id for record_id, count in input_ids.items() if placed[record_id] < count)
    if missing:
        raise InvariantViolation(f"{side} records dropped from the result: {missing}")


def validate_partition(
    left: Sequence[Record],
    right: Sequence[Record],
    result: ComparisonResult,
) -> ComparisonResult:
    """
    Check that ``result`` places every input record exactly once.

    Raises InvariantViolation otherwise: a broken partition is an engine defect, never bad input.
    """
    _check_side(
        "Left",
        left,
        [pair.left.id for pair in result.matched] + [group.left.id for group in result.ambiguous],
        result.unmatched_left,
    )
    _check_side(
        "Right",
        right,
        [pair.right.id for pair in result.matched] + [r.id for group in result.ambiguous for r in group.right],
        result.unmatched_right,
    )

    placed = (
        len(result.matched) * 2
        + sum(len(group) for group in result.ambiguous)
        + len(result.unmatched_left)
        + len(result.unmatched_right)
    )
    if placed != len(left) + len(right):
        raise InvariantViolation(f"Result places {placed} records but {len(left) + len(right)} were given")

    return result


def build_comparison_result(
    left: Sequence[Record],
    right: Sequence[Record],
    matched: Sequence[MatchedPair],
    ambiguous: Sequence[AmbiguousGroup],
    field_errors: Sequence[FieldTypeMismatch] = (),
    metadata: ComparisonMetadata | None = None,
) -> ComparisonResult:
    """
    Assemble the final result: committed pairs, ambiguous groups, and every record that
    neither references, in input order. The partition is validated before returning.
    """
    used_left = {pair.left.id for pair in matched} | {group.left.id for group in ambiguous}
    used_right = {pair.right.id for pair in matched} | {r.id for group in ambiguous for r in group.right}

    result = ComparisonResult(
        matched=tuple(matched),
        ambiguous=tuple(ambiguous),
        unmatched_left=tuple(record for record in left if record.id not in used_left),
        unmatched_right=tuple(record for record in right if record.id not in used_right),
        field_errors=tuple(field_errors),
        metadata=metadata if metadata is not None else ComparisonMetadata(),
    )
    return validate_partition(left, right, result)
