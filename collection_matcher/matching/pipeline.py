"""
Matching pipeline: the single entry point ``compare``.

Tiers are tried in priority order and every left record stops at the first tier that
matches it:

1. exact-id        identical record ids (score 1.0), run over all records first
2. exact-key       identity fields equal case-insensitively (score 0.95)
3. normalized-key  identity fields equal after normalize_text (score 0.85)
4. fuzzy / multi-field  blocked similarity scoring, resolved by the conflict resolver

Right records consumed by tiers 1-3 leave candidacy. Fuzzy candidates are not committed
directly: several left records may claim the same right record.
"""

import time
from collections import Counter, defaultdict
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import Callable, Mapping, Sequence, Tuple

from aletk.utils import get_logger, lginf

from collection_matcher.matching.blocking import RecordBlockIndex, build_block_index
from collection_matcher.matching.comparator import (
    ResolvedRecord,
    matched_fields,
    primary_field_similarity,
    resolve_record_fields,
    score_records,
)
from collection_matcher.matching.config import validate_match_config
from collection_matcher.matching.errors import ComparisonTooLargeError, DuplicateRecordError
from collection_matcher.matching.models import (
    DEFAULT_MATCH_CONFIG,
    TIER_SCORES,
    ComparisonMetadata,
    ComparisonResult,
    FieldSpec,
    FieldTypeMismatch,
    FieldValue,
    MatchCandidate,
    MatchConfig,
    MatchedPair,
    MatchTier,
    Record,
)
from collection_matcher.matching.normalization import RecordKey, exact_key, normalized_key
from collection_matcher.matching.resolver import SCORE_EPSILON, resolve_conflicts
from collection_matcher.matching.result_builder import build_comparison_result


lgr = get_logger(__name__)


type KeyFunction = Callable[[Mapping[str, FieldValue], Sequence[FieldSpec]], RecordKey | None]

KEY_TIERS: Tuple[Tuple[MatchTier, KeyFunction], ...] = (
    (MatchTier.EXACT_KEY, exact_key),
    (MatchTier.NORMALIZED_KEY, normalized_key),
)


############
# Input checks
############


def _check_unique_ids(side: str, records: Sequence[Record]) -> None:
    counts = Counter(record.id for record in records)
    duplicates = [record_id for record_id, count in counts.items() if count > 1]
    if duplicates:
        raise DuplicateRecordError(side, duplicates)


def _check_size(left: Sequence[Record], right: Sequence[Record], config: MatchConfig) -> None:
    pairs = len(left) * len(right)
    if config.max_pairs is not None and pairs > config.max_pairs:
        raise ComparisonTooLargeError(pairs, config.max_pairs)


def resolve_collection(
    records: Sequence[Record], config: MatchConfig, side: str
) -> Tuple[Tuple[ResolvedRecord, ...], Tuple[FieldTypeMismatch, ...]]:
    resolved: list[ResolvedRecord] = []
    mismatches: list[FieldTypeMismatch] = []
    for position, record in enumerate(records):
        item, errors = resolve_record_fields(record, config, side=side, position=position)
        resolved.append(item)
        mismatches.extend(errors)
    return tuple(resolved), tuple(mismatches)


############
# Tiers 1-3
############


def _commit(left: ResolvedRecord, right: ResolvedRecord, tier: MatchTier, config: MatchConfig) -> MatchedPair:
    return MatchedPair(
        left=left.record,
        right=right.record,
        tier=tier,
        score=TIER_SCORES[tier],
        matched_fields=matched_fields(left.values, right.values, config),
    )


def match_key_tiers(
    left_items: Sequence[ResolvedRecord],
    right_items: Sequence[ResolvedRecord],
    config: MatchConfig,
) -> Tuple[Tuple[MatchedPair, ...], Tuple[ResolvedRecord, ...], Tuple[ResolvedRecord, ...]]:
    """
    Run the exact-id, exact-key and normalized-key tiers.

    Each tier is a pass over the still-unmatched left records in input order. When several
    right records share a key, the first unconsumed one in input order is taken.

    Returns:
        (committed pairs, remaining left records, remaining right records)
    """
    matched: dict[str, MatchedPair] = {}
    consumed_right: set[str] = set()

    right_by_id = {item.id: item for item in right_items}
    for item in left_items:
        right = right_by_id.get(item.id)
        if right is not None:
            matched[item.id] = _commit(item, right, MatchTier.EXACT_ID, config)
            consumed_right.add(right.id)

    identity_specs = [spec for spec in (config.field_spec(name) for name in config.identity_fields) if spec]
    if identity_specs:
        for tier, key_function in KEY_TIERS:
            buckets: defaultdict[RecordKey, list[ResolvedRecord]] = defaultdict(list)
            for right in right_items:
                if right.id in consumed_right:
                    continue
                key = key_function(right.values, identity_specs)
                if key is not None:
                    buckets[key].append(right)

            for item in left_items:
                if item.id in matched:
                    continue
                key = key_function(item.values, identity_specs)
                if key is None:
                    continue
                right = next((r for r in buckets.get(key, ()) if r.id not in consumed_right), None)
                if right is not None:
                    matched[item.id] = _commit(item, right, tier, config)
                    consumed_right.add(right.id)

    pairs = tuple(matched[item.id] for item in left_items if item.id in matched)
    remaining_left = tuple(item for item in left_items if item.id not in matched)
    remaining_right = tuple(item for item in right_items if item.id not in consumed_right)
    return pairs, remaining_left, remaining_right


############
# Tier 4
############


def score_candidates(
    left: ResolvedRecord, index: RecordBlockIndex, config: MatchConfig
) -> Tuple[Tuple[MatchCandidate, ...], int]:
    """
    Fuzzy / multi-field candidates of one left record.

    The primary text field is scored first; at or above ``fuzzy_threshold`` it is accepted on
    its own (tier ``fuzzy``). Otherwise the full weighted score must reach ``field_threshold``
    (tier ``multi-field``). Both thresholds are inclusive.

    Returns:
        (at most max_candidates_per_record candidates by descending score, number of records scored)
    """
    pool = index.lookup(left)
    scored: list[Tuple[MatchCandidate, int]] = []

    for right in pool:
        primary = primary_field_similarity(left.values, right.values, config)
        if primary is not None and primary >= config.fuzzy_threshold - SCORE_EPSILON:
            candidate = MatchCandidate(left_id=left.id, right_id=right.id, tier=MatchTier.FUZZY, score=primary)
        else:
            total = score_records(left.values, right.values, config)
            if total < config.field_threshold - SCORE_EPSILON:
                continue
            candidate = MatchCandidate(left_id=left.id, right_id=right.id, tier=MatchTier.MULTI_FIELD, score=total)
        scored.append((candidate, right.position))

    scored.sort(key=lambda entry: (-entry[0].score, entry[1]))
    return tuple(candidate for candidate, _ in scored[: config.max_candidates_per_record]), len(pool)


def score_fuzzy_candidates(
    left_items: Sequence[ResolvedRecord], index: RecordBlockIndex, config: MatchConfig
) -> Tuple[dict[str, Tuple[MatchCandidate, ...]], int]:
    """Score every left record against its block; runs on a thread pool when ``config.workers > 1``."""
    scorer = partial(score_candidates, index=index, config=config)

    if config.workers > 1 and len(left_items) > 1:
        with ThreadPoolExecutor(max_workers=config.workers) as executor:
            results = list(executor.map(scorer, left_items))
    else:
        results = [scorer(item) for item in left_items]

    candidates_by_left = {item.id: candidates for item, (candidates, _) in zip(left_items, results)}
    scored = sum(count for _, count in results)
    return candidates_by_left, scored


############
# Entry point
############


def compare(
    left: Sequence[Record],
    right: Sequence[Record],
    config: MatchConfig | None = None,
) -> ComparisonResult:
    """
    Decide which records of two collections refer to the same entity.

    The key tiers need every identity field on both records. A pair missing one (a title with
    no year, say) can still match in the fuzzy tier, where identical titles score 1.0: above
    the fixed score an exact-key match would have carried.

    Args:
        left: records of the first collection (ids unique within it)
        right: records of the second collection (ids unique within it)
        config: matching configuration (default: DEFAULT_MATCH_CONFIG)

    Returns:
        ComparisonResult partitioning every input record exactly once

    Raises:
        ConfigurationError: the configuration is invalid (nothing is compared)
        DuplicateRecordError: an id repeats within one collection
        ComparisonTooLargeError: |left| x |right| exceeds ``config.max_pairs``
        TypeMismatchError: a field has the wrong type and ``config.strict_types`` is set
    """
    frame = "compare"
    resolved_config = validate_match_config(config if config is not None else DEFAULT_MATCH_CONFIG)
    _check_unique_ids("left", left)
    _check_unique_ids("right", right)
    _check_size(left, right, resolved_config)

    start = time.perf_counter()
    left_items, left_errors = resolve_collection(left, resolved_config, "left")
    right_items, right_errors = resolve_collection(right, resolved_config, "right")

    key_pairs, remaining_left, remaining_right = match_key_tiers(left_items, right_items, resolved_config)
    lginf(frame, f"Key tiers matched {len(key_pairs)} of {len(left_items)} left records", lgr)

    index = build_block_index(remaining_right, resolved_config)
    candidates_by_left, scored = score_fuzzy_candidates(remaining_left, index, resolved_config)

    right_by_id = {item.id: item for item in remaining_right}
    resolution = resolve_conflicts(remaining_left, candidates_by_left, right_by_id, resolved_config)

    left_position = {item.id: item.position for item in left_items}
    matched = sorted((*key_pairs, *resolution.matched), key=lambda pair: left_position[pair.left.id])

    metadata: ComparisonMetadata = {
        "comparison_time_ms": (time.perf_counter() - start) * 1000,
        "candidates_scored": scored,
        "blocks": len(index.blocks),
        "workers": resolved_config.workers,
    }

    result = build_comparison_result(
        left,
        right,
        matched,
        resolution.ambiguous,
        field_errors=(*left_errors, *right_errors),
        metadata=metadata,
    )
    lginf(
        frame,
        f"Compared {len(left)} x {len(right)} records: {len(result.matched)} matched, "
        f"{len(result.ambiguous)} ambiguous, {len(result.unmatched_left)} unmatched left, "
        f"{len(result.unmatched_right)} unmatched right ({scored} fuzzy comparisons)",
        lgr,
    )
    return result
