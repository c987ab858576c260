"""
Conflict resolution for fuzzy candidates.

Several left records may claim the same right record. Candidates are resolved greedily
in descending score order (first come, first served on ties, i.e. by left-input order
and then candidate rank). This is not an optimal bipartite assignment: the greedy
order is part of the observable behaviour and is kept on purpose.
"""

from typing import Mapping, Sequence, Tuple

import attrs
from aletk.utils import get_logger

from collection_matcher.matching.comparator import ResolvedRecord, matched_fields
from collection_matcher.matching.models import (
    AmbiguousGroup,
    MatchCandidate,
    MatchConfig,
    MatchedPair,
    MatchTier,
    Record,
)


logger = get_logger(__name__)


# Tolerance for threshold and margin comparisons on float scores
SCORE_EPSILON = 1e-9


@attrs.define(frozen=True, slots=True)
class Resolution:
    matched: Tuple[MatchedPair, ...]
    ambiguous: Tuple[AmbiguousGroup, ...]
    unmatched_left: Tuple[Record, ...]


def clears_threshold(candidate: MatchCandidate, config: MatchConfig) -> bool:
    """Fast-path fuzzy candidates were accepted on the fuzzy threshold; the rest on the field threshold."""
    if candidate.tier == MatchTier.FUZZY:
        return candidate.score >= config.fuzzy_threshold - SCORE_EPSILON
    return candidate.score >= config.field_threshold - SCORE_EPSILON


def within_margin(best: MatchCandidate, other: MatchCandidate, config: MatchConfig) -> bool:
    """True when ``other`` is too close to ``best`` to auto-resolve."""
    return best.score - other.score < config.ambiguity_margin - SCORE_EPSILON


def _build_pair(
    left: ResolvedRecord, right: ResolvedRecord, candidate: MatchCandidate, config: MatchConfig
) -> MatchedPair:
    return MatchedPair(
        left=left.record,
        right=right.record,
        tier=candidate.tier,
        score=candidate.score,
        matched_fields=matched_fields(left.values, right.values, config),
    )


def resolve_conflicts(
    left_items: Sequence[ResolvedRecord],
    candidates_by_left: Mapping[str, Tuple[MatchCandidate, ...]],
    right_by_id: Mapping[str, ResolvedRecord],
    config: MatchConfig,
) -> Resolution:
    """
    Turn per-left candidate lists into matched pairs, ambiguous groups and unmatched lefts.

    Edges are visited from the highest score down. For an edge whose left is undecided
    and whose right is free:

    - if another free candidate of the same left lies within ``ambiguity_margin`` of it,
      the left becomes an AmbiguousGroup reserving all those right records;
    - otherwise the pair is committed.

    Afterwards, an undecided left whose candidates were all taken goes to the review queue
    (without reserved rights) if its two best candidates are within the margin, and is
    unmatched otherwise.

    Args:
        left_items: left records still unmatched after the key-based tiers, in input order
        candidates_by_left: left id -> candidates sorted by descending score
        right_by_id: right id -> resolved right record
        config: match configuration

    Returns:
        Resolution, each part ordered by left-input order
    """
    left_rank = {item.id: rank for rank, item in enumerate(left_items)}
    left_by_id = {item.id: item for item in left_items}

    edges: list[Tuple[int, int, MatchCandidate]] = []
    for item in left_items:
        for candidate_rank, candidate in enumerate(candidates_by_left.get(item.id, ())):
            edges.append((left_rank[item.id], candidate_rank, candidate))
    edges.sort(key=lambda edge: (-edge[2].score, edge[0], edge[1]))

    taken_right: set[str] = set()
    committed: dict[str, MatchedPair] = {}
    groups: dict[str, AmbiguousGroup] = {}

    for _, _, best in edges:
        if best.left_id in committed or best.left_id in groups or best.right_id in taken_right:
            continue
        if not clears_threshold(best, config):
            continue

        left = left_by_id[best.left_id]
        contenders = [
            candidate
            for candidate in candidates_by_left[best.left_id]
            if candidate is not best
            and candidate.right_id not in taken_right
            and clears_threshold(candidate, config)
            and within_margin(best, candidate, config)
        ]

        if contenders:
            contested = (best, *contenders)
            groups[best.left_id] = AmbiguousGroup(
                left=left.record,
                right=tuple(right_by_id[c.right_id].record for c in contested),
                candidates=contested,
            )
            taken_right.update(c.right_id for c in contested)
            logger.debug(f"Left record '{best.left_id}' is ambiguous between {len(contested)} right records")
            continue

        committed[best.left_id] = _build_pair(left, right_by_id[best.right_id], best, config)
        taken_right.add(best.right_id)

    unmatched: list[Record] = []
    for item in left_items:
        if item.id in committed or item.id in groups:
            continue
        candidates = candidates_by_left.get(item.id, ())
        if len(candidates) >= 2 and within_margin(candidates[0], candidates[1], config):
            contested = tuple(c for c in candidates if c is candidates[0] or within_margin(candidates[0], c, config))
            groups[item.id] = AmbiguousGroup(left=item.record, right=(), candidates=contested)
            logger.debug(f"Left record '{item.id}' lost all its candidates to other records; queued for review")
        else:
            unmatched.append(item.record)

    ordered_ids = [item.id for item in left_items]
    return Resolution(
        matched=tuple(committed[i] for i in ordered_ids if i in committed),
        ambiguous=tuple(groups[i] for i in ordered_ids if i in groups),
        unmatched_left=tuple(unmatched),
    )
