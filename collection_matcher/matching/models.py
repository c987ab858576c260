from __future__ import annotations

import json
from enum import Enum
from typing import Mapping, Tuple, TypedDict

import attrs


type FieldValue = str | int | float | None


class FieldKind(str, Enum):
    EXACT = "exact"
    TEXT = "text"
    NUMERIC = "numeric"


class SimilarityMetric(str, Enum):
    LEVENSHTEIN = "levenshtein"
    JARO_WINKLER = "jaro-winkler"
    TRIGRAM = "trigram"
    TOKEN_JACCARD = "token-jaccard"


class MatchTier(str, Enum):
    """Matching strategies, in the order the pipeline tries them."""

    EXACT_ID = "exact-id"
    EXACT_KEY = "exact-key"
    NORMALIZED_KEY = "normalized-key"
    FUZZY = "fuzzy"
    MULTI_FIELD = "multi-field"


class BlockingStrategy(str, Enum):
    FIRST_CHARACTER = "first-character"
    NUMERIC_WINDOW = "numeric-window"


# Fixed confidence of the key-based tiers
TIER_SCORES = {
    MatchTier.EXACT_ID: 1.0,
    MatchTier.EXACT_KEY: 0.95,
    MatchTier.NORMALIZED_KEY: 0.85,
}


############
# Inputs
############


@attrs.define(frozen=True, slots=True)
class Record:
    """
    A single item of a collection.

    Args:
        id: identifier, unique within its own collection
        fields: field name -> str | int | float | None
    """

    id: str
    fields: Mapping[str, FieldValue] = attrs.field(factory=dict, converter=dict)

    def get(self, name: str) -> FieldValue:
        return self.fields.get(name)


@attrs.define(frozen=True, slots=True)
class FieldSpec:
    """
    How one field takes part in matching.

    Args:
        name: field name looked up on each record
        kind: exact | text | numeric
        weight: contribution to the aggregate score (must be positive)
        metric: similarity metric, used by text fields only
        tolerance: distance at which numeric similarity decays to 0.0
    """

    name: str
    kind: FieldKind = FieldKind.TEXT
    weight: float = 1.0
    metric: SimilarityMetric = SimilarityMetric.JARO_WINKLER
    tolerance: float = 5.0


DEFAULT_FIELD_SPECS: Tuple[FieldSpec, ...] = (
    FieldSpec(name="title", kind=FieldKind.TEXT, weight=1.0, metric=SimilarityMetric.JARO_WINKLER),
    FieldSpec(name="year", kind=FieldKind.NUMERIC, weight=0.5, tolerance=5.0),
)


@attrs.define(frozen=True, slots=True)
class MatchConfig:
    """
    Matching configuration. Validated by ``validate_match_config`` before any comparison.

    Args:
        fields: field schema used by every tier
        identity_fields: fields composing the key of the exact-key / normalized-key tiers
        blocking_field: field the blocking index is keyed on (default: highest-weighted text field)
        blocking_strategy: first-character | numeric-window
        fuzzy_threshold: primary text field score accepted on its own (fast path)
        field_threshold: minimum aggregate score of a multi-field candidate
        max_candidates_per_record: candidates kept per left record in the fuzzy tier
        ambiguity_margin: minimum gap between best and second-best candidate to auto-resolve
        strict_types: abort on type mismatches instead of excluding the offending field
        workers: threads used for fuzzy scoring
        max_pairs: reject comparisons above this many left x right pairs
    """

    fields: Tuple[FieldSpec, ...] = attrs.field(default=DEFAULT_FIELD_SPECS, converter=tuple)
    identity_fields: Tuple[str, ...] = attrs.field(default=("title", "year"), converter=tuple)
    blocking_field: str | None = None
    blocking_strategy: BlockingStrategy = BlockingStrategy.FIRST_CHARACTER
    fuzzy_threshold: float = 0.80
    field_threshold: float = 0.60
    max_candidates_per_record: int = 5
    ambiguity_margin: float = 0.15
    strict_types: bool = False
    workers: int = 1
    max_pairs: int | None = None

    def field_spec(self, name: str) -> FieldSpec | None:
        return next((spec for spec in self.fields if spec.name == name), None)

    @property
    def primary_text_field(self) -> FieldSpec | None:
        """The highest-weighted text field; the first declared one wins ties."""
        best: FieldSpec | None = None
        for spec in self.fields:
            if spec.kind == FieldKind.TEXT and (best is None or spec.weight > best.weight):
                best = spec
        return best

    @property
    def blocking_spec(self) -> FieldSpec | None:
        if self.blocking_field is not None:
            return self.field_spec(self.blocking_field)
        return self.primary_text_field

    @property
    def blocking_candidate_cap(self) -> int:
        return self.max_candidates_per_record * 10


DEFAULT_MATCH_CONFIG = MatchConfig()


############
# Scores and candidates
############


@attrs.define(frozen=True, slots=True)
class FieldScore:
    """Similarity of one field for one record pair, with an explanation."""

    field: str
    kind: FieldKind
    similarity: float
    weight: float
    weighted_score: float
    details: str


@attrs.define(frozen=True, slots=True)
class FieldTypeMismatch:
    """A field excluded from scoring because its value has the wrong type."""

    side: str
    record_id: str
    field: str
    expected: str
    actual: str


@attrs.define(frozen=True, slots=True)
class MatchCandidate:
    left_id: str
    right_id: str
    tier: MatchTier
    score: float

    def to_json_summary(self) -> dict[str, str | float]:
        return {
            "left_id": self.left_id,
            "right_id": self.right_id,
            "tier": self.tier.value,
            "score": round(self.score, 4),
        }


############
# Outputs
############


class ReportRow(TypedDict):
    status: str
    left_id: str
    right_id: str
    tier: str
    score: str
    matched_fields: str
    candidates_json: str


class ComparisonMetadata(TypedDict, total=False):
    comparison_time_ms: float
    candidates_scored: int
    blocks: int
    workers: int


class ComparisonSummary(TypedDict):
    left_count: int
    right_count: int
    matched: int
    ambiguous: int
    unmatched_left: int
    unmatched_right: int
    average_confidence: float
    tiers: dict[str, int]
    field_errors: int


@attrs.define(frozen=True, slots=True)
class MatchedPair:
    """
    A committed one-to-one match.

    Args:
        left: record from the left collection
        right: record from the right collection
        tier: strategy that produced the match
        score: confidence in [0.0, 1.0]
        matched_fields: fields with non-zero similarity, for audit
    """

    left: Record
    right: Record
    tier: MatchTier
    score: float
    matched_fields: Tuple[str, ...] = attrs.field(default=(), converter=tuple)

    def to_report_row(self) -> ReportRow:
        return {
            "status": "matched",
            "left_id": self.left.id,
            "right_id": self.right.id,
            "tier": self.tier.value,
            "score": str(round(self.score, 4)),
            "matched_fields": ";".join(self.matched_fields),
            "candidates_json": "",
        }


@attrs.define(frozen=True, slots=True)
class AmbiguousGroup:
    """
    A left record whose candidates are too close to call, queued for manual review.

    ``right`` holds the right records reserved for this review; it is empty when every
    contested right record was committed to another left record first.
    """

    left: Record
    right: Tuple[Record, ...] = attrs.field(converter=tuple)
    candidates: Tuple[MatchCandidate, ...] = attrs.field(converter=tuple)

    def __len__(self) -> int:
        return 1 + len(self.right)

    @property
    def best_score(self) -> float:
        return max((c.score for c in self.candidates), default=0.0)

    def to_report_row(self) -> ReportRow:
        return {
            "status": "ambiguous",
            "left_id": self.left.id,
            "right_id": ";".join(r.id for r in self.right),
            "tier": "",
            "score": str(round(self.best_score, 4)),
            "matched_fields": "",
            "candidates_json": json.dumps([c.to_json_summary() for c in self.candidates], ensure_ascii=False),
        }


def _unmatched_row(status: str, record: Record) -> ReportRow:
    return {
        "status": status,
        "left_id": record.id if status == "unmatched_left" else "",
        "right_id": record.id if status == "unmatched_right" else "",
        "tier": "",
        "score": "",
        "matched_fields": "",
        "candidates_json": "",
    }


@attrs.define(frozen=True, slots=True)
class ComparisonResult:
    """
    Outcome of comparing two collections.

    Every input record appears exactly once: in a matched pair, in an ambiguous group,
    or in one of the unmatched lists.
    """

    matched: Tuple[MatchedPair, ...] = attrs.field(converter=tuple)
    ambiguous: Tuple[AmbiguousGroup, ...] = attrs.field(converter=tuple)
    unmatched_left: Tuple[Record, ...] = attrs.field(converter=tuple)
    unmatched_right: Tuple[Record, ...] = attrs.field(converter=tuple)
    field_errors: Tuple[FieldTypeMismatch, ...] = attrs.field(default=(), converter=tuple)
    metadata: ComparisonMetadata = attrs.field(factory=lambda: ComparisonMetadata())

    @property
    def average_confidence(self) -> float:
        if not self.matched:
            return 0.0
        return sum(pair.score for pair in self.matched) / len(self.matched)

    def to_summary(self) -> ComparisonSummary:
        tiers: dict[str, int] = {tier.value: 0 for tier in MatchTier}
        for pair in self.matched:
            tiers[pair.tier.value] += 1

        left_count = len(self.matched) + len(self.ambiguous) + len(self.unmatched_left)
        right_count = len(self.matched) + sum(len(g.right) for g in self.ambiguous) + len(self.unmatched_right)

        return {
            "left_count": left_count,
            "right_count": right_count,
            "matched": len(self.matched),
            "ambiguous": len(self.ambiguous),
            "unmatched_left": len(self.unmatched_left),
            "unmatched_right": len(self.unmatched_right),
            "average_confidence": round(self.average_confidence, 4),
            "tiers": tiers,
            "field_errors": len(self.field_errors),
        }

    def to_report_rows(self) -> list[ReportRow]:
        rows: list[ReportRow] = [pair.to_report_row() for pair in self.matched]
        rows.extend(group.to_report_row() for group in self.ambiguous)
        rows.extend(_unmatched_row("unmatched_left", record) for record in self.unmatched_left)
        rows.extend(_unmatched_row("unmatched_right", record) for record in self.unmatched_right)
        return rows
