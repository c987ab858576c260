"""Matching of two record collections.

This package decides which records of two independently-sourced collections refer to
the same entity, using tiered strategies (exact id, exact key, normalized key, blocked
fuzzy scoring) and greedy conflict resolution with a manual-review queue.
"""

from collection_matcher.matching.blocking import RecordBlockIndex, build_block_index
from collection_matcher.matching.comparator import (
    ResolvedRecord,
    compare_records_detailed,
    resolve_record_fields,
    score_records,
)
from collection_matcher.matching.config import validate_match_config
from collection_matcher.matching.errors import (
    CollectionLoadError,
    CollectionMatcherError,
    ComparisonTooLargeError,
    ConfigurationError,
    DuplicateRecordError,
    InvariantViolation,
    TypeMismatchError,
)
from collection_matcher.matching.models import (
    DEFAULT_FIELD_SPECS,
    DEFAULT_MATCH_CONFIG,
    AmbiguousGroup,
    BlockingStrategy,
    ComparisonMetadata,
    ComparisonResult,
    ComparisonSummary,
    FieldKind,
    FieldScore,
    FieldSpec,
    FieldTypeMismatch,
    MatchCandidate,
    MatchConfig,
    MatchedPair,
    MatchTier,
    Record,
    SimilarityMetric,
)
from collection_matcher.matching.normalization import normalize_text
from collection_matcher.matching.pipeline import compare
from collection_matcher.matching.similarity import (
    jaro_winkler_similarity,
    levenshtein_similarity,
    numeric_similarity,
    token_jaccard_similarity,
    trigram_similarity,
)

__all__ = [
    "AmbiguousGroup",
    "BlockingStrategy",
    "CollectionLoadError",
    "CollectionMatcherError",
    "ComparisonMetadata",
    "ComparisonResult",
    "ComparisonSummary",
    "ComparisonTooLargeError",
    "ConfigurationError",
    "DEFAULT_FIELD_SPECS",
    "DEFAULT_MATCH_CONFIG",
    "DuplicateRecordError",
    "FieldKind",
    "FieldScore",
    "FieldSpec",
    "FieldTypeMismatch",
    "InvariantViolation",
    "MatchCandidate",
    "MatchConfig",
    "MatchTier",
    "MatchedPair",
    "Record",
    "RecordBlockIndex",
    "ResolvedRecord",
    "SimilarityMetric",
    "TypeMismatchError",
    "build_block_index",
    "compare",
    "compare_records_detailed",
    "jaro_winkler_similarity",
    "levenshtein_similarity",
    "normalize_text",
    "numeric_similarity",
    "resolve_record_fields",
    "score_records",
    "token_jaccard_similarity",
    "trigram_similarity",
    "validate_match_config",
]
