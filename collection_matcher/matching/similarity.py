"""
Similarity metrics on a 0.0 - 1.0 scale.

Every text metric is symmetric, case-insensitive and returns 1.0 for strings that are
equal case-insensitively. Symmetry is enforced by handing the two inputs to the
underlying algorithm in a canonical (sorted) order.
"""

from typing import Callable, FrozenSet, Tuple

from aletk.utils import remove_extra_whitespace
from rapidfuzz.distance import JaroWinkler, Levenshtein

from collection_matcher.matching.models import SimilarityMetric
from collection_matcher.matching.normalization import fold_case, strip_punctuation


type TextMetric = Callable[[str, str], float]

DEFAULT_NUMERIC_TOLERANCE = 5.0
JARO_WINKLER_PREFIX_WEIGHT = 0.1


def _canonical_pair(a: str, b: str) -> Tuple[str, str]:
    folded_a, folded_b = fold_case(a), fold_case(b)
    if folded_a <= folded_b:
        return folded_a, folded_b
    return folded_b, folded_a


def _jaccard(set_a: FrozenSet[str], set_b: FrozenSet[str]) -> float:
    if not set_a or not set_b:
        return 0.0
    return len(set_a & set_b) / len(set_a | set_b)


def levenshtein_similarity(a: str, b: str) -> float:
    """``1 - edit_distance / max(len)``; two empty strings are identical."""
    first, second = _canonical_pair(a, b)
    if first == second:
        return 1.0
    return Levenshtein.normalized_similarity(first, second)


def jaro_winkler_similarity(a: str, b: str) -> float:
    """Jaro similarity boosted for a common prefix of up to 4 characters (scaling 0.1)."""
    first, second = _canonical_pair(a, b)
    if first == second:
        return 1.0
    return JaroWinkler.similarity(first, second, prefix_weight=JARO_WINKLER_PREFIX_WEIGHT)


def extract_trigrams(text: str) -> FrozenSet[str]:
    """3-character substrings of the lower-cased text padded with one space on each side."""
    padded = f" {remove_extra_whitespace(fold_case(text)).strip()} "
    return frozenset(padded[i : i + 3] for i in range(len(padded) - 2))


def trigram_similarity(a: str, b: str) -> float:
    first, second = _canonical_pair(a, b)
    if first == second:
        return 1.0
    return _jaccard(extract_trigrams(first), extract_trigrams(second))


def extract_tokens(text: str) -> FrozenSet[str]:
    """Lower-cased words without punctuation; single-character tokens are discarded."""
    return frozenset(token for token in strip_punctuation(fold_case(text)).split() if len(token) > 1)


def token_jaccard_similarity(a: str, b: str) -> float:
    first, second = _canonical_pair(a, b)
    if first == second:
        return 1.0
    return _jaccard(extract_tokens(first), extract_tokens(second))


def numeric_similarity(a: float, b: float, tolerance: float = DEFAULT_NUMERIC_TOLERANCE) -> float:
    """1.0 when equal, decaying linearly to 0.0 at ``tolerance`` units apart."""
    if a == b:
        return 1.0
    if tolerance <= 0:
        return 0.0
    return max(0.0, 1.0 - abs(a - b) / tolerance)


def exact_similarity(a: str | float, b: str | float) -> float:
    if isinstance(a, str) or isinstance(b, str):
        return 1.0 if fold_case(str(a)).strip() == fold_case(str(b)).strip() else 0.0
    return 1.0 if a == b else 0.0


TEXT_METRICS: dict[SimilarityMetric, TextMetric] = {
    SimilarityMetric.LEVENSHTEIN: levenshtein_similarity,
    SimilarityMetric.JARO_WINKLER: jaro_winkler_similarity,
    SimilarityMetric.TRIGRAM: trigram_similarity,
    SimilarityMetric.TOKEN_JACCARD: token_jaccard_similarity,
}


def get_text_metric(metric: SimilarityMetric) -> TextMetric:
    return TEXT_METRICS[metric]
