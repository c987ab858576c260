from collection_matcher.matching import ComparisonResult, MatchConfig, Record, compare

__all__ = ["ComparisonResult", "MatchConfig", "Record", "compare"]
