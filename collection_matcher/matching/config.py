"""
Validation of MatchConfig. Runs before any comparison so a bad configuration never
partially processes a collection.
"""

import math
from typing import List

from collection_matcher.matching.errors import ConfigurationError
from collection_matcher.matching.models import (
    BlockingStrategy,
    FieldKind,
    MatchConfig,
    SimilarityMetric,
)


def _check_unit_interval(name: str, value: float, problems: List[str]) -> None:
    if not isinstance(value, (int, float)) or math.isnan(value) or not 0.0 <= value <= 1.0:
        problems.append(f"{name} must be within [0, 1], got {value!r}")


def collect_config_problems(config: MatchConfig) -> List[str]:
    """Return every problem found in ``config``; an empty list means it is valid."""
    problems: List[str] = []

    if not config.fields:
        problems.append("at least one field spec is required")

    seen: set[str] = set()
    for spec in config.fields:
        if spec.name in seen:
            problems.append(f"field '{spec.name}' is declared more than once")
        seen.add(spec.name)

        if not isinstance(spec.kind, FieldKind):
            problems.append(f"field '{spec.name}' has unknown kind {spec.kind!r}")
        if not isinstance(spec.weight, (int, float)) or not math.isfinite(spec.weight) or spec.weight <= 0:
            problems.append(f"field '{spec.name}' must have a positive weight, got {spec.weight!r}")
        if spec.kind == FieldKind.TEXT and not isinstance(spec.metric, SimilarityMetric):
            problems.append(f"field '{spec.name}' has unknown metric {spec.metric!r}")
        if spec.kind == FieldKind.NUMERIC and (not isinstance(spec.tolerance, (int, float)) or spec.tolerance < 0):
            problems.append(f"field '{spec.name}' must have a non-negative tolerance, got {spec.tolerance!r}")

    for name in config.identity_fields:
        if name not in seen:
            problems.append(f"identity field '{name}' is not declared in the field specs")

    if config.blocking_field is not None and config.blocking_field not in seen:
        problems.append(f"blocking field '{config.blocking_field}' is not declared in the field specs")

    if not isinstance(config.blocking_strategy, BlockingStrategy):
        problems.append(f"unknown blocking strategy {config.blocking_strategy!r}")
    elif config.blocking_strategy == BlockingStrategy.NUMERIC_WINDOW:
        blocking_spec = config.blocking_spec if config.blocking_field is not None else None
        if blocking_spec is None or blocking_spec.kind != FieldKind.NUMERIC:
            problems.append("numeric-window blocking requires a numeric blocking_field")
        elif blocking_spec.tolerance <= 0:
            problems.append("numeric-window blocking requires a blocking field with a positive tolerance")

    _check_unit_interval("fuzzy_threshold", config.fuzzy_threshold, problems)
    _check_unit_interval("field_threshold", config.field_threshold, problems)
    _check_unit_interval("ambiguity_margin", config.ambiguity_margin, problems)

    if not isinstance(config.max_candidates_per_record, int) or config.max_candidates_per_record < 1:
        problems.append(f"max_candidates_per_record must be at least 1, got {config.max_candidates_per_record!r}")
    if not isinstance(config.workers, int) or config.workers < 1:
        problems.append(f"workers must be at least 1, got {config.workers!r}")
    if config.max_pairs is not None and (not isinstance(config.max_pairs, int) or config.max_pairs < 1):
        problems.append(f"max_pairs must be a positive integer or None, got {config.max_pairs!r}")

    return problems


def validate_match_config(config: MatchConfig) -> MatchConfig:
    """Raise ConfigurationError listing every problem, or return the config unchanged."""
    problems = collect_config_problems(config)
    if problems:
        raise ConfigurationError(problems)
    return config
