"""
Loading of MatchConfig from JSON files.

Keys may be given in snake_case or camelCase (``fuzzy_threshold`` or ``fuzzyThreshold``).
Anything not given keeps the MatchConfig default.
"""

import json
from pathlib import Path
from typing import Any, List

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from collection_matcher.matching.config import validate_match_config
from collection_matcher.matching.errors import ConfigurationError
from collection_matcher.matching.models import (
    DEFAULT_FIELD_SPECS,
    DEFAULT_MATCH_CONFIG,
    BlockingStrategy,
    FieldKind,
    FieldSpec,
    MatchConfig,
    SimilarityMetric,
)


class FieldSpecModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1)
    kind: FieldKind = FieldKind.TEXT
    weight: float = 1.0
    metric: SimilarityMetric = SimilarityMetric.JARO_WINKLER
    tolerance: float = 5.0

    def to_field_spec(self) -> FieldSpec:
        return FieldSpec(
            name=self.name,
            kind=self.kind,
            weight=self.weight,
            metric=self.metric,
            tolerance=self.tolerance,
        )


def _default_field_models() -> List[FieldSpecModel]:
    return [
        FieldSpecModel(name=s.name, kind=s.kind, weight=s.weight, metric=s.metric, tolerance=s.tolerance)
        for s in DEFAULT_FIELD_SPECS
    ]


class MatchConfigModel(BaseModel):
    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)

    fields: List[FieldSpecModel] = Field(default_factory=_default_field_models)
    identity_fields: List[str] = Field(default_factory=lambda: list(DEFAULT_MATCH_CONFIG.identity_fields))
    blocking_field: str | None = DEFAULT_MATCH_CONFIG.blocking_field
    blocking_strategy: BlockingStrategy = DEFAULT_MATCH_CONFIG.blocking_strategy
    fuzzy_threshold: float = DEFAULT_MATCH_CONFIG.fuzzy_threshold
    field_threshold: float = DEFAULT_MATCH_CONFIG.field_threshold
    max_candidates_per_record: int = DEFAULT_MATCH_CONFIG.max_candidates_per_record
    ambiguity_margin: float = DEFAULT_MATCH_CONFIG.ambiguity_margin
    strict_types: bool = DEFAULT_MATCH_CONFIG.strict_types
    workers: int = DEFAULT_MATCH_CONFIG.workers
    max_pairs: int | None = DEFAULT_MATCH_CONFIG.max_pairs

    def to_match_config(self) -> MatchConfig:
        return MatchConfig(
            fields=tuple(spec.to_field_spec() for spec in self.fields),
            identity_fields=tuple(self.identity_fields),
            blocking_field=self.blocking_field,
            blocking_strategy=self.blocking_strategy,
            fuzzy_threshold=self.fuzzy_threshold,
            field_threshold=self.field_threshold,
            max_candidates_per_record=self.max_candidates_per_record,
            ambiguity_margin=self.ambiguity_margin,
            strict_types=self.strict_types,
            workers=self.workers,
            max_pairs=self.max_pairs,
        )


def parse_match_config(data: Any) -> MatchConfig:
    """
    Build and validate a MatchConfig from decoded JSON.

    Raises:
        ConfigurationError: unknown keys, wrong types, or values rejected by validate_match_config
    """
    try:
        model = MatchConfigModel.model_validate(data)
    except ValidationError as e:
        problems = [f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()]
        raise ConfigurationError(problems) from e
    return validate_match_config(model.to_match_config())


def load_match_config(path: str | Path) -> MatchConfig:
    file_path = Path(path)
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError([f"could not load config file {file_path}: {e}"]) from e
    return parse_match_config(data)
