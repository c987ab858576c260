"""Builders shared by the test modules."""

import json
from pathlib import Path
from typing import Any

from collection_matcher.matching.comparator import ResolvedRecord
from collection_matcher.matching.models import FieldValue, Record


def make_record(record_id: str, title: FieldValue = None, year: FieldValue = None, **extra: FieldValue) -> Record:
    fields: dict[str, FieldValue] = dict(extra)
    if title is not None:
        fields["title"] = title
    if year is not None:
        fields["year"] = year
    return Record(id=record_id, fields=fields)


def make_resolved(record: Record, position: int = 0) -> ResolvedRecord:
    """Resolved record whose values are the record's raw fields (no type checking)."""
    return ResolvedRecord(record=record, position=position, values=dict(record.fields))


def write_json(path: Path, payload: Any) -> Path:
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path
