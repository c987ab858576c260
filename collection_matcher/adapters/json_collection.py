"""
Gateway from JSON collection files to Records.

Accepts itemdeck-style documents (``{"items": [...], "categories": [...]}``) or a bare
list of items. Every item needs a non-empty ``id``; other scalar properties become
record fields, the ``metadata`` string map is flattened into the fields, and the title of
the item's category (``metadata.category``) is exposed as ``categoryTitle``.

Items that fail validation are logged and skipped instead of aborting the whole load.
"""

import json
import re
from pathlib import Path
from typing import Any, Dict, List, Sequence, Tuple, TypeGuard, TypedDict

from aletk.utils import get_logger, remove_extra_whitespace
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from typing_extensions import Literal

from collection_matcher.matching.errors import CollectionLoadError
from collection_matcher.matching.models import (
    DEFAULT_MATCH_CONFIG,
    FieldKind,
    FieldValue,
    MatchConfig,
    Record,
)


lgr = get_logger(__name__)


_NUMBER_PATTERN = re.compile(r"-?\d+(\.\d+)?")


class ParsingSuccess[T](TypedDict, total=True):
    out: T
    parsing_status: Literal["success"]


class ParsingError(TypedDict, total=True):
    parsing_status: Literal["error"]
    message: str
    context: str


type ParsedResult[T] = ParsingSuccess[T] | ParsingError


def is_parsing_success[T](result: ParsedResult[T]) -> TypeGuard[ParsingSuccess[T]]:
    return result.get("parsing_status") == "success"


class CollectionCategory(BaseModel):
    id: str = Field(min_length=1)
    title: str = Field(min_length=1)


class CollectionItem(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str = Field(min_length=1)
    metadata: Dict[str, str] = {}


def _coerce(value: Any, kind: FieldKind | None) -> FieldValue | None:
    """
    Keep scalar values only. Digit strings of numeric fields become numbers ("1985" -> 1985);
    anything else is left as is and type-checked later by the matcher.
    """
    if isinstance(value, bool) or isinstance(value, (list, dict)):
        return None
    if isinstance(value, str):
        value = remove_extra_whitespace(value).strip()
        if kind == FieldKind.NUMERIC and _NUMBER_PATTERN.fullmatch(value):
            number = float(value)
            return int(number) if number.is_integer() else number
        return value
    if value is None or isinstance(value, (int, float)):
        return value
    return None


def convert_item(
    raw: Any,
    config: MatchConfig = DEFAULT_MATCH_CONFIG,
    categories: Dict[str, str] | None = None,
) -> ParsedResult[Record]:
    """
    Convert one raw JSON item into a Record.

    Args:
        raw: decoded JSON object of a single item
        config: match configuration; numeric field specs drive string-to-number coercion
        categories: lower-cased category id -> category title

    Returns:
        ParsingSuccess with the Record, or ParsingError with the reason and the raw item
    """
    try:
        item = CollectionItem.model_validate(raw)
    except ValidationError as e:
        return {
            "parsing_status": "error",
            "message": f"Invalid collection item: {e.errors()[0]['msg'] if e.errors() else e}",
            "context": json.dumps(raw, ensure_ascii=False, default=str)[:500],
        }

    kinds = {spec.name: spec.kind for spec in config.fields}
    fields: dict[str, FieldValue] = {}

    for name, value in (item.model_extra or {}).items():
        coerced = _coerce(value, kinds.get(name))
        if coerced is not None:
            fields[name] = coerced

    for name, value in item.metadata.items():
        if name not in fields:
            coerced = _coerce(value, kinds.get(name))
            if coerced is not None:
                fields[name] = coerced

    category_id = item.metadata.get("category")
    if categories and category_id and category_id.lower() in categories:
        fields.setdefault("categoryTitle", categories[category_id.lower()])

    return {"parsing_status": "success", "out": Record(id=item.id, fields=fields)}


def _split_document(document: Any, path: Path) -> Tuple[Sequence[Any], Dict[str, str]]:
    if isinstance(document, list):
        return document, {}

    if not isinstance(document, dict) or not isinstance(document.get("items"), list):
        raise CollectionLoadError(f"{path}: expected a list of items or an object with an 'items' list")

    categories: Dict[str, str] = {}
    for raw_category in document.get("categories") or []:
        try:
            category = CollectionCategory.model_validate(raw_category)
        except ValidationError:
            lgr.warning(f"{path}: skipping invalid category {raw_category!r}")
            continue
        categories[category.id.lower()] = category.title

    return document["items"], categories


def parse_collection(
    document: Any,
    config: MatchConfig = DEFAULT_MATCH_CONFIG,
    source: str = "<memory>",
) -> Tuple[Record, ...]:
    """Convert an already-decoded collection document, skipping (and logging) invalid items."""
    raw_items, categories = _split_document(document, Path(source))

    records: List[Record] = []
    for position, raw in enumerate(raw_items):
        result = convert_item(raw, config, categories)
        if is_parsing_success(result):
            records.append(result["out"])
        else:
            lgr.warning(f"{source}: skipping item #{position}: {result['message']} ({result['context']})")

    return tuple(records)


def load_collection(path: str | Path, config: MatchConfig = DEFAULT_MATCH_CONFIG) -> Tuple[Record, ...]:
    """
    Read a JSON collection file into Records.

    Raises:
        CollectionLoadError: the file cannot be read, is not JSON, or has no item list
    """
    file_path = Path(path)
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            document = json.load(f)
    except OSError as e:
        raise CollectionLoadError(f"Could not read collection file {file_path}: {e}") from e
    except json.JSONDecodeError as e:
        raise CollectionLoadError(f"Collection file {file_path} is not valid JSON: {e}") from e

    return parse_collection(document, config, source=str(file_path))
