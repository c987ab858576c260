"""
Text normalization and key building for the key-based tiers and the blocking index.

Pure functions: no I/O, no logging.
"""

import unicodedata
from typing import Mapping, Sequence, Tuple

from aletk.utils import remove_extra_whitespace

from collection_matcher.matching.models import FieldKind, FieldSpec, FieldValue


LEADING_ARTICLES = ("the ", "a ", "an ")

QUOTE_TRANSLATION = str.maketrans(
    {
        "‘": "'",
        "’": "'",
        "‚": "'",
        "‛": "'",
        "′": "'",
        "`": "'",
        "´": "'",
        "“": '"',
        "”": '"',
        "„": '"',
        "‟": '"',
        "″": '"',
        "«": '"',
        "»": '"',
    }
)

# Dropped without leaving a gap, so "Luigi's" and "Luigis" agree
_DROPPED_CHARACTERS = frozenset("'\"")


type KeyPart = str | int | float
type RecordKey = Tuple[KeyPart, ...]


def fold_case(text: str) -> str:
    return unicodedata.normalize("NFKC", unicodedata.normalize("NFKC", text).casefold())


def _is_punctuation(char: str) -> bool:
    category = unicodedata.category(char)
    return category.startswith("P") or category.startswith("S")


def strip_punctuation(text: str) -> str:
    """Drop quotes, replace any other punctuation or symbol with a space, collapse whitespace."""
    unified = text.translate(QUOTE_TRANSLATION)
    chars = []
    for char in unified:
        if char in _DROPPED_CHARACTERS:
            continue
        chars.append(" " if _is_punctuation(char) else char)
    return remove_extra_whitespace("".join(chars)).strip()


def _strip_leading_articles(text: str) -> str:
    stripped = text
    changed = True
    while changed:
        changed = False
        for article in LEADING_ARTICLES:
            if stripped.startswith(article) and stripped[len(article) :].strip():
                stripped = stripped[len(article) :].lstrip()
                changed = True
    return stripped


def normalize_text(text: str) -> str:
    """
    Normalize a title-like string for the normalized-key tier.

    Folds case, unifies and removes quote characters, turns remaining punctuation into
    spaces, collapses whitespace and strips leading articles ("The ", "A ", "An ").
    An article is kept when nothing would remain without it.

    Idempotent: ``normalize_text(normalize_text(s)) == normalize_text(s)``.
    """
    return _strip_leading_articles(strip_punctuation(fold_case(text)))


def is_blank(value: FieldValue) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _exact_part(spec: FieldSpec, value: KeyPart) -> KeyPart:
    if spec.kind == FieldKind.EXACT:
        return fold_case(str(value)).strip()
    if isinstance(value, str):
        return fold_case(value).strip()
    if spec.kind == FieldKind.NUMERIC and float(value).is_integer():
        return int(value)
    return value


def _normalized_part(spec: FieldSpec, value: KeyPart) -> KeyPart:
    if isinstance(value, str):
        return normalize_text(value)
    return _exact_part(spec, value)


def exact_key(values: Mapping[str, FieldValue], identity_specs: Sequence[FieldSpec]) -> RecordKey | None:
    """
    Case-insensitive key over the identity fields.

    Returns None when any identity field is missing: a partial key never matches.
    """
    parts: list[KeyPart] = []
    for spec in identity_specs:
        value = values.get(spec.name)
        if value is None or is_blank(value):
            return None
        parts.append(_exact_part(spec, value))
    return tuple(parts) if parts else None


def normalized_key(values: Mapping[str, FieldValue], identity_specs: Sequence[FieldSpec]) -> RecordKey | None:
    """Like ``exact_key`` but with text parts passed through ``normalize_text``."""
    parts: list[KeyPart] = []
    for spec in identity_specs:
        value = values.get(spec.name)
        if value is None or is_blank(value):
            return None
        part = _normalized_part(spec, value)
        if part == "":
            return None
        parts.append(part)
    return tuple(parts) if parts else None


def first_character_block_key(text: str | None) -> str:
    """First alphanumeric character of the normalized text, or "" when there is none."""
    if not text:
        return ""
    normalized = normalize_text(text)
    return next((char for char in normalized if char.isalnum()), "")
