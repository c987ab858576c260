"""
Error taxonomy for the collection matching engine.

Recoverable problems with the caller's input or configuration derive from
``CollectionMatcherError``. ``InvariantViolation`` is deliberately an
``AssertionError``: it signals a defect in the engine itself and is never caught.
"""

from typing import Sequence


class CollectionMatcherError(Exception):
    """Base class for errors raised by the collection matcher."""


class ConfigurationError(CollectionMatcherError):
    """Raised when a MatchConfig is invalid. Raised before any comparison starts."""

    def __init__(self, problems: Sequence[str]) -> None:
        self.problems = tuple(problems)
        super().__init__("Invalid match configuration: " + "; ".join(self.problems))


class TypeMismatchError(CollectionMatcherError):
    """Raised when a record's field value does not have the type its FieldSpec declares."""

    def __init__(self, record_id: str, field: str, expected: str, actual: str) -> None:
        self.record_id = record_id
        self.field = field
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Record '{record_id}': field '{field}' declared as {expected} but holds a value of type {actual}"
        )


class DuplicateRecordError(CollectionMatcherError):
    """Raised when a collection contains the same record id more than once."""

    def __init__(self, side: str, record_ids: Sequence[str]) -> None:
        self.side = side
        self.record_ids = tuple(record_ids)
        super().__init__(f"Duplicate record ids in {side} collection: {', '.join(self.record_ids)}")


class ComparisonTooLargeError(CollectionMatcherError):
    """Raised when |left| x |right| exceeds the configured ceiling."""

    def __init__(self, pairs: int, max_pairs: int) -> None:
        self.pairs = pairs
        self.max_pairs = max_pairs
        super().__init__(f"Comparison of {pairs} record pairs exceeds the ceiling of {max_pairs}")


class CollectionLoadError(CollectionMatcherError):
    """Raised when a collection file cannot be read or decoded."""


class InvariantViolation(AssertionError):
    """Raised when a comparison result does not partition its inputs exactly."""
