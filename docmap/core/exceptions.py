"""
Exceptions raised by the mapping layer.

Errors raised by the database client SDKs (conflicts, throttling, not-found
on delete) are not wrapped here; they propagate to the caller unchanged.
"""

from typing import Any


class DocMapError(Exception):
    """Base class for all docmap errors."""


class UnsupportedOperationError(DocMapError):
    """A criteria operator the target query language cannot express."""

    def __init__(
        self,
        operator: Any,
        backend: str,
    ):
        self.operator = operator
        self.backend = backend
        name = getattr(operator, "name", operator)
        super().__init__(f"Unsupported criteria operator '{name}' for {backend} queries")


class IncorrectResultSizeError(DocMapError):
    """A single-entity query matched an unexpected number of documents."""

    def __init__(
        self,
        expected: int,
        actual: int,
    ):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Incorrect result size: expected {expected}, actual {actual}")


class MappingError(DocMapError):
    """Invalid entity mapping declaration."""


class InvalidQueryMethodError(DocMapError):
    """A derived query method that cannot be parsed or bound."""
