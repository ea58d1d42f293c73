"""Core configuration, exceptions and the storage-operations facade."""

from .exceptions import (
    DocMapError,
    IncorrectResultSizeError,
    InvalidQueryMethodError,
    MappingError,
    UnsupportedOperationError,
)

__all__ = [
    "DocMapError",
    "IncorrectResultSizeError",
    "InvalidQueryMethodError",
    "MappingError",
    "UnsupportedOperationError",
]
