"""
docmap - object-document mapping for Cosmos DB and MongoDB.

Maps pydantic models to documents, translates criteria trees into native
queries and dispatches repository query methods to the storage backend.
"""

from .core.exceptions import (
    DocMapError,
    IncorrectResultSizeError,
    InvalidQueryMethodError,
    MappingError,
    UnsupportedOperationError,
)
from .mapping import document
from .query import (
    Criteria,
    CriteriaType,
    Direction,
    DocumentQuery,
    Page,
    Pageable,
    Sort,
    where,
)
from .repository import (
    DocumentRepository,
    ReactiveDocumentRepository,
    create_reactive_repository,
    create_repository,
    query_method,
)

__all__ = [
    "Criteria",
    "CriteriaType",
    "Direction",
    "DocMapError",
    "DocumentQuery",
    "DocumentRepository",
    "IncorrectResultSizeError",
    "InvalidQueryMethodError",
    "MappingError",
    "Page",
    "Pageable",
    "ReactiveDocumentRepository",
    "Sort",
    "UnsupportedOperationError",
    "create_reactive_repository",
    "create_repository",
    "document",
    "query_method",
    "where",
]
