"""Repositories, derived query methods and the query execution dispatcher."""

from .base import DocumentRepository, RepositorySupport
from .derivation import DerivedQuery, Part, QuerySubject, parse_method_name
from .factory import (
    close_operations,
    create_reactive_repository,
    create_repository,
    get_operations,
    reset_repositories,
)
from .query import (
    ExecutionKind,
    QueryMethod,
    RepositoryQuery,
    execute,
    query_method,
    select_execution,
)
from .reactive import ReactiveDocumentRepository

__all__ = [
    "DerivedQuery",
    "DocumentRepository",
    "ExecutionKind",
    "Part",
    "QueryMethod",
    "QuerySubject",
    "ReactiveDocumentRepository",
    "RepositoryQuery",
    "RepositorySupport",
    "close_operations",
    "create_reactive_repository",
    "create_repository",
    "execute",
    "get_operations",
    "parse_method_name",
    "query_method",
    "reset_repositories",
    "select_execution",
]
