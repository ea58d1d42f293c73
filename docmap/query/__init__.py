"""Criteria trees, query objects and native query translation."""

from .criteria import Criteria, CriteriaBuilder, CriteriaType, where
from .document_query import (
    Direction,
    DocumentQuery,
    Order,
    Page,
    Pageable,
    Sort,
)
from .translator import (
    CosmosQueryTranslator,
    MongoQuerySpec,
    MongoQueryTranslator,
    Projection,
    SqlQuerySpec,
)

__all__ = [
    "CosmosQueryTranslator",
    "Criteria",
    "CriteriaBuilder",
    "CriteriaType",
    "Direction",
    "DocumentQuery",
    "MongoQuerySpec",
    "MongoQueryTranslator",
    "Order",
    "Page",
    "Pageable",
    "Projection",
    "SqlQuerySpec",
    "Sort",
    "where",
]
