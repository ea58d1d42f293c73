"""
Criteria-to-native-query translation.

Translators walk a criteria tree depth first and render it in the target
database's query language. Logical attribute names are mapped to stored
field names first, with the id attribute always addressing the database's
reserved identifier key. Translation is a pure function of the query and the
entity metadata.
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Tuple

from pydantic_core import to_jsonable_python

from ..core.exceptions import UnsupportedOperationError
from ..mapping.entity import EntityMetadata
from .criteria import Criteria, CriteriaType
from .document_query import Direction, DocumentQuery


logger = logging.getLogger(__name__)


COSMOS_ID_KEY: str = "id"
MONGO_ID_KEY: str = "_id"


class QueryTranslator(ABC):
    """Base class for criteria translators of one backend."""

    id_key: str

    @abstractmethod
    def translate(
        self,
        query: DocumentQuery,
        metadata: EntityMetadata,
    ) -> Any:
        """Translate a query into the backend's native representation."""
        pass

    def field_name(
        self,
        subject: str,
        metadata: EntityMetadata,
    ) -> str:
        """Map a logical attribute path to the stored field path."""
        return metadata.storage_name(subject, self.id_key)


# =============================================================================
# Cosmos DB SQL
# =============================================================================


class Projection(Enum):
    """SELECT clause of a generated Cosmos query."""

    ALL = "*"
    COUNT = "VALUE COUNT(1)"


@dataclass(frozen=True)
class SqlQuerySpec:
    """Cosmos SQL query text and its bound parameters, in order."""

    query_text: str
    parameters: List[Dict[str, Any]] = field(default_factory=list)


_BINARY_OPERATORS = {
    CriteriaType.IS_EQUAL: "=",
    CriteriaType.NOT: "!=",
    CriteriaType.BEFORE: "<",
    CriteriaType.AFTER: ">",
    CriteriaType.LESS_THAN: "<",
    CriteriaType.LESS_THAN_EQUAL: "<=",
    CriteriaType.GREATER_THAN: ">",
    CriteriaType.GREATER_THAN_EQUAL: ">=",
}

_FUNCTION_OPERATORS = {
    CriteriaType.CONTAINING: "CONTAINS",
    CriteriaType.STARTS_WITH: "STARTSWITH",
    CriteriaType.ENDS_WITH: "ENDSWITH",
    CriteriaType.ARRAY_CONTAINS: "ARRAY_CONTAINS",
}

_UNARY_TEMPLATES = {
    CriteriaType.IS_NULL: "IS_NULL({field})",
    CriteriaType.IS_NOT_NULL: "NOT IS_NULL({field})",
    CriteriaType.EXISTS: "IS_DEFINED({field})",
    CriteriaType.TRUE: "{field} = true",
    CriteriaType.FALSE: "{field} = false",
}


class _SqlRenderer:
    """Renders one criteria tree, collecting parameters as it goes."""

    def __init__(
        self,
        translator: "CosmosQueryTranslator",
        metadata: EntityMetadata,
    ):
        self._translator = translator
        self._metadata = metadata
        self.parameters: List[Dict[str, Any]] = []

    def bind(self, value: Any) -> str:
        name = f"@param{len(self.parameters)}"
        self.parameters.append({"name": name, "value": to_jsonable_python(value)})
        return name

    def render(self, criteria: Criteria) -> str:
        if criteria.type.is_connective:
            return self._render_connective(criteria)
        return self._render_leaf(criteria)

    def _render_connective(self, criteria: Criteria) -> str:
        parts = []
        for child in criteria.sub_criteria:
            rendered = self.render(child)
            if child.type.is_connective and len(child.sub_criteria) > 1:
                rendered = f"({rendered})"
            parts.append(rendered)
        return f" {criteria.type.value} ".join(parts)

    def _render_leaf(self, criteria: Criteria) -> str:
        op = criteria.type
        column = (
            f"{CosmosQueryTranslator.ROOT_ALIAS}."
            f"{self._translator.field_name(criteria.subject, self._metadata)}"
        )

        if op in _BINARY_OPERATORS:
            return f"{column} {_BINARY_OPERATORS[op]} {self.bind(criteria.values[0])}"

        if op in _FUNCTION_OPERATORS:
            return f"{_FUNCTION_OPERATORS[op]}({column}, {self.bind(criteria.values[0])})"

        if op in _UNARY_TEMPLATES:
            return _UNARY_TEMPLATES[op].format(field=column)

        if op == CriteriaType.BETWEEN:
            low = self.bind(criteria.values[0])
            high = self.bind(criteria.values[1])
            return f"({column} >= {low} AND {column} <= {high})"

        if op in (CriteriaType.IN, CriteriaType.NOT_IN):
            if not criteria.values:
                # Nothing is in an empty set
                return "false" if op == CriteriaType.IN else "true"
            names = ", ".join(self.bind(value) for value in criteria.values)
            keyword = "IN" if op == CriteriaType.IN else "NOT IN"
            return f"{column} {keyword} ({names})"

        raise UnsupportedOperationError(op, "Cosmos DB SQL")


class CosmosQueryTranslator(QueryTranslator):
    """Translates criteria into Cosmos DB SQL with bound ``@paramN`` parameters."""

    id_key = COSMOS_ID_KEY
    ROOT_ALIAS = "r"

    def translate(
        self,
        query: DocumentQuery,
        metadata: EntityMetadata,
        projection: Projection = Projection.ALL,
    ) -> SqlQuerySpec:
        """
        Translate a query into a Cosmos SQL query spec.

        Args:
            query: Criteria plus sort, paging and limit
            metadata: Storage layout of the queried entity
            projection: SELECT * or SELECT VALUE COUNT(1)

        Returns:
            Query text and ordered parameter list

        Raises:
            UnsupportedOperationError: If the tree uses an operator Cosmos SQL lacks
            MappingError: If a stored field name is unsafe to embed in query text
        """
        renderer = _SqlRenderer(self, metadata)
        text = f"SELECT {projection.value} FROM ROOT {self.ROOT_ALIAS}"

        criteria = query.criteria.pruned()
        if not criteria.is_empty():
            text += f" WHERE {renderer.render(criteria)}"

        if projection == Projection.ALL:
            sort = query.effective_sort()
            if sort.is_sorted():
                orders = ", ".join(
                    f"{self.ROOT_ALIAS}.{self.field_name(order.property, metadata)} "
                    f"{order.direction.value}"
                    for order in sort.orders
                )
                text += f" ORDER BY {orders}"

            if query.limit is not None and query.pageable is None:
                text += f" OFFSET 0 LIMIT {int(query.limit)}"

        logger.debug(f"Generated Cosmos query: {text}")
        return SqlQuerySpec(query_text=text, parameters=renderer.parameters)


# =============================================================================
# MongoDB filter documents
# =============================================================================


@dataclass(frozen=True)
class MongoQuerySpec:
    """MongoDB filter document and sort specification."""

    filter: Dict[str, Any] = field(default_factory=dict)
    sort: List[Tuple[str, int]] = field(default_factory=list)


_MONGO_OPERATORS = {
    CriteriaType.IS_EQUAL: "$eq",
    CriteriaType.NOT: "$ne",
    CriteriaType.BEFORE: "$lt",
    CriteriaType.AFTER: "$gt",
    CriteriaType.LESS_THAN: "$lt",
    CriteriaType.LESS_THAN_EQUAL: "$lte",
    CriteriaType.GREATER_THAN: "$gt",
    CriteriaType.GREATER_THAN_EQUAL: "$gte",
}


class MongoQueryTranslator(QueryTranslator):
    """Translates criteria into MongoDB filter documents."""

    id_key = MONGO_ID_KEY

    def translate(
        self,
        query: DocumentQuery,
        metadata: EntityMetadata,
    ) -> MongoQuerySpec:
        """
        Translate a query into a MongoDB filter and sort.

        Raises:
            UnsupportedOperationError: If the tree uses an unknown operator
        """
        criteria = query.criteria.pruned()
        mongo_filter = {} if criteria.is_empty() else self._render(criteria, metadata)
        sort = [
            (
                self.field_name(order.property, metadata),
                1 if order.direction == Direction.ASC else -1,
            )
            for order in query.effective_sort().orders
        ]
        return MongoQuerySpec(filter=mongo_filter, sort=sort)

    def _render(
        self,
        criteria: Criteria,
        metadata: EntityMetadata,
    ) -> Dict[str, Any]:
        if criteria.type.is_connective:
            children = [self._render(child, metadata) for child in criteria.sub_criteria]
            if len(children) == 1:
                return children[0]
            return {f"${criteria.type.value.lower()}": children}

        op = criteria.type
        name = self.field_name(criteria.subject, metadata)
        values = [to_jsonable_python(value) for value in criteria.values]

        if op in _MONGO_OPERATORS:
            return {name: {_MONGO_OPERATORS[op]: values[0]}}
        if op == CriteriaType.BETWEEN:
            return {name: {"$gte": values[0], "$lte": values[1]}}
        if op == CriteriaType.IN:
            return {name: {"$in": values}}
        if op == CriteriaType.NOT_IN:
            return {name: {"$nin": values}}
        if op == CriteriaType.ARRAY_CONTAINS:
            return {name: {"$all": [values[0]]}}
        if op == CriteriaType.CONTAINING:
            return {name: {"$regex": re.escape(str(values[0]))}}
        if op == CriteriaType.STARTS_WITH:
            return {name: {"$regex": f"^{re.escape(str(values[0]))}"}}
        if op == CriteriaType.ENDS_WITH:
            return {name: {"$regex": f"{re.escape(str(values[0]))}$"}}
        if op == CriteriaType.MATCHES:
            return {name: {"$regex": values[0]}}
        if op == CriteriaType.IS_NULL:
            return {name: {"$eq": None}}
        if op == CriteriaType.IS_NOT_NULL:
            return {name: {"$ne": None}}
        if op == CriteriaType.EXISTS:
            return {name: {"$exists": True}}
        if op == CriteriaType.TRUE:
            return {name: {"$eq": True}}
        if op == CriteriaType.FALSE:
            return {name: {"$eq": False}}

        raise UnsupportedOperationError(op, "MongoDB")
