"""
Derived query method names.

A repository method name such as ``find_by_last_name_and_age_greater_than``
is parsed once into a subject (select, exists, delete, count), disjunction
groups of predicate parts, and an optional ``_order_by_`` sort. At call time
the method's arguments are bound to the parts, in order, to build a
``Criteria`` tree.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Sequence, Tuple

from ..core.exceptions import InvalidQueryMethodError
from ..query.criteria import VALUE_ARITY, Criteria, CriteriaType
from ..query.document_query import Direction, Order, Sort


logger = logging.getLogger(__name__)


class QuerySubject(Enum):
    SELECT = "select"
    EXISTS = "exists"
    DELETE = "delete"
    COUNT = "count"


_PREFIX = re.compile(
    r"^(?P<verb>find|get|read|query|stream|exists|delete|remove|count)"
    r"(?:_(?P<first>first)|_top(?P<top>\d+))?_by_(?P<body>.+)$"
)

_SUBJECTS = {
    "find": QuerySubject.SELECT,
    "get": QuerySubject.SELECT,
    "read": QuerySubject.SELECT,
    "query": QuerySubject.SELECT,
    "stream": QuerySubject.SELECT,
    "exists": QuerySubject.EXISTS,
    "delete": QuerySubject.DELETE,
    "remove": QuerySubject.DELETE,
    "count": QuerySubject.COUNT,
}

# Longest suffix first so "_not_in" wins over "_in"
_SUFFIXES = sorted(
    [
        ("_is_not_null", CriteriaType.IS_NOT_NULL),
        ("_is_null", CriteriaType.IS_NULL),
        ("_not_in", CriteriaType.NOT_IN),
        ("_in", CriteriaType.IN),
        ("_between", CriteriaType.BETWEEN),
        ("_less_than_equal", CriteriaType.LESS_THAN_EQUAL),
        ("_less_than", CriteriaType.LESS_THAN),
        ("_greater_than_equal", CriteriaType.GREATER_THAN_EQUAL),
        ("_greater_than", CriteriaType.GREATER_THAN),
        ("_before", CriteriaType.BEFORE),
        ("_after", CriteriaType.AFTER),
        ("_array_containing", CriteriaType.ARRAY_CONTAINS),
        ("_containing", CriteriaType.CONTAINING),
        ("_starting_with", CriteriaType.STARTS_WITH),
        ("_ending_with", CriteriaType.ENDS_WITH),
        ("_matches", CriteriaType.MATCHES),
        ("_exists", CriteriaType.EXISTS),
        ("_is_true", CriteriaType.TRUE),
        ("_true", CriteriaType.TRUE),
        ("_is_false", CriteriaType.FALSE),
        ("_false", CriteriaType.FALSE),
        ("_is_not", CriteriaType.NOT),
        ("_not", CriteriaType.NOT),
        ("_equals", CriteriaType.IS_EQUAL),
        ("_is", CriteriaType.IS_EQUAL),
    ],
    key=lambda item: len(item[0]),
    reverse=True,
)

_ORDER = re.compile(r"^(?P<prop>.+?)(?:_(?P<dir>asc|desc))?$")


@dataclass(frozen=True)
class Part:
    """One predicate of a derived query: a property and an operator."""

    property: str
    type: CriteriaType

    @property
    def argument_count(self) -> int:
        arity = VALUE_ARITY[self.type]
        # Collection operators take one iterable argument
        return 1 if arity is None else arity


@dataclass(frozen=True)
class DerivedQuery:
    """Parsed form of a derived query method name."""

    method_name: str
    subject: QuerySubject
    groups: Tuple[Tuple[Part, ...], ...]
    sort: Sort = field(default_factory=Sort.unsorted)
    limit: Optional[int] = None

    @property
    def parts(self) -> Tuple[Part, ...]:
        return tuple(part for group in self.groups for part in group)

    @property
    def argument_count(self) -> int:
        return sum(part.argument_count for part in self.parts)

    def create_criteria(
        self,
        arguments: Sequence[Any],
    ) -> Criteria:
        """
        Bind call arguments to the predicate parts, in order.

        Raises:
            InvalidQueryMethodError: If the argument count does not match
        """
        if len(arguments) != self.argument_count:
            raise InvalidQueryMethodError(
                f"{self.method_name} takes {self.argument_count} criteria argument(s), "
                f"got {len(arguments)}"
            )

        position = 0
        disjuncts = []
        for group in self.groups:
            leaves = []
            for part in group:
                count = part.argument_count
                values = arguments[position:position + count]
                position += count
                if VALUE_ARITY[part.type] is None:
                    leaves.append(Criteria.of(part.type, part.property, values[0]))
                else:
                    leaves.append(Criteria.of(part.type, part.property, values))
            disjuncts.append(Criteria.combine(CriteriaType.AND, *leaves))

        return Criteria.combine(CriteriaType.OR, *disjuncts)


def _parse_part(
    text: str,
    method_name: str,
) -> Part:
    for suffix, criteria_type in _SUFFIXES:
        if text.endswith(suffix) and len(text) > len(suffix):
            return Part(text[: -len(suffix)], criteria_type)
    if not text:
        raise InvalidQueryMethodError(f"Empty predicate in {method_name}")
    return Part(text, CriteriaType.IS_EQUAL)


def _parse_sort(
    text: str,
) -> Sort:
    orders = []
    for chunk in text.split("_then_"):
        match = _ORDER.match(chunk)
        if not match:
            raise InvalidQueryMethodError(f"Empty sort property in '{text}'")
        direction = Direction.DESC if match.group("dir") == "desc" else Direction.ASC
        orders.append(Order(match.group("prop"), direction))
    return Sort(tuple(orders))


def parse_method_name(
    name: str,
) -> DerivedQuery:
    """
    Parse a derived query method name.

    Examples:
        find_by_last_name
        find_first_by_age_greater_than_order_by_age_desc
        exists_by_id
        delete_by_last_name_and_first_name_in
        find_by_city_or_zip_code_starting_with

    Raises:
        InvalidQueryMethodError: If the name has no known prefix or empty parts
    """
    match = _PREFIX.match(name)
    if not match:
        raise InvalidQueryMethodError(f"Cannot derive a query from method name '{name}'")

    subject = _SUBJECTS[match.group("verb")]
    body = match.group("body")

    limit = None
    if match.group("first"):
        limit = 1
    elif match.group("top"):
        limit = int(match.group("top"))

    sort = Sort.unsorted()
    body, _, order_text = body.partition("_order_by_")
    if order_text:
        sort = _parse_sort(order_text)

    groups = []
    for group_text in body.split("_or_"):
        parts = tuple(_parse_part(text, name) for text in group_text.split("_and_"))
        groups.append(parts)

    derived = DerivedQuery(
        method_name=name,
        subject=subject,
        groups=tuple(groups),
        sort=sort,
        limit=limit,
    )
    logger.debug(f"Derived query {name}: {derived}")
    return derived
