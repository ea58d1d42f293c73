"""
Criteria trees describing document filters.

A leaf ``Criteria`` holds a subject (logical attribute path), an operator and
its values. A non-leaf holds a connective (AND / OR) and its children. Trees
are immutable: every builder call returns a new object, and the tree shape is
the only source of precedence.

Example:
    criteria = where("id").is_("p1").and_("last_name").is_("Smith")
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Optional, Tuple


logger = logging.getLogger(__name__)


class CriteriaType(Enum):
    """Operators and connectives of a criteria tree."""

    # Connectives
    AND = "AND"
    OR = "OR"
    # Comparison
    IS_EQUAL = "IS_EQUAL"
    NOT = "NOT"
    BEFORE = "BEFORE"
    AFTER = "AFTER"
    LESS_THAN = "LESS_THAN"
    LESS_THAN_EQUAL = "LESS_THAN_EQUAL"
    GREATER_THAN = "GREATER_THAN"
    GREATER_THAN_EQUAL = "GREATER_THAN_EQUAL"
    BETWEEN = "BETWEEN"
    # Membership
    IN = "IN"
    NOT_IN = "NOT_IN"
    ARRAY_CONTAINS = "ARRAY_CONTAINS"
    # Strings
    CONTAINING = "CONTAINING"
    STARTS_WITH = "STARTS_WITH"
    ENDS_WITH = "ENDS_WITH"
    MATCHES = "MATCHES"
    # Presence and booleans
    IS_NULL = "IS_NULL"
    IS_NOT_NULL = "IS_NOT_NULL"
    EXISTS = "EXISTS"
    TRUE = "TRUE"
    FALSE = "FALSE"

    @property
    def is_connective(self) -> bool:
        return self in (CriteriaType.AND, CriteriaType.OR)


# Number of values each leaf operator takes; None means "a collection"
VALUE_ARITY = {
    CriteriaType.IS_EQUAL: 1,
    CriteriaType.NOT: 1,
    CriteriaType.BEFORE: 1,
    CriteriaType.AFTER: 1,
    CriteriaType.LESS_THAN: 1,
    CriteriaType.LESS_THAN_EQUAL: 1,
    CriteriaType.GREATER_THAN: 1,
    CriteriaType.GREATER_THAN_EQUAL: 1,
    CriteriaType.BETWEEN: 2,
    CriteriaType.IN: None,
    CriteriaType.NOT_IN: None,
    CriteriaType.ARRAY_CONTAINS: 1,
    CriteriaType.CONTAINING: 1,
    CriteriaType.STARTS_WITH: 1,
    CriteriaType.ENDS_WITH: 1,
    CriteriaType.MATCHES: 1,
    CriteriaType.IS_NULL: 0,
    CriteriaType.IS_NOT_NULL: 0,
    CriteriaType.EXISTS: 0,
    CriteriaType.TRUE: 0,
    CriteriaType.FALSE: 0,
}


def _as_collection(
    values: Iterable[Any],
) -> Tuple[Any, ...]:
    if isinstance(values, (str, bytes)) or not isinstance(values, Iterable):
        raise ValueError(f"Expected a collection of values, got {type(values).__name__}")
    return tuple(values)


@dataclass(frozen=True)
class Criteria:
    """One filter condition, or a logical grouping of child conditions."""

    type: CriteriaType
    subject: Optional[str] = None
    values: Tuple[Any, ...] = ()
    sub_criteria: Tuple["Criteria", ...] = ()

    def __post_init__(self):
        if self.type.is_connective:
            if self.subject is not None or self.values:
                raise ValueError(f"{self.type.name} criteria cannot carry a subject or values")
            return

        if not self.subject:
            raise ValueError(f"{self.type.name} criteria requires a subject")
        if self.sub_criteria:
            raise ValueError(f"{self.type.name} criteria cannot have sub criteria")

        arity = VALUE_ARITY[self.type]
        if arity is not None and len(self.values) != arity:
            raise ValueError(
                f"{self.type.name} on '{self.subject}' takes {arity} value(s), "
                f"got {len(self.values)}"
            )

    @classmethod
    def of(
        cls,
        criteria_type: CriteriaType,
        subject: str,
        values: Iterable[Any] = (),
    ) -> "Criteria":
        """Build a leaf, expanding collection operators from one iterable."""
        if VALUE_ARITY.get(criteria_type, 0) is None:
            return cls(criteria_type, subject, _as_collection(values))
        return cls(criteria_type, subject, tuple(values))

    @classmethod
    def empty(cls) -> "Criteria":
        """Criteria matching every document."""
        return cls(CriteriaType.AND)

    @classmethod
    def combine(
        cls,
        connective: CriteriaType,
        *children: "Criteria",
    ) -> "Criteria":
        """
        Join criteria under a connective.

        Children that are already groups of the same connective are flattened,
        empty criteria are dropped, and a single remaining child is returned
        as is.
        """
        if not connective.is_connective:
            raise ValueError(f"{connective.name} is not a connective")

        flattened = []
        for child in children:
            if child.is_empty():
                continue
            if child.type == connective:
                flattened.extend(child.sub_criteria)
            else:
                flattened.append(child)

        if len(flattened) == 1:
            return flattened[0]
        return cls(connective, sub_criteria=tuple(flattened))

    def is_leaf(self) -> bool:
        return not self.type.is_connective

    def is_empty(self) -> bool:
        return self.type.is_connective and not self.sub_criteria

    def pruned(self) -> "Criteria":
        """
        Drop empty connectives at any depth.

        A connective whose children are all empty is removed and one left
        with a single child is replaced by it.
        """
        if self.is_leaf():
            return self
        children = tuple(
            pruned for pruned in (child.pruned() for child in self.sub_criteria)
            if not pruned.is_empty()
        )
        if children == self.sub_criteria:
            return self
        if len(children) == 1:
            return children[0]
        return Criteria(self.type, sub_criteria=children)

    def and_(
        self,
        subject: str,
    ) -> "CriteriaBuilder":
        """Start a condition on ``subject`` joined to this one with AND."""
        return CriteriaBuilder(subject, self, CriteriaType.AND)

    def or_(
        self,
        subject: str,
    ) -> "CriteriaBuilder":
        """Start a condition on ``subject`` joined to this one with OR."""
        return CriteriaBuilder(subject, self, CriteriaType.OR)

    def __and__(self, other: "Criteria") -> "Criteria":
        return Criteria.combine(CriteriaType.AND, self, other)

    def __or__(self, other: "Criteria") -> "Criteria":
        return Criteria.combine(CriteriaType.OR, self, other)


class CriteriaBuilder:
    """Pending condition on one subject, completed by an operator method."""

    def __init__(
        self,
        subject: str,
        left: Optional[Criteria] = None,
        connective: CriteriaType = CriteriaType.AND,
    ):
        self.subject = subject
        self._left = left
        self._connective = connective

    def _complete(
        self,
        criteria_type: CriteriaType,
        *values: Any,
    ) -> Criteria:
        leaf = Criteria(criteria_type, self.subject, tuple(values))
        if self._left is None or self._left.is_empty():
            return leaf
        # Only the left side is flattened so chains read left to right
        if self._left.type == self._connective:
            return Criteria(
                self._connective,
                sub_criteria=self._left.sub_criteria + (leaf,),
            )
        return Criteria(self._connective, sub_criteria=(self._left, leaf))

    def is_(self, value: Any) -> Criteria:
        return self._complete(CriteriaType.IS_EQUAL, value)

    def not_(self, value: Any) -> Criteria:
        return self._complete(CriteriaType.NOT, value)

    def less_than(self, value: Any) -> Criteria:
        return self._complete(CriteriaType.LESS_THAN, value)

    def less_than_equal(self, value: Any) -> Criteria:
        return self._complete(CriteriaType.LESS_THAN_EQUAL, value)

    def greater_than(self, value: Any) -> Criteria:
        return self._complete(CriteriaType.GREATER_THAN, value)

    def greater_than_equal(self, value: Any) -> Criteria:
        return self._complete(CriteriaType.GREATER_THAN_EQUAL, value)

    def before(self, value: Any) -> Criteria:
        return self._complete(CriteriaType.BEFORE, value)

    def after(self, value: Any) -> Criteria:
        return self._complete(CriteriaType.AFTER, value)

    def between(self, low: Any, high: Any) -> Criteria:
        return self._complete(CriteriaType.BETWEEN, low, high)

    def in_(self, values: Iterable[Any]) -> Criteria:
        return self._complete(CriteriaType.IN, *_as_collection(values))

    def not_in(self, values: Iterable[Any]) -> Criteria:
        return self._complete(CriteriaType.NOT_IN, *_as_collection(values))

    def array_contains(self, value: Any) -> Criteria:
        return self._complete(CriteriaType.ARRAY_CONTAINS, value)

    def containing(self, value: str) -> Criteria:
        return self._complete(CriteriaType.CONTAINING, value)

    def starts_with(self, value: str) -> Criteria:
        return self._complete(CriteriaType.STARTS_WITH, value)

    def ends_with(self, value: str) -> Criteria:
        return self._complete(CriteriaType.ENDS_WITH, value)

    def matches(self, pattern: str) -> Criteria:
        return self._complete(CriteriaType.MATCHES, pattern)

    def is_null(self) -> Criteria:
        return self._complete(CriteriaType.IS_NULL)

    def is_not_null(self) -> Criteria:
        return self._complete(CriteriaType.IS_NOT_NULL)

    def exists(self) -> Criteria:
        return self._complete(CriteriaType.EXISTS)

    def is_true(self) -> Criteria:
        return self._complete(CriteriaType.TRUE)

    def is_false(self) -> Criteria:
        return self._complete(CriteriaType.FALSE)


def where(
    subject: str,
) -> CriteriaBuilder:
    """Start a criteria tree with a condition on ``subject``."""
    return CriteriaBuilder(subject)
