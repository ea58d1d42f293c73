"""Query, sort and paging value objects."""

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Generic, List, Optional, Tuple, TypeVar

from .criteria import Criteria, CriteriaType


logger = logging.getLogger(__name__)

T = TypeVar("T")


class Direction(Enum):
    ASC = "ASC"
    DESC = "DESC"


@dataclass(frozen=True)
class Order:
    """Sort order on one logical attribute."""

    property: str
    direction: Direction = Direction.ASC


@dataclass(frozen=True)
class Sort:
    """Ordered list of sort orders."""

    orders: Tuple[Order, ...] = ()

    @classmethod
    def by(
        cls,
        *properties: str,
        direction: Direction = Direction.ASC,
    ) -> "Sort":
        return cls(tuple(Order(prop, direction) for prop in properties))

    @classmethod
    def unsorted(cls) -> "Sort":
        return cls()

    def and_(self, other: "Sort") -> "Sort":
        return Sort(self.orders + other.orders)

    def is_sorted(self) -> bool:
        return bool(self.orders)


@dataclass(frozen=True)
class Pageable:
    """
    Page request.

    Pages are addressed by continuation token rather than page number: the
    token returned with one page fetches the next.
    """

    page_size: int
    continuation_token: Optional[str] = None
    sort: Sort = field(default_factory=Sort.unsorted)

    def __post_init__(self):
        if self.page_size < 1:
            raise ValueError(f"Page size must be positive, got {self.page_size}")


@dataclass
class Page(Generic[T]):
    """One page of results and the handle to fetch the next one."""

    content: List[T]
    pageable: Pageable
    continuation_token: Optional[str] = None

    def has_next(self) -> bool:
        return self.continuation_token is not None

    def next_pageable(self) -> Optional[Pageable]:
        if not self.has_next():
            return None
        return replace(self.pageable, continuation_token=self.continuation_token)

    def __len__(self) -> int:
        return len(self.content)

    def __iter__(self):
        return iter(self.content)


@dataclass(frozen=True)
class DocumentQuery:
    """A criteria tree plus optional sort, paging and limit."""

    criteria: Criteria = field(default_factory=Criteria.empty)
    sort: Sort = field(default_factory=Sort.unsorted)
    pageable: Optional[Pageable] = None
    limit: Optional[int] = None

    @classmethod
    def all(cls) -> "DocumentQuery":
        return cls()

    def with_sort(self, sort: Sort) -> "DocumentQuery":
        return replace(self, sort=self.sort.and_(sort))

    def with_pageable(self, pageable: Pageable) -> "DocumentQuery":
        return replace(self, pageable=pageable)

    def with_limit(self, limit: Optional[int]) -> "DocumentQuery":
        return replace(self, limit=limit)

    def effective_sort(self) -> Sort:
        """Query sort followed by the page request's sort."""
        if self.pageable is not None and self.pageable.sort.is_sorted():
            return self.sort.and_(self.pageable.sort)
        return self.sort

    def partition_key_value(
        self,
        partition_key_field: Optional[str],
    ) -> Tuple[bool, Any]:
        """
        Find an equality on the partition key that scopes the whole query.

        Returns:
            (found, value): found is True when the root is the partition key
            equality, or an AND group whose direct children include it
        """
        if partition_key_field is None:
            return False, None

        root = self.criteria.pruned()
        candidates = root.sub_criteria if root.type == CriteriaType.AND else (root,)
        for candidate in candidates:
            if (
                candidate.type == CriteriaType.IS_EQUAL
                and candidate.subject == partition_key_field
            ):
                return True, candidate.values[0]
        return False, None
