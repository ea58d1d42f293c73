"""
Query method execution.

Every derived query method is classified once from its static metadata (name
prefix and declared return type) into exactly one ``ExecutionKind``. At call
time the arguments are bound into a ``DocumentQuery`` and the chosen
execution makes a single call on the storage-operations facade.
"""

import collections.abc
import functools
import inspect
import logging
import typing
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterator, Callable, Optional, Sequence, Type, get_origin

from pydantic import BaseModel

from ..core.exceptions import IncorrectResultSizeError, InvalidQueryMethodError
from ..core.operations import DocumentOperations
from ..mapping.entity import EntityMetadata
from ..query.document_query import DocumentQuery, Page, Pageable, Sort
from .derivation import DerivedQuery, QuerySubject, parse_method_name


logger = logging.getLogger(__name__)


class ExecutionKind(Enum):
    """Closed set of query execution strategies."""

    DELETE = "delete"
    PAGED = "paged"
    EXISTS = "exists"
    MULTI_ENTITY = "multi_entity"
    SINGLE_ENTITY = "single_entity"


_COLLECTION_ORIGINS = (
    list,
    tuple,
    set,
    frozenset,
    collections.abc.Sequence,
    collections.abc.Collection,
    collections.abc.Iterable,
)

_STREAM_ORIGINS = (
    collections.abc.AsyncIterator,
    collections.abc.AsyncIterable,
    collections.abc.AsyncGenerator,
)


@dataclass(frozen=True)
class QueryMethod:
    """Static metadata of one repository query method."""

    name: str
    entity_type: Type[BaseModel]
    derived: DerivedQuery
    is_page_query: bool = False
    is_collection_query: bool = False
    is_stream_query: bool = False
    returns_count: bool = False

    @property
    def is_delete_query(self) -> bool:
        return self.derived.subject == QuerySubject.DELETE

    @property
    def is_exists_query(self) -> bool:
        return self.derived.subject == QuerySubject.EXISTS

    @property
    def is_count_query(self) -> bool:
        return self.derived.subject == QuerySubject.COUNT

    @classmethod
    def from_function(
        cls,
        func: Callable[..., Any],
        entity_type: Type[BaseModel],
        metadata: EntityMetadata,
    ) -> "QueryMethod":
        """
        Build query method metadata from a decorated repository method.

        Raises:
            InvalidQueryMethodError: If a predicate names an unknown attribute
        """
        derived = parse_method_name(func.__name__)

        for part in derived.parts:
            head = part.property.split(".", 1)[0]
            if head not in metadata.storage_names:
                raise InvalidQueryMethodError(
                    f"{func.__name__}: '{part.property}' is not an attribute of "
                    f"{entity_type.__name__}"
                )

        hints = typing.get_type_hints(func)
        return_type = hints.get("return")
        origin = get_origin(return_type) or return_type

        is_stream = not inspect.iscoroutinefunction(func)
        is_page = inspect.isclass(origin) and issubclass(origin, Page)
        is_collection = is_stream or (
            not is_page and origin in _COLLECTION_ORIGINS
        )

        return cls(
            name=func.__name__,
            entity_type=entity_type,
            derived=derived,
            is_page_query=is_page,
            is_collection_query=is_collection,
            is_stream_query=is_stream,
            returns_count=return_type is int,
        )


def select_execution(
    method: QueryMethod,
) -> ExecutionKind:
    """Pick the execution strategy; the first matching rule wins."""
    if method.is_delete_query:
        return ExecutionKind.DELETE
    elif method.is_page_query:
        return ExecutionKind.PAGED
    elif method.is_exists_query:
        return ExecutionKind.EXISTS
    elif method.is_collection_query:
        return ExecutionKind.MULTI_ENTITY
    else:
        return ExecutionKind.SINGLE_ENTITY


async def execute(
    kind: ExecutionKind,
    operations: DocumentOperations,
    query: DocumentQuery,
    method: QueryMethod,
    container_name: Optional[str] = None,
) -> Any:
    """
    Run one execution strategy with a single facade call.

    Raises:
        IncorrectResultSizeError: If a single-entity query matches more than one document
    """
    entity_type = method.entity_type

    match kind:
        case ExecutionKind.DELETE:
            deleted = await operations.delete(query, entity_type, container_name)
            return len(deleted) if method.returns_count else deleted

        case ExecutionKind.PAGED:
            return await operations.paginate(query, entity_type, container_name)

        case ExecutionKind.EXISTS:
            return await operations.exists(query, entity_type, container_name)

        case ExecutionKind.MULTI_ENTITY:
            return await operations.find(query, entity_type, container_name)

        case ExecutionKind.SINGLE_ENTITY:
            # Two results are enough to tell "more than one"
            if query.limit is None:
                query = query.with_limit(2)
            results = await operations.find(query, entity_type, container_name)
            if len(results) > 1:
                raise IncorrectResultSizeError(expected=1, actual=len(results))
            return results[0] if results else None


class RepositoryQuery:
    """Binds call arguments of one query method and executes it."""

    def __init__(
        self,
        method: QueryMethod,
        operations: DocumentOperations,
        container_name: Optional[str] = None,
    ):
        self.method = method
        self.operations = operations
        self.container_name = container_name
        self.execution = select_execution(method)

    def create_query(
        self,
        arguments: Sequence[Any],
    ) -> DocumentQuery:
        """Build the query from criteria arguments plus trailing Sort / Pageable."""
        criteria_args = []
        sort = self.method.derived.sort
        pageable: Optional[Pageable] = None

        for argument in arguments:
            if isinstance(argument, Pageable):
                pageable = argument
            elif isinstance(argument, Sort):
                sort = sort.and_(argument)
            else:
                criteria_args.append(argument)

        if pageable is not None and not self.method.is_page_query:
            raise InvalidQueryMethodError(
                f"{self.method.name} received a Pageable but does not return a Page"
            )

        return DocumentQuery(
            criteria=self.method.derived.create_criteria(criteria_args),
            sort=sort,
            pageable=pageable,
            limit=self.method.derived.limit,
        )

    async def execute(
        self,
        arguments: Sequence[Any],
    ) -> Any:
        query = self.create_query(arguments)
        if self.method.is_count_query:
            return await self.operations.count(query, self.method.entity_type, self.container_name)

        logger.debug(f"Executing {self.method.name} as {self.execution.name}")
        return await execute(
            self.execution,
            self.operations,
            query,
            self.method,
            self.container_name,
        )

    def stream(
        self,
        arguments: Sequence[Any],
    ) -> AsyncIterator[Any]:
        """Stream the matches of a multi-entity query method."""
        if self.execution != ExecutionKind.MULTI_ENTITY or self.method.is_count_query:
            raise InvalidQueryMethodError(
                f"{self.method.name} cannot be streamed: it is a {self.execution.name} query"
            )
        query = self.create_query(arguments)
        return self.operations.stream(query, self.method.entity_type, self.container_name)


def query_method(
    func: Callable[..., Any],
) -> Callable[..., Any]:
    """
    Mark a repository method stub as a derived query.

    ``async def`` stubs are awaited and dispatched on their return annotation
    (``list`` -> all matches, ``Page`` -> one page, ``bool`` on ``exists_by``
    -> existence, anything else -> a single entity or None). Plain ``def``
    stubs returning ``AsyncIterator`` stream their matches.

    Example:
        class PersonRepository(DocumentRepository[Person]):
            entity_type = Person

            @query_method
            async def find_by_last_name(self, last_name: str) -> list[Person]: ...
    """
    # Fail at class definition time on unparseable names
    parse_method_name(func.__name__)
    signature = inspect.signature(func)

    def _arguments(self, args, kwargs):
        bound = signature.bind(self, *args, **kwargs)
        return list(bound.arguments.values())[1:]

    if inspect.iscoroutinefunction(func):
        @functools.wraps(func)
        async def wrapper(self, *args, **kwargs):
            repository_query = self._repository_query(func)
            return await repository_query.execute(_arguments(self, args, kwargs))
    else:
        @functools.wraps(func)
        def wrapper(self, *args, **kwargs):
            repository_query = self._repository_query(func)
            return repository_query.stream(_arguments(self, args, kwargs))

    wrapper.__query_method__ = True
    return wrapper
