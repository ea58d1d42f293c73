"""
Repository base classes.

A repository is bound to one entity type and one storage-operations facade.
Subclasses set ``entity_type`` and may declare derived query methods with
``@query_method``.
"""

import logging
from typing import Any, Callable, Dict, Generic, Iterable, List, Optional, Type, TypeVar

from pydantic import BaseModel

from ..core.operations import DocumentOperations
from ..mapping.entity import EntityMetadata, get_entity_metadata
from ..query.criteria import Criteria, where
from ..query.document_query import DocumentQuery, Page, Pageable, Sort
from .query import QueryMethod, RepositoryQuery


logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


class RepositorySupport(Generic[T]):
    """Shared plumbing of blocking and streaming repositories."""

    entity_type: Type[T]

    def __init__(
        self,
        operations: DocumentOperations,
        container_name: Optional[str] = None,
    ):
        if getattr(self, "entity_type", None) is None:
            raise TypeError(f"{type(self).__name__} must set entity_type")
        self.operations = operations
        self.container_name = container_name
        self.metadata: EntityMetadata = get_entity_metadata(self.entity_type)
        self._queries: Dict[str, RepositoryQuery] = {}

    def _repository_query(
        self,
        func: Callable[..., Any],
    ) -> RepositoryQuery:
        """Get the cached RepositoryQuery of a derived query method."""
        repository_query = self._queries.get(func.__name__)
        if repository_query is None:
            method = QueryMethod.from_function(func, self.entity_type, self.metadata)
            repository_query = RepositoryQuery(method, self.operations, self.container_name)
            self._queries[func.__name__] = repository_query
        return repository_query

    async def initialize(
        self,
        throughput: Optional[int] = None,
    ) -> None:
        """Create the entity's container if it does not exist."""
        await self.operations.create_collection_if_not_exists(self.metadata, throughput)


class DocumentRepository(RepositorySupport[T]):
    """CRUD, paging and criteria queries for one entity type."""

    async def save(
        self,
        entity: T,
    ) -> T:
        """Insert or replace an entity."""
        return await self.operations.upsert(entity, self.container_name)

    async def save_all(
        self,
        entities: Iterable[T],
    ) -> List[T]:
        return [await self.save(entity) for entity in entities]

    async def insert(
        self,
        entity: T,
    ) -> T:
        """Insert a new entity; a duplicate id raises the client's conflict error."""
        return await self.operations.insert(entity, self.container_name)

    async def find_by_id(
        self,
        id: Any,
        partition_key: Any = None,
    ) -> Optional[T]:
        return await self.operations.find_by_id(
            id, self.entity_type, self.container_name, partition_key
        )

    async def find_all(
        self,
        sort: Optional[Sort] = None,
        partition_key: Any = None,
    ) -> List[T]:
        """List every entity, optionally sorted or within one partition."""
        if sort is None:
            return await self.operations.find_all(
                self.entity_type, self.container_name, partition_key
            )

        criteria = Criteria.empty()
        if partition_key is not None and self.metadata.partition_key_field:
            criteria = where(self.metadata.partition_key_field).is_(partition_key)
        return await self.operations.find(
            DocumentQuery(criteria, sort=sort), self.entity_type, self.container_name
        )

    async def find_all_by_id(
        self,
        ids: Iterable[Any],
    ) -> List[T]:
        query = DocumentQuery(where(self.metadata.id_field).in_(ids))
        return await self.operations.find(query, self.entity_type, self.container_name)

    async def find_page(
        self,
        pageable: Pageable,
        criteria: Optional[Criteria] = None,
    ) -> Page[T]:
        """Get one page of entities; pass ``page.next_pageable()`` for the next one."""
        query = DocumentQuery(criteria or Criteria.empty(), pageable=pageable)
        return await self.operations.paginate(query, self.entity_type, self.container_name)

    async def find(
        self,
        criteria: Criteria,
        sort: Optional[Sort] = None,
    ) -> List[T]:
        query = DocumentQuery(criteria, sort=sort or Sort.unsorted())
        return await self.operations.find(query, self.entity_type, self.container_name)

    async def exists_by_id(
        self,
        id: Any,
    ) -> bool:
        return await self.find_by_id(id) is not None

    async def count(
        self,
        criteria: Optional[Criteria] = None,
    ) -> int:
        query = DocumentQuery(criteria or Criteria.empty())
        return await self.operations.count(query, self.entity_type, self.container_name)

    async def delete_by_id(
        self,
        id: Any,
        partition_key: Any = None,
    ) -> None:
        await self.operations.delete_by_id(
            id, self.entity_type, self.container_name, partition_key
        )

    async def delete(
        self,
        entity: T,
    ) -> None:
        await self.delete_by_id(
            self.metadata.id_value(entity),
            self.metadata.partition_value(entity),
        )

    async def delete_all(
        self,
        entities: Optional[Iterable[T]] = None,
    ) -> None:
        """Delete the given entities, or every entity when none are given."""
        if entities is None:
            await self.operations.delete_all(self.entity_type, self.container_name)
            return
        for entity in entities:
            await self.delete(entity)
