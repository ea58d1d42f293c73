"""
Streaming repository variant.

Multi-item operations return async iterators that fetch lazily when
iterated; single-item operations return awaitables. Documents arrive in the
same order the blocking ``DocumentRepository`` returns them.
"""

import logging
from typing import Any, AsyncIterator, Iterable, Optional, TypeVar

from pydantic import BaseModel

from ..query.criteria import Criteria, where
from ..query.document_query import DocumentQuery, Sort
from .base import RepositorySupport


logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


class ReactiveDocumentRepository(RepositorySupport[T]):
    """Streaming CRUD and criteria queries for one entity type."""

    async def save(
        self,
        entity: T,
    ) -> T:
        return await self.operations.upsert(entity, self.container_name)

    async def save_all(
        self,
        entities: Iterable[T],
    ) -> AsyncIterator[T]:
        for entity in entities:
            yield await self.save(entity)

    async def find_by_id(
        self,
        id: Any,
        partition_key: Any = None,
    ) -> Optional[T]:
        return await self.operations.find_by_id(
            id, self.entity_type, self.container_name, partition_key
        )

    def find_all(
        self,
        sort: Optional[Sort] = None,
        partition_key: Any = None,
    ) -> AsyncIterator[T]:
        criteria = Criteria.empty()
        if partition_key is not None and self.metadata.partition_key_field:
            criteria = where(self.metadata.partition_key_field).is_(partition_key)
        query = DocumentQuery(criteria, sort=sort or Sort.unsorted())
        return self.operations.stream(query, self.entity_type, self.container_name)

    def find(
        self,
        criteria: Criteria,
        sort: Optional[Sort] = None,
    ) -> AsyncIterator[T]:
        query = DocumentQuery(criteria, sort=sort or Sort.unsorted())
        return self.operations.stream(query, self.entity_type, self.container_name)

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

    async def delete_all(self) -> None:
        await self.operations.delete_all(self.entity_type, self.container_name)
