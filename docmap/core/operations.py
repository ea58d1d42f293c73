"""
Storage-operations facade.

This abstract base class defines the contract that ALL backend
implementations must follow. Errors raised by the client SDK propagate
unchanged; implementations add no retry or recovery logic.
"""

from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, List, Optional, Type, TypeVar

from pydantic import BaseModel

from ..mapping.entity import EntityMetadata
from ..query.document_query import DocumentQuery, Page


T = TypeVar("T", bound=BaseModel)


class DocumentOperations(ABC):
    """Abstract base class for document database operations."""

    @abstractmethod
    async def create_collection_if_not_exists(
        self,
        metadata: EntityMetadata,
        throughput: Optional[int] = None,
    ) -> str:
        """Create the entity's container, partitioned on its partition key path."""
        pass

    @abstractmethod
    async def delete_collection(
        self,
        container_name: str,
    ) -> None:
        """Delete a container and every document in it."""
        pass

    @abstractmethod
    async def insert(
        self,
        entity: T,
        container_name: Optional[str] = None,
        partition_key: Any = None,
    ) -> T:
        """Insert a new document. A duplicate id raises the client's conflict error."""
        pass

    @abstractmethod
    async def upsert(
        self,
        entity: T,
        container_name: Optional[str] = None,
        partition_key: Any = None,
    ) -> T:
        """Insert or replace a document by id."""
        pass

    @abstractmethod
    async def find_by_id(
        self,
        id: Any,
        entity_type: Type[T],
        container_name: Optional[str] = None,
        partition_key: Any = None,
    ) -> Optional[T]:
        """Get a document by id, or None when it does not exist."""
        pass

    @abstractmethod
    async def find_all(
        self,
        entity_type: Type[T],
        container_name: Optional[str] = None,
        partition_key: Any = None,
    ) -> List[T]:
        """List every document, optionally within one partition."""
        pass

    @abstractmethod
    async def find(
        self,
        query: DocumentQuery,
        entity_type: Type[T],
        container_name: Optional[str] = None,
    ) -> List[T]:
        """List documents matching a query."""
        pass

    @abstractmethod
    def stream(
        self,
        query: DocumentQuery,
        entity_type: Type[T],
        container_name: Optional[str] = None,
    ) -> AsyncIterator[T]:
        """Iterate documents matching a query, in the order ``find`` returns them."""
        pass

    @abstractmethod
    async def paginate(
        self,
        query: DocumentQuery,
        entity_type: Type[T],
        container_name: Optional[str] = None,
    ) -> Page[T]:
        """Get one page of a query and the continuation token of the next."""
        pass

    @abstractmethod
    async def exists(
        self,
        query: DocumentQuery,
        entity_type: Type[T],
        container_name: Optional[str] = None,
    ) -> bool:
        """Check whether any document matches a query."""
        pass

    @abstractmethod
    async def count(
        self,
        query: DocumentQuery,
        entity_type: Type[T],
        container_name: Optional[str] = None,
    ) -> int:
        """Count documents matching a query."""
        pass

    @abstractmethod
    async def delete(
        self,
        query: DocumentQuery,
        entity_type: Type[T],
        container_name: Optional[str] = None,
    ) -> List[T]:
        """Delete documents matching a query and return them."""
        pass

    @abstractmethod
    async def delete_by_id(
        self,
        id: Any,
        entity_type: Type[T],
        container_name: Optional[str] = None,
        partition_key: Any = None,
    ) -> None:
        """Delete one document by id."""
        pass

    @abstractmethod
    async def delete_all(
        self,
        entity_type: Type[T],
        container_name: Optional[str] = None,
    ) -> None:
        """Delete every document of an entity's container."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release the underlying client."""
        pass
