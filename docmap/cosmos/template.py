"""Cosmos DB implementation of the storage-operations facade."""

import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Type, TypeVar

from azure.cosmos import PartitionKey
from azure.cosmos.aio import ContainerProxy, DatabaseProxy
from azure.cosmos.exceptions import (
    CosmosHttpResponseError,
    CosmosResourceNotFoundError,
)
from pydantic import BaseModel
from pydantic_core import to_jsonable_python

from ..core.config import settings
from ..core.operations import DocumentOperations
from ..mapping.converter import COSMOS_SYSTEM_FIELDS, MappingConverter
from ..mapping.entity import EntityMetadata, MappingContext, mapping_context
from ..query.criteria import where
from ..query.document_query import DocumentQuery, Page, Pageable
from ..query.translator import CosmosQueryTranslator, Projection, SqlQuerySpec
from .client import close_cosmos_client, get_container_name, get_cosmos_database


logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


class CosmosTemplate(DocumentOperations):
    """
    Cosmos DB (SQL API) implementation of DocumentOperations.

    One container per entity type, partitioned on the entity's partition key
    path (``/id`` when it declares none). Documents are stored with the
    entity id under the reserved ``id`` key.
    """

    def __init__(
        self,
        database: Optional[DatabaseProxy] = None,
        mapping: MappingContext = mapping_context,
    ):
        self._database = database
        self._mapping = mapping
        self._containers: Dict[str, ContainerProxy] = {}
        self._translator = CosmosQueryTranslator()
        self._converter = MappingConverter(
            id_key=CosmosQueryTranslator.id_key,
            system_fields=COSMOS_SYSTEM_FIELDS,
            string_ids=True,
        )

    async def _get_database(self) -> DatabaseProxy:
        """Get Cosmos DB database."""
        if self._database is None:
            self._database = await get_cosmos_database()
        return self._database

    async def _get_container(
        self,
        metadata: EntityMetadata,
        container_name: Optional[str] = None,
    ) -> ContainerProxy:
        """Get the container client for an entity, cached by name."""
        name = container_name or get_container_name(metadata.container_name)
        if name not in self._containers:
            db = await self._get_database()
            self._containers[name] = db.get_container_client(name)
        return self._containers[name]

    def _metadata(self, entity_type: Type[BaseModel]) -> EntityMetadata:
        return self._mapping.get_metadata(entity_type)

    def _partition_of(
        self,
        metadata: EntityMetadata,
        entity: BaseModel,
    ) -> Any:
        """Partition key value a stored entity lives under."""
        if metadata.partition_key_field is None:
            return str(metadata.id_value(entity))
        return to_jsonable_python(metadata.partition_value(entity))

    def _check_partition_key(
        self,
        metadata: EntityMetadata,
        entity: BaseModel,
        partition_key: Any,
    ) -> None:
        if partition_key is None or metadata.partition_key_field is None:
            return
        actual = metadata.partition_value(entity)
        if actual != partition_key:
            raise ValueError(
                f"Partition key '{partition_key}' does not match "
                f"{metadata.partition_key_field}='{actual}'"
            )

    async def _query(
        self,
        container: ContainerProxy,
        spec: SqlQuerySpec,
        partition_key: Any = None,
    ) -> List[Any]:
        kwargs: Dict[str, Any] = {}
        if partition_key is not None:
            kwargs["partition_key"] = to_jsonable_python(partition_key)
        items = container.query_items(
            query=spec.query_text,
            parameters=spec.parameters,
            **kwargs,
        )
        return [item async for item in items]

    def _scope(
        self,
        query: DocumentQuery,
        metadata: EntityMetadata,
    ) -> Any:
        found, value = query.partition_key_value(metadata.partition_key_field)
        # Scoped to the stored JSON form of the value
        return to_jsonable_python(value) if found else None

    async def create_collection_if_not_exists(
        self,
        metadata: EntityMetadata,
        throughput: Optional[int] = None,
    ) -> str:
        """Create the entity's container if it does not exist."""
        db = await self._get_database()
        name = get_container_name(metadata.container_name)
        path = metadata.partition_key_path()
        kwargs: Dict[str, Any] = {}
        offer = throughput or settings.cosmos_default_throughput
        if offer:
            kwargs["offer_throughput"] = offer

        container = await db.create_container_if_not_exists(
            id=name,
            partition_key=PartitionKey(path=path),
            **kwargs,
        )
        self._containers[name] = container
        logger.info(f"Initialized container '{name}' with partition key '{path}'")
        return name

    async def delete_collection(
        self,
        container_name: str,
    ) -> None:
        """Delete a container."""
        db = await self._get_database()
        await db.delete_container(container_name)
        self._containers.pop(container_name, None)
        logger.info(f"Deleted container '{container_name}'")

    async def insert(
        self,
        entity: T,
        container_name: Optional[str] = None,
        partition_key: Any = None,
    ) -> T:
        """Insert a new document."""
        metadata = self._metadata(type(entity))
        self._check_partition_key(metadata, entity, partition_key)
        container = await self._get_container(metadata, container_name)
        doc = self._converter.to_document(entity, metadata)

        try:
            created = await container.create_item(body=doc)
        except CosmosHttpResponseError as e:
            logger.error(f"Failed to insert document {doc['id']}: {e}", exc_info=True)
            raise

        logger.debug(f"Inserted document {doc['id']} into {container.id}")
        return self._converter.to_entity(created, type(entity), metadata)

    async def upsert(
        self,
        entity: T,
        container_name: Optional[str] = None,
        partition_key: Any = None,
    ) -> T:
        """Insert or replace a document."""
        metadata = self._metadata(type(entity))
        self._check_partition_key(metadata, entity, partition_key)
        container = await self._get_container(metadata, container_name)
        doc = self._converter.to_document(entity, metadata)

        saved = await container.upsert_item(body=doc)
        logger.debug(f"Upserted document {doc['id']} into {container.id}")
        return self._converter.to_entity(saved, type(entity), metadata)

    async def find_by_id(
        self,
        id: Any,
        entity_type: Type[T],
        container_name: Optional[str] = None,
        partition_key: Any = None,
    ) -> Optional[T]:
        """Get a document by id; None when it does not exist."""
        metadata = self._metadata(entity_type)
        container = await self._get_container(metadata, container_name)

        if partition_key is None and metadata.partition_key_field is not None:
            # Partition unknown: fall back to a cross-partition query on id
            results = await self.find(
                DocumentQuery(where(metadata.id_field).is_(str(id))),
                entity_type,
                container_name,
            )
            return results[0] if results else None

        partition_key = str(id) if partition_key is None else to_jsonable_python(partition_key)

        try:
            doc = await container.read_item(item=str(id), partition_key=partition_key)
        except CosmosResourceNotFoundError:
            logger.debug(f"Document {id} not found in {container.id}")
            return None

        return self._converter.to_entity(doc, entity_type, metadata)

    async def find_all(
        self,
        entity_type: Type[T],
        container_name: Optional[str] = None,
        partition_key: Any = None,
    ) -> List[T]:
        """List every document, optionally within one partition."""
        metadata = self._metadata(entity_type)
        container = await self._get_container(metadata, container_name)
        spec = self._translator.translate(DocumentQuery.all(), metadata)
        docs = await self._query(container, spec, partition_key)
        return [self._converter.to_entity(doc, entity_type, metadata) for doc in docs]

    async def find(
        self,
        query: DocumentQuery,
        entity_type: Type[T],
        container_name: Optional[str] = None,
    ) -> List[T]:
        """List documents matching a query."""
        return [entity async for entity in self.stream(query, entity_type, container_name)]

    async def stream(
        self,
        query: DocumentQuery,
        entity_type: Type[T],
        container_name: Optional[str] = None,
    ) -> AsyncIterator[T]:
        """Iterate documents matching a query as the client pages them in."""
        metadata = self._metadata(entity_type)
        spec = self._translator.translate(query, metadata)
        container = await self._get_container(metadata, container_name)

        kwargs: Dict[str, Any] = {}
        partition_key = self._scope(query, metadata)
        if partition_key is not None:
            kwargs["partition_key"] = partition_key

        items = container.query_items(
            query=spec.query_text,
            parameters=spec.parameters,
            **kwargs,
        )
        async for doc in items:
            yield self._converter.to_entity(doc, entity_type, metadata)

    async def paginate(
        self,
        query: DocumentQuery,
        entity_type: Type[T],
        container_name: Optional[str] = None,
    ) -> Page[T]:
        """Get one page of results and the continuation token of the next."""
        metadata = self._metadata(entity_type)
        pageable = query.pageable or Pageable(settings.query_max_item_count)
        spec = self._translator.translate(query, metadata)
        container = await self._get_container(metadata, container_name)

        kwargs: Dict[str, Any] = {"max_item_count": pageable.page_size}
        partition_key = self._scope(query, metadata)
        if partition_key is not None:
            kwargs["partition_key"] = partition_key

        pager = container.query_items(
            query=spec.query_text,
            parameters=spec.parameters,
            **kwargs,
        ).by_page(pageable.continuation_token)

        content: List[T] = []
        token = None
        async for page in pager:
            async for doc in page:
                content.append(self._converter.to_entity(doc, entity_type, metadata))
            # Cross-partition queries can return empty pages before the last one
            token = pager.continuation_token
            break

        logger.debug(f"Fetched page of {len(content)} from {container.id}")
        return Page(content=content, pageable=pageable, continuation_token=token)

    async def exists(
        self,
        query: DocumentQuery,
        entity_type: Type[T],
        container_name: Optional[str] = None,
    ) -> bool:
        """Check whether any document matches a query."""
        return await self.count(query, entity_type, container_name) > 0

    async def count(
        self,
        query: DocumentQuery,
        entity_type: Type[T],
        container_name: Optional[str] = None,
    ) -> int:
        """Count documents matching a query."""
        metadata = self._metadata(entity_type)
        spec = self._translator.translate(query, metadata, projection=Projection.COUNT)
        container = await self._get_container(metadata, container_name)
        results = await self._query(container, spec, self._scope(query, metadata))
        return int(results[0]) if results else 0

    async def delete(
        self,
        query: DocumentQuery,
        entity_type: Type[T],
        container_name: Optional[str] = None,
    ) -> List[T]:
        """Delete documents matching a query and return them."""
        metadata = self._metadata(entity_type)
        container = await self._get_container(metadata, container_name)
        matches = await self.find(query, entity_type, container_name)

        for entity in matches:
            await container.delete_item(
                item=str(metadata.id_value(entity)),
                partition_key=self._partition_of(metadata, entity),
            )

        logger.info(f"Deleted {len(matches)} documents from {container.id}")
        return matches

    async def delete_by_id(
        self,
        id: Any,
        entity_type: Type[T],
        container_name: Optional[str] = None,
        partition_key: Any = None,
    ) -> None:
        """
        Delete one document by id.

        When the entity is partitioned and no partition key is given, the
        stored document is read first to learn its partition key value.

        Raises:
            CosmosResourceNotFoundError: If no document has this id
        """
        metadata = self._metadata(entity_type)
        container = await self._get_container(metadata, container_name)

        if partition_key is None:
            if metadata.partition_key_field is None:
                partition_key = str(id)
            else:
                existing = await self.find_by_id(id, entity_type, container_name)
                if existing is None:
                    raise CosmosResourceNotFoundError(
                        status_code=404,
                        message=f"Document {id} not found in {container.id}",
                    )
                partition_key = metadata.partition_value(existing)

        await container.delete_item(
            item=str(id),
            partition_key=to_jsonable_python(partition_key),
        )
        logger.debug(f"Deleted document {id} from {container.id}")

    async def delete_all(
        self,
        entity_type: Type[T],
        container_name: Optional[str] = None,
    ) -> None:
        """Delete every document of an entity's container."""
        deleted = await self.delete(DocumentQuery.all(), entity_type, container_name)
        logger.info(f"Cleared {len(deleted)} {entity_type.__name__} documents")

    async def close(self) -> None:
        """Close the shared Cosmos client."""
        self._containers.clear()
        self._database = None
        await close_cosmos_client()
