"""
MongoDB / DocumentDB implementation of the storage-operations facade.

Works with both MongoDB Community Edition and AWS DocumentDB. The client.py
module handles authentication differences.

Collections:
- one collection per entity type (_id = entity id)
- the partition key attribute, when declared, gets a secondary index
"""

import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Type, TypeVar

from motor.motor_asyncio import (
    AsyncIOMotorCollection,
    AsyncIOMotorCursor,
    AsyncIOMotorDatabase,
)
from pydantic import BaseModel
from pydantic_core import to_jsonable_python

from ..core.config import settings
from ..core.operations import DocumentOperations
from ..mapping.converter import MappingConverter
from ..mapping.entity import EntityMetadata, MappingContext, mapping_context
from ..query.document_query import DocumentQuery, Page, Pageable
from ..query.translator import MongoQueryTranslator
from .client import close_documentdb_client, get_collection_name, get_documentdb_client


logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


class MongoTemplate(DocumentOperations):
    """MongoDB implementation of DocumentOperations using Motor."""

    def __init__(
        self,
        database: Optional[AsyncIOMotorDatabase] = None,
        mapping: MappingContext = mapping_context,
    ):
        self._database = database
        self._mapping = mapping
        self._translator = MongoQueryTranslator()
        self._converter = MappingConverter(id_key=MongoQueryTranslator.id_key)

    async def _get_database(self) -> AsyncIOMotorDatabase:
        """Get MongoDB database."""
        if self._database is None:
            self._database = await get_documentdb_client()
        return self._database

    async def _get_collection(
        self,
        metadata: EntityMetadata,
        container_name: Optional[str] = None,
    ) -> AsyncIOMotorCollection:
        """Get MongoDB collection for an entity."""
        db = await self._get_database()
        return db[container_name or get_collection_name(metadata.container_name)]

    def _metadata(self, entity_type: Type[BaseModel]) -> EntityMetadata:
        return self._mapping.get_metadata(entity_type)

    def _partition_filter(
        self,
        metadata: EntityMetadata,
        partition_key: Any,
    ) -> Dict[str, Any]:
        if partition_key is None or metadata.partition_key_field is None:
            return {}
        field = metadata.storage_name(metadata.partition_key_field, self._translator.id_key)
        return {field: to_jsonable_python(partition_key)}

    def _id_filter(
        self,
        metadata: EntityMetadata,
        id: Any,
        partition_key: Any,
    ) -> Dict[str, Any]:
        # Stored ids are JSON-encoded by the converter
        return {"_id": to_jsonable_python(id), **self._partition_filter(metadata, partition_key)}

    async def _cursor(
        self,
        query: DocumentQuery,
        metadata: EntityMetadata,
        container_name: Optional[str] = None,
    ) -> AsyncIOMotorCursor:
        spec = self._translator.translate(query, metadata)
        collection = await self._get_collection(metadata, container_name)

        cursor = collection.find(spec.filter)
        if spec.sort:
            cursor = cursor.sort(spec.sort)
        if query.limit is not None and query.pageable is None:
            cursor = cursor.limit(query.limit)
        return cursor

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

    async def create_collection_if_not_exists(
        self,
        metadata: EntityMetadata,
        throughput: Optional[int] = None,
    ) -> str:
        """Create the entity's collection and its partition key index."""
        db = await self._get_database()
        name = get_collection_name(metadata.container_name)

        existing = await db.list_collection_names()
        if name not in existing:
            await db.create_collection(name)
            logger.info(f"Created collection '{name}'")

        if metadata.partition_key_field is not None:
            field = metadata.storage_names[metadata.partition_key_field]
            await db[name].create_index(field)
            logger.info(f"Ensured index on '{field}' for collection '{name}'")

        if throughput:
            logger.debug(f"Ignoring throughput {throughput} for MongoDB collection '{name}'")
        return name

    async def delete_collection(
        self,
        container_name: str,
    ) -> None:
        """Drop a collection."""
        db = await self._get_database()
        await db.drop_collection(container_name)
        logger.info(f"Dropped collection '{container_name}'")

    async def insert(
        self,
        entity: T,
        container_name: Optional[str] = None,
        partition_key: Any = None,
    ) -> T:
        """Insert a new document; a duplicate _id raises DuplicateKeyError."""
        metadata = self._metadata(type(entity))
        self._check_partition_key(metadata, entity, partition_key)
        collection = await self._get_collection(metadata, container_name)
        doc = self._converter.to_document(entity, metadata)

        try:
            await collection.insert_one(doc)
        except Exception as e:
            logger.error(f"Failed to insert document {doc['_id']}: {e}", exc_info=True)
            raise

        logger.debug(f"Inserted document {doc['_id']} into {collection.name}")
        return self._converter.to_entity(doc, type(entity), metadata)

    async def upsert(
        self,
        entity: T,
        container_name: Optional[str] = None,
        partition_key: Any = None,
    ) -> T:
        """Insert or replace a document by _id."""
        metadata = self._metadata(type(entity))
        self._check_partition_key(metadata, entity, partition_key)
        collection = await self._get_collection(metadata, container_name)
        doc = self._converter.to_document(entity, metadata)

        await collection.replace_one({"_id": doc["_id"]}, doc, upsert=True)
        logger.debug(f"Upserted document {doc['_id']} into {collection.name}")
        return self._converter.to_entity(doc, type(entity), metadata)

    async def find_by_id(
        self,
        id: Any,
        entity_type: Type[T],
        container_name: Optional[str] = None,
        partition_key: Any = None,
    ) -> Optional[T]:
        """Get a document by _id; None when it does not exist."""
        metadata = self._metadata(entity_type)
        collection = await self._get_collection(metadata, container_name)

        doc = await collection.find_one(self._id_filter(metadata, id, partition_key))
        if not doc:
            logger.debug(f"Document {id} not found in {collection.name}")
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
        collection = await self._get_collection(metadata, container_name)

        entities = []
        async for doc in collection.find(self._partition_filter(metadata, partition_key)):
            entities.append(self._converter.to_entity(doc, entity_type, metadata))
        return entities

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
        """Iterate documents matching a query."""
        metadata = self._metadata(entity_type)
        cursor = await self._cursor(query, metadata, container_name)
        async for doc in cursor:
            yield self._converter.to_entity(doc, entity_type, metadata)

    async def paginate(
        self,
        query: DocumentQuery,
        entity_type: Type[T],
        container_name: Optional[str] = None,
    ) -> Page[T]:
        """
        Get one page of results.

        The continuation token is the offset of the next page; it is None
        once the last page has been returned.
        """
        metadata = self._metadata(entity_type)
        pageable = query.pageable or Pageable(settings.query_max_item_count)
        spec = self._translator.translate(query, metadata)
        collection = await self._get_collection(metadata, container_name)

        offset = int(pageable.continuation_token or 0)
        cursor = collection.find(spec.filter)
        if spec.sort:
            cursor = cursor.sort(spec.sort)
        # One extra document tells whether a next page exists
        cursor = cursor.skip(offset).limit(pageable.page_size + 1)

        docs = [doc async for doc in cursor]
        token = None
        if len(docs) > pageable.page_size:
            docs = docs[:pageable.page_size]
            token = str(offset + pageable.page_size)

        content = [self._converter.to_entity(doc, entity_type, metadata) for doc in docs]
        return Page(content=content, pageable=pageable, continuation_token=token)

    async def exists(
        self,
        query: DocumentQuery,
        entity_type: Type[T],
        container_name: Optional[str] = None,
    ) -> bool:
        """Check whether any document matches a query."""
        metadata = self._metadata(entity_type)
        spec = self._translator.translate(query, metadata)
        collection = await self._get_collection(metadata, container_name)
        return await collection.find_one(spec.filter) is not None

    async def count(
        self,
        query: DocumentQuery,
        entity_type: Type[T],
        container_name: Optional[str] = None,
    ) -> int:
        """Count documents matching a query."""
        metadata = self._metadata(entity_type)
        spec = self._translator.translate(query, metadata)
        collection = await self._get_collection(metadata, container_name)
        return await collection.count_documents(spec.filter)

    async def delete(
        self,
        query: DocumentQuery,
        entity_type: Type[T],
        container_name: Optional[str] = None,
    ) -> List[T]:
        """Delete documents matching a query and return them."""
        metadata = self._metadata(entity_type)
        collection = await self._get_collection(metadata, container_name)
        cursor = await self._cursor(query, metadata, container_name)
        docs = [doc async for doc in cursor]
        if not docs:
            return []

        result = await collection.delete_many({"_id": {"$in": [doc["_id"] for doc in docs]}})
        logger.info(f"Deleted {result.deleted_count} documents from {collection.name}")
        return [self._converter.to_entity(doc, entity_type, metadata) for doc in docs]

    async def delete_by_id(
        self,
        id: Any,
        entity_type: Type[T],
        container_name: Optional[str] = None,
        partition_key: Any = None,
    ) -> None:
        """Delete one document by _id."""
        metadata = self._metadata(entity_type)
        collection = await self._get_collection(metadata, container_name)

        result = await collection.delete_one(self._id_filter(metadata, id, partition_key))
        if result.deleted_count == 0:
            logger.warning(f"Document not found for deletion: {id}")
            return
        logger.debug(f"Deleted document {id} from {collection.name}")

    async def delete_all(
        self,
        entity_type: Type[T],
        container_name: Optional[str] = None,
    ) -> None:
        """Delete every document of an entity's collection."""
        metadata = self._metadata(entity_type)
        collection = await self._get_collection(metadata, container_name)
        result = await collection.delete_many({})
        logger.info(f"Cleared {result.deleted_count} documents from {collection.name}")

    async def close(self) -> None:
        """Close the shared MongoDB client."""
        self._database = None
        await close_documentdb_client()
