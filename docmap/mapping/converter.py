"""Conversion between pydantic entities and stored documents."""

import logging
import uuid
from typing import Any, Dict, FrozenSet, Type, TypeVar

from pydantic import BaseModel

from .entity import EntityMetadata


logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

COSMOS_SYSTEM_FIELDS: FrozenSet[str] = frozenset(
    {"_rid", "_self", "_etag", "_attachments", "_ts"}
)


class MappingConverter:
    """
    Converts entities to documents and back for one backend.

    Args:
        id_key: The backend's reserved identifier key ("id" or "_id")
        system_fields: Fields the database adds to every stored document
        string_ids: Store identifiers as strings
    """

    def __init__(
        self,
        id_key: str,
        system_fields: FrozenSet[str] = frozenset(),
        string_ids: bool = False,
    ):
        self.id_key = id_key
        self.system_fields = system_fields
        self.string_ids = string_ids

    def to_document(
        self,
        entity: BaseModel,
        metadata: EntityMetadata,
    ) -> Dict[str, Any]:
        """Dump an entity by alias, storing its id under the reserved key."""
        doc = entity.model_dump(mode="json", by_alias=True)
        id_storage_name = metadata.storage_names[metadata.id_field]
        id_value = doc.pop(id_storage_name, None)

        if id_value is None:
            id_value = str(uuid.uuid4())
            logger.debug(
                f"Generated id {id_value} for new {metadata.entity_type.__name__}"
            )
        elif self.string_ids:
            id_value = str(id_value)

        doc[self.id_key] = id_value
        return doc

    def to_entity(
        self,
        doc: Dict[str, Any],
        entity_type: Type[T],
        metadata: EntityMetadata,
    ) -> T:
        """Rebuild an entity from a stored document, dropping system fields."""
        data = {
            key: value for key, value in doc.items()
            if key not in self.system_fields
        }
        id_storage_name = metadata.storage_names[metadata.id_field]
        if self.id_key != id_storage_name and self.id_key in data:
            data[id_storage_name] = data.pop(self.id_key)
        return entity_type.model_validate(data)
