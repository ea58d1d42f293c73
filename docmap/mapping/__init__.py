"""Entity mapping table and entity/document conversion."""

from .converter import COSMOS_SYSTEM_FIELDS, MappingConverter
from .entity import (
    EntityMetadata,
    MappingContext,
    document,
    get_entity_metadata,
    mapping_context,
)

__all__ = [
    "COSMOS_SYSTEM_FIELDS",
    "EntityMetadata",
    "MappingContext",
    "MappingConverter",
    "document",
    "get_entity_metadata",
    "mapping_context",
]
