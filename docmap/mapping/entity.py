"""
Entity metadata and the mapping table.

Domain classes are pydantic models. Their storage layout (container name, id
attribute, partition key attribute, stored field names) is declared once with
the ``document`` decorator, or derived from defaults on first lookup, and
kept in a ``MappingContext``. Nothing is resolved by reflection per call.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Type, TypeVar

from pydantic import BaseModel

from ..core.exceptions import MappingError


logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

ID_PROPERTY_NAME: str = "id"
DOCUMENT_ID_MARKER: str = "document_id"
DEFAULT_PARTITION_KEY_PATH: str = "/id"

_SAFE_SEGMENT = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _is_id_marked(
    field_info: Any,
) -> bool:
    """Check whether a pydantic field is explicitly marked as the document id."""
    extra = field_info.json_schema_extra
    if isinstance(extra, dict):
        return bool(extra.get(DOCUMENT_ID_MARKER))
    return False


def validate_storage_name(
    name: str,
) -> str:
    """
    Validate a stored field path before it is written into query text.

    Args:
        name: Stored field name, optionally dotted for nested access

    Returns:
        The validated name

    Raises:
        MappingError: If any path segment is empty or contains unsafe characters
    """
    segments = name.split(".")
    if any(not _SAFE_SEGMENT.match(segment) for segment in segments):
        raise MappingError(f"Unsafe storage field name '{name}'")
    return name


@dataclass(frozen=True)
class EntityMetadata:
    """Static storage layout of one entity type."""

    entity_type: Type[BaseModel]
    container_name: str
    id_field: str
    partition_key_field: Optional[str] = None
    storage_names: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_model(
        cls,
        entity_type: Type[BaseModel],
        container: Optional[str] = None,
        partition_key: Optional[str] = None,
        id_field: Optional[str] = None,
    ) -> "EntityMetadata":
        """
        Build metadata for a pydantic model class.

        The id attribute is the one passed explicitly, else the one marked with
        ``json_schema_extra={"document_id": True}``, else the attribute named ``id``.

        Raises:
            MappingError: If no id attribute exists or the partition key is unknown
        """
        fields = entity_type.model_fields

        if id_field is None:
            marked = [name for name, info in fields.items() if _is_id_marked(info)]
            if len(marked) > 1:
                raise MappingError(
                    f"{entity_type.__name__} marks more than one document id: {marked}"
                )
            if marked:
                id_field = marked[0]
            elif ID_PROPERTY_NAME in fields:
                id_field = ID_PROPERTY_NAME

        if id_field is None or id_field not in fields:
            raise MappingError(f"{entity_type.__name__} has no id attribute")

        if partition_key is not None and partition_key not in fields:
            raise MappingError(
                f"Partition key '{partition_key}' is not an attribute of {entity_type.__name__}"
            )

        storage_names = {}
        for name, info in fields.items():
            storage_names[name] = validate_storage_name(info.alias or name)

        return cls(
            entity_type=entity_type,
            container_name=container or entity_type.__name__,
            id_field=id_field,
            partition_key_field=partition_key,
            storage_names=storage_names,
        )

    def storage_name(
        self,
        attribute: str,
        id_key: str,
    ) -> str:
        """
        Resolve a logical attribute path to its stored field path.

        The id attribute always resolves to the backend's reserved id key.
        For dotted paths only the first segment is mapped.
        """
        head, dot, rest = attribute.partition(".")
        if head == self.id_field:
            mapped = id_key
        else:
            mapped = self.storage_names.get(head, head)
        return validate_storage_name(f"{mapped}{dot}{rest}")

    def partition_key_path(self) -> str:
        """Partition key path used when the container is created."""
        if self.partition_key_field is None:
            return DEFAULT_PARTITION_KEY_PATH
        return "/" + self.storage_names[self.partition_key_field]

    def partition_value(
        self,
        entity: BaseModel,
    ) -> Any:
        """Partition key value of an entity, or None without a partition key."""
        if self.partition_key_field is None:
            return None
        return getattr(entity, self.partition_key_field)

    def id_value(
        self,
        entity: BaseModel,
    ) -> Any:
        """Id attribute value of an entity."""
        return getattr(entity, self.id_field)


class MappingContext:
    """Holds the metadata of every known entity type."""

    def __init__(self):
        self._entities: Dict[Type[BaseModel], EntityMetadata] = {}

    def register(
        self,
        metadata: EntityMetadata,
    ) -> EntityMetadata:
        """Register metadata, replacing any previous entry for the type."""
        self._entities[metadata.entity_type] = metadata
        logger.debug(
            f"Registered entity {metadata.entity_type.__name__} -> "
            f"container '{metadata.container_name}'"
        )
        return metadata

    def get_metadata(
        self,
        entity_type: Type[BaseModel],
    ) -> EntityMetadata:
        """Get metadata for an entity type, building defaults on first lookup."""
        metadata = self._entities.get(entity_type)
        if metadata is None:
            metadata = self.register(EntityMetadata.from_model(entity_type))
        return metadata

    def clear(self) -> None:
        """Forget every registered entity. Intended for tests."""
        self._entities.clear()


mapping_context = MappingContext()


def document(
    container: Optional[str] = None,
    partition_key: Optional[str] = None,
    id_field: Optional[str] = None,
) -> Callable[[Type[T]], Type[T]]:
    """
    Class decorator declaring the storage layout of an entity.

    Example:
        @document(container="Person", partition_key="last_name")
        class Person(BaseModel):
            id: Optional[str] = None
            last_name: str = Field(alias="lastName")
    """

    def decorator(entity_type: Type[T]) -> Type[T]:
        mapping_context.register(
            EntityMetadata.from_model(
                entity_type,
                container=container,
                partition_key=partition_key,
                id_field=id_field,
            )
        )
        return entity_type

    return decorator


def get_entity_metadata(
    entity_type: Type[BaseModel],
) -> EntityMetadata:
    """Get metadata for an entity type from the global mapping table."""
    return mapping_context.get_metadata(entity_type)
