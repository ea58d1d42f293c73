"""
Repository factory - creates repositories over the configured storage backend.
"""

import logging
from typing import Optional, Type, TypeVar

from ..core.config import settings
from ..core.operations import DocumentOperations
from .base import DocumentRepository
from .reactive import ReactiveDocumentRepository


logger = logging.getLogger(__name__)

R = TypeVar("R", bound=DocumentRepository)
RR = TypeVar("RR", bound=ReactiveDocumentRepository)

# Singleton instance
_operations: Optional[DocumentOperations] = None


def get_operations() -> DocumentOperations:
    """Get storage-operations singleton."""
    global _operations

    if _operations is not None:
        return _operations

    backend = settings.storage_backend
    logger.info(f"Creating storage operations with backend: {backend}")

    if backend == "mongodb":
        from ..mongodb.template import MongoTemplate
        _operations = MongoTemplate()
    else:
        from ..cosmos.template import CosmosTemplate
        _operations = CosmosTemplate()

    return _operations


def create_repository(
    repository_class: Type[R],
    operations: Optional[DocumentOperations] = None,
    container_name: Optional[str] = None,
) -> R:
    """Create a repository bound to the given or configured operations."""
    return repository_class(operations or get_operations(), container_name)


def create_reactive_repository(
    repository_class: Type[RR],
    operations: Optional[DocumentOperations] = None,
    container_name: Optional[str] = None,
) -> RR:
    """Create a streaming repository bound to the given or configured operations."""
    return repository_class(operations or get_operations(), container_name)


async def close_operations() -> None:
    """Close the storage-operations singleton and its client."""
    global _operations
    if _operations is not None:
        await _operations.close()
        _operations = None


def reset_repositories() -> None:
    """Reset the storage-operations singleton. USE ONLY IN TESTS."""
    global _operations
    _operations = None
