"""MongoDB / DocumentDB backend using Motor (async MongoDB driver)."""

from .client import (
    close_documentdb_client,
    get_collection_name,
    get_documentdb_client,
)
from .template import MongoTemplate

__all__ = [
    "MongoTemplate",
    "close_documentdb_client",
    "get_collection_name",
    "get_documentdb_client",
]
