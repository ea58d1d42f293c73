"""Cosmos DB backend using the azure-cosmos async client."""

from .client import (
    close_cosmos_client,
    get_container_name,
    get_cosmos_database,
)
from .template import CosmosTemplate

__all__ = [
    "CosmosTemplate",
    "close_cosmos_client",
    "get_container_name",
    "get_cosmos_database",
]
