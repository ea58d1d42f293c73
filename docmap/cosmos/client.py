"""Cosmos DB client singleton with key or Azure AD authentication."""

import logging
from typing import Any, Dict, Optional

from azure.cosmos.aio import CosmosClient, DatabaseProxy

from ..core.config import settings


logger = logging.getLogger(__name__)

_client: Optional[CosmosClient] = None
_database: Optional[DatabaseProxy] = None


async def get_cosmos_database() -> DatabaseProxy:
    """Get Cosmos DB database client singleton."""
    global _client, _database

    if _database is not None:
        return _database

    if settings.cosmos_key:
        credential: Any = settings.cosmos_key
        logger.info(
            f"Using key authentication for Cosmos DB "
            f"(endpoint: {settings.cosmos_endpoint})"
        )
    else:
        # Managed identity / Azure AD
        from azure.identity.aio import DefaultAzureCredential

        credential = DefaultAzureCredential()
        logger.info(
            f"Using Azure AD authentication for Cosmos DB "
            f"(endpoint: {settings.cosmos_endpoint})"
        )

    # Connection policy and consistency are passed through unchanged
    client_options: Dict[str, Any] = {}
    if settings.cosmos_consistency_level:
        client_options["consistency_level"] = settings.cosmos_consistency_level
    if settings.cosmos_preferred_locations:
        client_options["preferred_locations"] = settings.cosmos_preferred_locations

    _client = CosmosClient(settings.cosmos_endpoint, credential, **client_options)
    _database = await _client.create_database_if_not_exists(id=settings.cosmos_database)

    logger.info(f"Connected to Cosmos DB database '{settings.cosmos_database}'")
    return _database


async def close_cosmos_client() -> None:
    """Close Cosmos DB client."""
    global _client, _database
    if _client is not None:
        await _client.close()
        _client = None
        _database = None


def get_container_name(
    base_name: str,
) -> str:
    """Get full container name with namespace."""
    if not settings.collection_namespace:
        return base_name
    return f"{base_name}_{settings.collection_namespace}"
