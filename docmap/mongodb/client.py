"""
MongoDB / DocumentDB client singleton.

Credentials are handed to the driver as keyword options rather than embedded
in a connection URI, so secrets containing URI delimiters (``/``, ``+``,
``@``) need no escaping.
"""

import logging
from typing import Any, Dict, Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from ..core.config import settings


logger = logging.getLogger(__name__)

_client: Optional[AsyncIOMotorClient] = None
_database: Optional[AsyncIOMotorDatabase] = None


def _auth_options() -> Dict[str, Any]:
    """Driver authentication options for the configured auth mode."""
    if settings.documentdb_use_iam:
        import boto3

        credentials = boto3.Session().get_credentials()
        if not credentials:
            raise ValueError("AWS credentials not found for DocumentDB IAM auth")

        logger.info(f"Using AWS IAM authentication (host: {settings.documentdb_host})")
        options = {
            "username": credentials.access_key,
            "password": credentials.secret_key,
            "authSource": "$external",
            "authMechanism": "MONGODB-AWS",
        }
        if credentials.token:
            options["authMechanismProperties"] = f"AWS_SESSION_TOKEN:{credentials.token}"
        return options

    if settings.documentdb_username and settings.documentdb_password:
        logger.info(
            f"Using username/password authentication (host: {settings.documentdb_host})"
        )
        return {
            "username": settings.documentdb_username,
            "password": settings.documentdb_password,
            "authSource": settings.documentdb_database,
        }

    logger.info(f"Using no authentication (host: {settings.documentdb_host})")
    return {}


def _tls_options() -> Dict[str, Any]:
    if not settings.documentdb_use_tls:
        return {}
    options: Dict[str, Any] = {"tls": True}
    if settings.documentdb_tls_ca_file:
        options["tlsCAFile"] = settings.documentdb_tls_ca_file
        logger.info(f"Using TLS CA file: {settings.documentdb_tls_ca_file}")
    return options


def client_options() -> Dict[str, Any]:
    """Keyword arguments used to build the Motor client."""
    return {
        "host": settings.documentdb_host,
        "port": settings.documentdb_port,
        # DocumentDB rejects retryable writes
        "retryWrites": False,
        **_auth_options(),
        **_tls_options(),
    }


async def get_documentdb_client() -> AsyncIOMotorDatabase:
    """Get MongoDB / DocumentDB database client singleton."""
    global _client, _database

    if _database is not None:
        return _database

    _client = AsyncIOMotorClient(**client_options())
    _database = _client[settings.documentdb_database]

    server_info = await _client.server_info()
    logger.info(
        f"Connected to MongoDB {server_info.get('version', 'unknown')} "
        f"database '{settings.documentdb_database}'"
    )
    return _database


async def close_documentdb_client() -> None:
    """Close MongoDB / DocumentDB client."""
    global _client, _database
    if _client is not None:
        _client.close()
        _client = None
        _database = None


def get_collection_name(
    base_name: str,
) -> str:
    """Get full collection name with namespace."""
    if not settings.collection_namespace:
        return base_name
    return f"{base_name}_{settings.collection_namespace}"
