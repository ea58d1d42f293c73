"""
Configuration for the docmap object-document mapping layer.

All settings can be overridden via environment variables or a .env file.
Connection policy and consistency options are passed through unchanged to
the underlying client SDK.
"""

import logging
from pathlib import Path
from typing import List, Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


logger = logging.getLogger(__name__)

_ENV_FILE: Path = Path.cwd() / ".env"


class Settings(BaseSettings):
    """Storage settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Backend selection
    storage_backend: Literal["cosmosdb", "mongodb"] = "cosmosdb"

    # Azure Cosmos DB (SQL API)
    cosmos_endpoint: str = "https://localhost:8081/"
    cosmos_key: Optional[str] = None
    cosmos_database: str = "docmap"
    cosmos_consistency_level: Optional[str] = None  # e.g. "Session", "Eventual"
    cosmos_preferred_locations: List[str] = []
    cosmos_default_throughput: Optional[int] = None

    # MongoDB / AWS DocumentDB
    documentdb_host: str = "localhost"
    documentdb_port: int = 27017
    documentdb_database: str = "docmap"
    documentdb_username: Optional[str] = None
    documentdb_password: Optional[str] = None
    documentdb_use_iam: bool = False
    documentdb_use_tls: bool = False
    documentdb_tls_ca_file: Optional[str] = None

    # Suffix appended to container / collection names, empty for none
    collection_namespace: str = ""

    # Page size used when a query carries no explicit page size
    query_max_item_count: int = 100


settings = Settings()
