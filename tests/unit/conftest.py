"""
Conftest for unit tests.

Provides in-memory MongoDB fixtures, mocked Cosmos DB containers and
repositories over them.
"""

import logging
from typing import List
from unittest.mock import AsyncMock, MagicMock

import pytest
from mongomock_motor import AsyncMongoMockClient

from docmap.cosmos.template import CosmosTemplate
from docmap.mongodb.template import MongoTemplate
from tests.fixtures.cosmos import AsyncItems
from tests.fixtures.models import Person
from tests.fixtures.repositories import (
    AddressRepository,
    PersonRepository,
    ReactivePersonRepository,
)


logger = logging.getLogger(__name__)


# =============================================================================
# MongoDB fixtures
# =============================================================================


@pytest.fixture
def mongo_database():
    """
    Create an in-memory MongoDB database.

    Returns:
        mongomock-motor database
    """
    client = AsyncMongoMockClient()
    return client["docmap_test"]


@pytest.fixture
def mongo_template(mongo_database):
    """MongoTemplate over the in-memory database."""
    return MongoTemplate(database=mongo_database)


@pytest.fixture
def person_repository(mongo_template):
    """PersonRepository over the in-memory database."""
    return PersonRepository(mongo_template)


@pytest.fixture
def reactive_person_repository(mongo_template):
    """ReactivePersonRepository over the in-memory database."""
    return ReactivePersonRepository(mongo_template)


@pytest.fixture
def address_repository(mongo_template):
    return AddressRepository(mongo_template)


@pytest.fixture
def smiths() -> List[Person]:
    """Three people, two of them sharing the last name Smith."""
    return [
        Person(id="p1", first_name="John", last_name="Smith", age=40, hobbies=["golf"]),
        Person(id="p2", first_name="Jane", last_name="Smith", age=35, hobbies=["chess", "golf"]),
        Person(id="p3", first_name="Joe", last_name="Bloggs", age=25, active=False),
    ]


# =============================================================================
# Cosmos DB fixtures
# =============================================================================


@pytest.fixture
def mock_container():
    """
    Create a mock Cosmos DB container.

    Returns:
        Mock container with async item methods; query_items returns no items
    """
    container = MagicMock()
    container.id = "Person"
    container.create_item = AsyncMock(side_effect=lambda body: dict(body, _rid="r1", _ts=1))
    container.upsert_item = AsyncMock(side_effect=lambda body: dict(body, _etag="e1"))
    container.read_item = AsyncMock()
    container.delete_item = AsyncMock()
    container.query_items = MagicMock(return_value=AsyncItems([]))
    return container


@pytest.fixture
def mock_database(mock_container):
    """Mock Cosmos DB database handing out the mock container."""
    database = MagicMock()
    database.get_container_client = MagicMock(return_value=mock_container)
    database.create_container_if_not_exists = AsyncMock(return_value=mock_container)
    database.delete_container = AsyncMock()
    return database


@pytest.fixture
def cosmos_template(mock_database):
    """CosmosTemplate over the mock database."""
    return CosmosTemplate(database=mock_database)
