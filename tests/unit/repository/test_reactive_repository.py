"""
Unit tests for the streaming repository variant.
"""

import logging
from unittest.mock import AsyncMock, MagicMock

import pytest

from docmap.core.operations import DocumentOperations
from docmap.query import Sort, where
from docmap.repository import ReactiveDocumentRepository
from tests.fixtures.models import Person


logger = logging.getLogger(__name__)


async def _collect(iterator):
    return [item async for item in iterator]


@pytest.mark.unit
class TestReactiveDocumentRepository:
    """Tests for ReactiveDocumentRepository over an in-memory collection."""

    async def test_order_matches_blocking_repository(
        self, reactive_person_repository, person_repository, smiths
    ):
        """Test that streamed documents arrive in the blocking variant's order."""
        await person_repository.save_all(smiths)
        sort = Sort.by("age")

        streamed = await _collect(reactive_person_repository.find_all(sort=sort))
        blocking = await person_repository.find_all(sort=sort)

        assert [p.id for p in streamed] == [p.id for p in blocking] == ["p3", "p2", "p1"]

    async def test_find(self, reactive_person_repository, person_repository, smiths):
        await person_repository.save_all(smiths)
        people = await _collect(reactive_person_repository.find(where("last_name").is_("Smith")))
        assert [p.id for p in people] == ["p1", "p2"]

    async def test_find_all_partition(self, reactive_person_repository, person_repository, smiths):
        await person_repository.save_all(smiths)
        people = await _collect(reactive_person_repository.find_all(partition_key="Bloggs"))
        assert [p.id for p in people] == ["p3"]

    async def test_save_all_streams_saved_entities(self, reactive_person_repository, smiths):
        saved = await _collect(reactive_person_repository.save_all(smiths))
        assert [p.id for p in saved] == ["p1", "p2", "p3"]
        assert await reactive_person_repository.count() == 3

    async def test_single_item_operations(self, reactive_person_repository, smiths):
        """Test that single-item operations are plain awaitables."""
        await reactive_person_repository.save(smiths[0])

        assert (await reactive_person_repository.find_by_id("p1")).last_name == "Smith"
        assert await reactive_person_repository.exists_by_id("p1")

        await reactive_person_repository.delete_by_id("p1")
        assert not await reactive_person_repository.exists_by_id("p1")

    async def test_delete_all(self, reactive_person_repository, smiths):
        await _collect(reactive_person_repository.save_all(smiths))
        await reactive_person_repository.delete_all()
        assert await reactive_person_repository.count() == 0

    async def test_derived_stream(self, reactive_person_repository, person_repository, smiths):
        """Test that plain-def query methods return async iterators."""
        await person_repository.save_all(smiths)
        people = await _collect(reactive_person_repository.find_by_last_name("Bloggs"))
        assert [p.id for p in people] == ["p3"]

    def test_find_is_lazy(self):
        """Test that no facade call happens until the stream is iterated."""
        operations = MagicMock(spec=DocumentOperations)
        operations.stream = MagicMock()
        operations.find = AsyncMock()

        class Repository(ReactiveDocumentRepository[Person]):
            entity_type = Person

        result = Repository(operations).find(where("last_name").is_("Smith"))

        assert result is operations.stream.return_value
        operations.find.assert_not_called()

    def test_entity_type_required(self):
        class Repository(ReactiveDocumentRepository[Person]):
            pass

        with pytest.raises(TypeError, match="entity_type"):
            Repository(MagicMock(spec=DocumentOperations))
