"""
Unit tests for Cosmos DB SQL and MongoDB filter translation.
"""

import logging
from datetime import datetime, timezone

import pytest

from docmap.core.exceptions import MappingError, UnsupportedOperationError
from docmap.mapping import get_entity_metadata
from docmap.query import (
    CosmosQueryTranslator,
    Criteria,
    CriteriaType,
    Direction,
    DocumentQuery,
    MongoQueryTranslator,
    Pageable,
    Projection,
    Sort,
    where,
)
from tests.fixtures.models import Address, Person


logger = logging.getLogger(__name__)


@pytest.fixture
def person_metadata():
    return get_entity_metadata(Person)


@pytest.fixture
def cosmos():
    return CosmosQueryTranslator()


@pytest.fixture
def mongo():
    return MongoQueryTranslator()


# =============================================================================
# TEST: Cosmos DB SQL
# =============================================================================


@pytest.mark.unit
class TestCosmosTranslation:
    """Tests for CosmosQueryTranslator."""

    def test_empty_criteria_has_no_where(self, cosmos, person_metadata):
        """Test that an empty query selects every document."""
        spec = cosmos.translate(DocumentQuery.all(), person_metadata)
        assert spec.query_text == "SELECT * FROM ROOT r"
        assert spec.parameters == []

    def test_equality_binds_parameter(self, cosmos, person_metadata):
        """Test that values are bound, never embedded."""
        spec = cosmos.translate(DocumentQuery(where("last_name").is_("Smith")), person_metadata)
        assert spec.query_text == "SELECT * FROM ROOT r WHERE r.lastName = @param0"
        assert spec.parameters == [{"name": "@param0", "value": "Smith"}]

    def test_id_addresses_reserved_key(self, cosmos, person_metadata):
        """Test that the id attribute maps to the reserved id key."""
        spec = cosmos.translate(DocumentQuery(where("id").is_("p1")), person_metadata)
        assert spec.query_text == "SELECT * FROM ROOT r WHERE r.id = @param0"

    def test_marked_id_addresses_reserved_key(self, cosmos):
        """Test that a differently named id attribute still maps to id."""
        metadata = get_entity_metadata(Address)
        spec = cosmos.translate(DocumentQuery(where("postal_code").is_("12345")), metadata)
        assert spec.query_text == "SELECT * FROM ROOT r WHERE r.id = @param0"

    def test_and_chain(self, cosmos, person_metadata):
        """Test that AND children are joined left to right."""
        criteria = where("id").is_("p1").and_("last_name").is_("Smith")
        spec = cosmos.translate(DocumentQuery(criteria), person_metadata)
        assert spec.query_text == (
            "SELECT * FROM ROOT r WHERE r.id = @param0 AND r.lastName = @param1"
        )
        assert [p["value"] for p in spec.parameters] == ["p1", "Smith"]

    def test_nested_group_is_parenthesized(self, cosmos, person_metadata):
        """Test that a multi-child group under another connective keeps its shape."""
        criteria = (
            where("first_name").is_("John")
            .and_("last_name").is_("Smith")
            .or_("age").is_(3)
        )
        spec = cosmos.translate(DocumentQuery(criteria), person_metadata)
        assert spec.query_text == (
            "SELECT * FROM ROOT r WHERE "
            "(r.firstName = @param0 AND r.lastName = @param1) OR r.age = @param2"
        )

    def test_empty_children_are_skipped(self, cosmos, person_metadata):
        """Test that empty groups inside a connective render no clause."""
        criteria = Criteria(
            CriteriaType.AND,
            sub_criteria=(
                Criteria.empty(),
                where("age").is_(3),
                Criteria(CriteriaType.OR, sub_criteria=(Criteria.empty(),)),
            ),
        )
        spec = cosmos.translate(DocumentQuery(criteria), person_metadata)
        assert spec.query_text == "SELECT * FROM ROOT r WHERE r.age = @param0"

    def test_only_empty_children_has_no_where(self, cosmos, person_metadata):
        criteria = Criteria(CriteriaType.OR, sub_criteria=(Criteria.empty(), Criteria.empty()))
        spec = cosmos.translate(DocumentQuery(criteria), person_metadata)
        assert spec.query_text == "SELECT * FROM ROOT r"

    @pytest.mark.parametrize(
        "criteria, expected",
        [
            (where("age").not_(3), "r.age != @param0"),
            (where("age").less_than(3), "r.age < @param0"),
            (where("age").less_than_equal(3), "r.age <= @param0"),
            (where("age").greater_than(3), "r.age > @param0"),
            (where("age").greater_than_equal(3), "r.age >= @param0"),
            (where("age").before(3), "r.age < @param0"),
            (where("age").after(3), "r.age > @param0"),
            (where("age").between(1, 9), "(r.age >= @param0 AND r.age <= @param1)"),
            (where("last_name").in_(["a", "b"]), "r.lastName IN (@param0, @param1)"),
            (where("last_name").not_in(["a"]), "r.lastName NOT IN (@param0)"),
            (where("hobbies").array_contains("golf"), "ARRAY_CONTAINS(r.hobbies, @param0)"),
            (where("first_name").containing("oh"), "CONTAINS(r.firstName, @param0)"),
            (where("first_name").starts_with("J"), "STARTSWITH(r.firstName, @param0)"),
            (where("first_name").ends_with("n"), "ENDSWITH(r.firstName, @param0)"),
            (where("age").is_null(), "IS_NULL(r.age)"),
            (where("age").is_not_null(), "NOT IS_NULL(r.age)"),
            (where("age").exists(), "IS_DEFINED(r.age)"),
            (where("active").is_true(), "r.active = true"),
            (where("active").is_false(), "r.active = false"),
        ],
    )
    def test_operators(self, cosmos, person_metadata, criteria, expected):
        """Test the SQL rendering of each supported operator."""
        spec = cosmos.translate(DocumentQuery(criteria), person_metadata)
        assert spec.query_text == f"SELECT * FROM ROOT r WHERE {expected}"

    def test_empty_in_matches_nothing(self, cosmos, person_metadata):
        """Test that IN over an empty collection renders as false."""
        spec = cosmos.translate(DocumentQuery(where("age").in_([])), person_metadata)
        assert spec.query_text == "SELECT * FROM ROOT r WHERE false"
        assert spec.parameters == []

    def test_empty_not_in_matches_everything(self, cosmos, person_metadata):
        spec = cosmos.translate(DocumentQuery(where("age").not_in([])), person_metadata)
        assert spec.query_text == "SELECT * FROM ROOT r WHERE true"

    def test_matches_is_unsupported(self, cosmos, person_metadata):
        """Test that MATCHES fails at translation time naming the operator."""
        with pytest.raises(UnsupportedOperationError, match="MATCHES") as exc_info:
            cosmos.translate(DocumentQuery(where("first_name").matches("^J")), person_metadata)
        assert exc_info.value.operator == CriteriaType.MATCHES

    def test_sort_and_limit(self, cosmos, person_metadata):
        """Test ORDER BY and OFFSET/LIMIT rendering."""
        query = DocumentQuery(
            where("last_name").is_("Smith"),
            sort=Sort.by("age", direction=Direction.DESC).and_(Sort.by("first_name")),
            limit=2,
        )
        spec = cosmos.translate(query, person_metadata)
        assert spec.query_text == (
            "SELECT * FROM ROOT r WHERE r.lastName = @param0 "
            "ORDER BY r.age DESC, r.firstName ASC OFFSET 0 LIMIT 2"
        )

    def test_pageable_suppresses_limit(self, cosmos, person_metadata):
        """Test that paged queries leave the page size to the client."""
        query = DocumentQuery(limit=2, pageable=Pageable(5))
        spec = cosmos.translate(query, person_metadata)
        assert "LIMIT" not in spec.query_text

    def test_count_projection(self, cosmos, person_metadata):
        """Test that the count projection drops sort and limit."""
        query = DocumentQuery(where("last_name").is_("Smith"), sort=Sort.by("age"), limit=1)
        spec = cosmos.translate(query, person_metadata, projection=Projection.COUNT)
        assert spec.query_text == (
            "SELECT VALUE COUNT(1) FROM ROOT r WHERE r.lastName = @param0"
        )

    def test_nested_path(self, cosmos, person_metadata):
        """Test that dotted paths are kept after the first segment."""
        spec = cosmos.translate(DocumentQuery(where("address.city").is_("Oslo")), person_metadata)
        assert spec.query_text == "SELECT * FROM ROOT r WHERE r.address.city = @param0"

    def test_unsafe_field_name_rejected(self, cosmos, person_metadata):
        """Test that field names are validated before entering query text."""
        with pytest.raises(MappingError):
            cosmos.translate(
                DocumentQuery(where("age = 1 OR 1").is_(1)),
                person_metadata,
            )

    def test_datetime_values_are_json_encoded(self, cosmos, person_metadata):
        """Test that parameter values match the stored JSON encoding."""
        moment = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        spec = cosmos.translate(DocumentQuery(where("age").before(moment)), person_metadata)
        assert spec.parameters[0]["value"] == "2024-01-02T03:04:05Z"


# =============================================================================
# TEST: MongoDB filters
# =============================================================================


@pytest.mark.unit
class TestMongoTranslation:
    """Tests for MongoQueryTranslator."""

    def test_empty_criteria(self, mongo, person_metadata):
        """Test that an empty query has an empty filter."""
        spec = mongo.translate(DocumentQuery.all(), person_metadata)
        assert spec.filter == {}
        assert spec.sort == []

    def test_equality(self, mongo, person_metadata):
        spec = mongo.translate(DocumentQuery(where("last_name").is_("Smith")), person_metadata)
        assert spec.filter == {"lastName": {"$eq": "Smith"}}

    def test_id_addresses_reserved_key(self, mongo, person_metadata):
        """Test that the id attribute maps to _id."""
        spec = mongo.translate(DocumentQuery(where("id").is_("p1")), person_metadata)
        assert spec.filter == {"_id": {"$eq": "p1"}}

    def test_empty_children_are_skipped(self, mongo, person_metadata):
        """Test that empty groups never render as an empty $and."""
        criteria = Criteria(
            CriteriaType.AND,
            sub_criteria=(Criteria.empty(), where("age").is_(3), where("active").is_true()),
        )
        spec = mongo.translate(DocumentQuery(criteria), person_metadata)
        assert spec.filter == {"$and": [{"age": {"$eq": 3}}, {"active": {"$eq": True}}]}

    def test_only_empty_children(self, mongo, person_metadata):
        criteria = Criteria(CriteriaType.AND, sub_criteria=(Criteria.empty(),))
        assert mongo.translate(DocumentQuery(criteria), person_metadata).filter == {}

    def test_connectives(self, mongo, person_metadata):
        """Test that AND / OR map to $and / $or keeping the tree shape."""
        criteria = where("id").is_("p1").and_("last_name").is_("Smith").or_("age").is_(3)
        spec = mongo.translate(DocumentQuery(criteria), person_metadata)
        assert spec.filter == {
            "$or": [
                {"$and": [{"_id": {"$eq": "p1"}}, {"lastName": {"$eq": "Smith"}}]},
                {"age": {"$eq": 3}},
            ]
        }

    @pytest.mark.parametrize(
        "criteria, expected",
        [
            (where("age").between(1, 9), {"age": {"$gte": 1, "$lte": 9}}),
            (where("age").in_([1, 2]), {"age": {"$in": [1, 2]}}),
            (where("age").not_in([1]), {"age": {"$nin": [1]}}),
            (where("hobbies").array_contains("golf"), {"hobbies": {"$all": ["golf"]}}),
            (where("first_name").starts_with("J.r"), {"firstName": {"$regex": "^J\\.r"}}),
            (where("first_name").ends_with("n"), {"firstName": {"$regex": "n$"}}),
            (where("first_name").containing("o"), {"firstName": {"$regex": "o"}}),
            (where("first_name").matches("^J.*n$"), {"firstName": {"$regex": "^J.*n$"}}),
            (where("age").is_null(), {"age": {"$eq": None}}),
            (where("age").is_not_null(), {"age": {"$ne": None}}),
            (where("age").exists(), {"age": {"$exists": True}}),
            (where("active").is_true(), {"active": {"$eq": True}}),
            (where("active").is_false(), {"active": {"$eq": False}}),
        ],
    )
    def test_operators(self, mongo, person_metadata, criteria, expected):
        """Test the filter rendering of each operator."""
        assert mongo.translate(DocumentQuery(criteria), person_metadata).filter == expected

    def test_sort(self, mongo, person_metadata):
        """Test that sort orders use stored names and pymongo directions."""
        query = DocumentQuery(sort=Sort.by("last_name").and_(Sort.by("age", direction=Direction.DESC)))
        assert mongo.translate(query, person_metadata).sort == [("lastName", 1), ("age", -1)]
