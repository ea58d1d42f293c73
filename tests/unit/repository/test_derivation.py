"""
Unit tests for derived query method name parsing.
"""

import logging

import pytest

from docmap.core.exceptions import InvalidQueryMethodError
from docmap.query import Criteria, CriteriaType, Direction, Order, where
from docmap.repository.derivation import Part, QuerySubject, parse_method_name


logger = logging.getLogger(__name__)


# =============================================================================
# TEST: Subjects and limits
# =============================================================================


@pytest.mark.unit
class TestSubjects:
    """Tests for method name prefixes."""

    @pytest.mark.parametrize(
        "name, subject",
        [
            ("find_by_last_name", QuerySubject.SELECT),
            ("get_by_last_name", QuerySubject.SELECT),
            ("read_by_last_name", QuerySubject.SELECT),
            ("query_by_last_name", QuerySubject.SELECT),
            ("stream_by_last_name", QuerySubject.SELECT),
            ("exists_by_last_name", QuerySubject.EXISTS),
            ("delete_by_last_name", QuerySubject.DELETE),
            ("remove_by_last_name", QuerySubject.DELETE),
            ("count_by_last_name", QuerySubject.COUNT),
        ],
    )
    def test_prefix(self, name, subject):
        assert parse_method_name(name).subject == subject

    def test_first_sets_limit(self):
        """Test that find_first_by limits the query to one result."""
        assert parse_method_name("find_first_by_last_name").limit == 1

    def test_top_sets_limit(self):
        assert parse_method_name("find_top5_by_last_name").limit == 5

    def test_no_limit_by_default(self):
        assert parse_method_name("find_by_last_name").limit is None

    @pytest.mark.parametrize("name", ["save", "find_last_name", "find_by_", "lookup_by_id"])
    def test_unparseable_name(self, name):
        """Test that names without a known prefix are rejected."""
        with pytest.raises(InvalidQueryMethodError):
            parse_method_name(name)


# =============================================================================
# TEST: Predicate parts
# =============================================================================


@pytest.mark.unit
class TestParts:
    """Tests for predicate parsing."""

    @pytest.mark.parametrize(
        "suffix, criteria_type",
        [
            ("", CriteriaType.IS_EQUAL),
            ("_is", CriteriaType.IS_EQUAL),
            ("_equals", CriteriaType.IS_EQUAL),
            ("_not", CriteriaType.NOT),
            ("_is_not", CriteriaType.NOT),
            ("_less_than", CriteriaType.LESS_THAN),
            ("_less_than_equal", CriteriaType.LESS_THAN_EQUAL),
            ("_greater_than", CriteriaType.GREATER_THAN),
            ("_greater_than_equal", CriteriaType.GREATER_THAN_EQUAL),
            ("_before", CriteriaType.BEFORE),
            ("_after", CriteriaType.AFTER),
            ("_between", CriteriaType.BETWEEN),
            ("_in", CriteriaType.IN),
            ("_not_in", CriteriaType.NOT_IN),
            ("_array_containing", CriteriaType.ARRAY_CONTAINS),
            ("_containing", CriteriaType.CONTAINING),
            ("_starting_with", CriteriaType.STARTS_WITH),
            ("_ending_with", CriteriaType.ENDS_WITH),
            ("_matches", CriteriaType.MATCHES),
            ("_is_null", CriteriaType.IS_NULL),
            ("_is_not_null", CriteriaType.IS_NOT_NULL),
            ("_exists", CriteriaType.EXISTS),
            ("_true", CriteriaType.TRUE),
            ("_is_true", CriteriaType.TRUE),
            ("_false", CriteriaType.FALSE),
            ("_is_false", CriteriaType.FALSE),
        ],
    )
    def test_suffix(self, suffix, criteria_type):
        """Test that the longest matching suffix picks the operator."""
        derived = parse_method_name(f"find_by_age{suffix}")
        assert derived.parts == (Part("age", criteria_type),)

    def test_and_or_groups(self):
        """Test that _or_ separates groups and _and_ separates parts."""
        derived = parse_method_name("find_by_first_name_and_last_name_or_age_greater_than")
        assert derived.groups == (
            (Part("first_name", CriteriaType.IS_EQUAL), Part("last_name", CriteriaType.IS_EQUAL)),
            (Part("age", CriteriaType.GREATER_THAN),),
        )

    def test_argument_count(self):
        """Test that BETWEEN takes two arguments and unary operators none."""
        derived = parse_method_name("find_by_age_between_and_active_is_true_and_last_name_in")
        assert derived.argument_count == 3

    def test_order_by(self):
        """Test that the _order_by_ tail builds the sort."""
        derived = parse_method_name("find_by_last_name_order_by_age_desc_then_first_name")
        assert derived.sort.orders == (
            Order("age", Direction.DESC),
            Order("first_name", Direction.ASC),
        )
        assert derived.parts == (Part("last_name", CriteriaType.IS_EQUAL),)


# =============================================================================
# TEST: Criteria creation
# =============================================================================


@pytest.mark.unit
class TestCreateCriteria:
    """Tests for binding call arguments to parts."""

    def test_single_part(self):
        criteria = parse_method_name("find_by_last_name").create_criteria(["Smith"])
        assert criteria == where("last_name").is_("Smith")

    def test_and_group(self):
        """Test that parts of one group are ANDed in order."""
        criteria = parse_method_name("find_by_id_and_last_name").create_criteria(["p1", "Smith"])
        assert criteria == where("id").is_("p1").and_("last_name").is_("Smith")

    def test_or_groups(self):
        """Test that groups are ORed."""
        criteria = parse_method_name(
            "find_by_first_name_and_last_name_or_age"
        ).create_criteria(["John", "Smith", 3])

        assert criteria.type == CriteriaType.OR
        first, second = criteria.sub_criteria
        assert first == where("first_name").is_("John").and_("last_name").is_("Smith")
        assert second == where("age").is_(3)

    def test_collection_argument(self):
        """Test that IN takes one iterable argument."""
        criteria = parse_method_name("find_by_age_in").create_criteria([[1, 2, 3]])
        assert criteria == Criteria(CriteriaType.IN, "age", (1, 2, 3))

    def test_between_arguments(self):
        criteria = parse_method_name("find_by_age_between").create_criteria([1, 9])
        assert criteria == where("age").between(1, 9)

    def test_wrong_argument_count(self):
        """Test that missing arguments are reported."""
        with pytest.raises(InvalidQueryMethodError, match="takes 2"):
            parse_method_name("find_by_id_and_last_name").create_criteria(["p1"])
