"""Unit tests for entitykit.query.filters and entitykit.query.operators."""

import pytest

from entitykit.core.errors import InvalidFilterShape
from entitykit.query.filters import (
    AttributeFilter,
    EntityFilter,
    FilterGroup,
    classify_filter,
    is_attribute_filter,
    is_complex_filter_value,
    is_entity_filter,
    is_filter_criteria,
    is_filter_group,
)
from entitykit.query.operators import FilterOperator, is_operator_key, resolve_operator


class TestOperators:
    @pytest.mark.parametrize(
        ("key", "expected"),
        [
            ("eq", FilterOperator.EQ),
            ("===", FilterOperator.EQ),
            ("<>", FilterOperator.NE),
            ("greaterThen", FilterOperator.GT),
            (">=", FilterOperator.GTE),
            ("><", FilterOperator.BETWEEN),
            ("startsWith", FilterOperator.BEGINS),
            ("includes", FilterOperator.CONTAINS),
            ("hasSome", FilterOperator.CONTAINS_SOME),
            ("notInList", FilterOperator.NIN),
            ("isNull", FilterOperator.IS_NULL),
        ],
    )
    def test_aliases_resolve(self, key: str, expected: FilterOperator) -> None:
        assert resolve_operator(key) is expected

    def test_meta_keys_are_not_operators(self) -> None:
        for key in ("attribute", "logicalOp", "filterId", "filterLabel"):
            assert not is_operator_key(key)

    def test_unknown_key(self) -> None:
        assert resolve_operator("approximately") is None


class TestShapePredicates:
    def test_filter_criteria(self) -> None:
        assert is_filter_criteria({"eq": 1})
        assert not is_filter_criteria({"color": 1})
        assert not is_filter_criteria("eq")

    def test_attribute_filter(self) -> None:
        assert is_attribute_filter({"attribute": "age", "gte": 18})
        assert not is_attribute_filter({"gte": 18})

    def test_entity_filter(self) -> None:
        assert is_entity_filter({"status": {"eq": "active"}, "age": {"gte": 18}})
        assert is_entity_filter({"status": {"eq": "active"}, "logicalOp": "or"})
        assert not is_entity_filter({"status": "active"})
        assert not is_entity_filter({})
        assert not is_entity_filter({"logicalOp": "or"})

    def test_filter_group(self) -> None:
        assert is_filter_group({"and": [{"status": {"eq": "active"}}], "or": []})
        assert is_filter_group({"not": [{"and": [{"attribute": "a", "eq": 1}]}]})
        assert not is_filter_group({"and": {"status": {"eq": "a"}}})
        assert not is_filter_group({"and": [], "status": {"eq": "a"}})
        assert not is_filter_group({"and": ["status"]})

    @pytest.mark.parametrize(
        "value",
        [
            {"attribute": "status", "eq": "active"},
            {"attribute": {"eq": "status"}},
            {"status": {"eq": "active"}, "logicalOp": "or"},
            {"and": [{"status": {"eq": "active"}}], "filterId": "f1"},
            {"and": [{"attribute": "a", "eq": 1}], "attribute": "a", "eq": 1},
            {"or": {"eq": 1}, "attribute": "or"},
        ],
    )
    def test_at_most_one_shape_matches(self, value: dict[str, object]) -> None:
        checks = (is_attribute_filter, is_entity_filter, is_filter_group)
        matches = [check(value) for check in checks]
        assert sum(matches) <= 1

    def test_complex_value(self) -> None:
        assert is_complex_filter_value({"val": "limit", "valType": "propRef"})
        assert not is_complex_filter_value({"val": "limit", "valType": "mystery"})


class TestClassifyFilter:
    def test_attribute_filter(self) -> None:
        result = classify_filter(
            {"attribute": "age", "gte": 18, "logicalOp": "OR", "filterId": "f1"}
        )

        assert isinstance(result, AttributeFilter)
        assert result.attribute == "age"
        assert result.criteria == {"gte": 18}
        assert result.logical_op == "or"
        assert result.filter_id == "f1"

    def test_entity_filter(self) -> None:
        result = classify_filter({"status": {"eq": "active"}, "age": {"gte": 18}})

        assert isinstance(result, EntityFilter)
        assert [f.attribute for f in result.attribute_filters()] == ["status", "age"]

    def test_filter_group_classifies_children(self) -> None:
        result = classify_filter(
            {"and": [{"attribute": "age", "gte": 18}], "not": [{"status": {"eq": "banned"}}]}
        )

        assert isinstance(result, FilterGroup)
        assert isinstance(result.and_[0], AttributeFilter)
        assert isinstance(result.not_[0], EntityFilter)
        assert result.or_ == []

    def test_variants_are_returned_unchanged(self) -> None:
        group = FilterGroup()
        assert classify_filter(group) is group

    @pytest.mark.parametrize("value", [{"status": "active"}, "status=active", 5, {}])
    def test_invalid_shapes_raise(self, value: object) -> None:
        with pytest.raises(InvalidFilterShape):
            classify_filter(value)

    def test_to_raw_round_trips(self) -> None:
        raw = {"and": [{"attribute": "age", "gte": 18}], "or": [], "not": [], "filterId": "g"}
        assert classify_filter(raw).to_raw() == raw
