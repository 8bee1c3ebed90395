"""Unit tests for entitykit.query.compiler module."""

import pytest

from entitykit.core.errors import InvalidFilterShape, InvalidFilterValue, UnknownFilterAttribute
from entitykit.query.compiler import compile_filter, make_parentheses_group
from entitykit.query.expressions import TextOperations, text_attribute_refs

ATTRIBUTES = text_attribute_refs(["status", "age", "tags", "name", "total", "limit", "deleted"])


def compile_text(filter: object) -> str:
    return compile_filter(filter, ATTRIBUTES, TextOperations())


class TestMakeParenthesesGroup:
    def test_empty(self) -> None:
        assert make_parentheses_group([], "and") == ""
        assert make_parentheses_group(["", ""], "or") == ""

    def test_single_item_is_bare(self) -> None:
        assert make_parentheses_group(["a = 1", ""], "and") == "a = 1"

    def test_several_items(self) -> None:
        assert make_parentheses_group(["a = 1", "b = 2"], "or") == "( a = 1 OR b = 2 )"


class TestAttributeFilters:
    def test_single_clause(self) -> None:
        assert compile_text({"attribute": "status", "eq": "active"}) == "status = 'active'"

    def test_clauses_keep_insertion_order(self) -> None:
        result = compile_text({"attribute": "age", "gte": 18, "lt": 65})
        assert result == "( age >= 18 AND age < 65 )"

    def test_logical_or(self) -> None:
        result = compile_text({"attribute": "age", "lt": 18, "gt": 65, "logicalOp": "or"})
        assert result == "( age < 18 OR age > 65 )"

    def test_aliases(self) -> None:
        assert compile_text({"attribute": "age", ">=": 18}) == "age >= 18"
        assert compile_text({"attribute": "name", "startsWith": "Jo"}) == "begins_with(name, 'Jo')"

    def test_between(self) -> None:
        assert compile_text({"attribute": "age", "between": [18, 65]}) == "age BETWEEN 18 AND 65"

    @pytest.mark.parametrize("value", [[18], [1, 2, 3], 18])
    def test_between_requires_two_values(self, value: object) -> None:
        with pytest.raises(InvalidFilterValue) as exc_info:
            compile_text({"attribute": "age", "between": value})
        assert exc_info.value.operator == "between"

    def test_in_becomes_or_of_equalities(self) -> None:
        result = compile_text({"attribute": "status", "in": ["a", "b"]})
        assert result == "( status = 'a' OR status = 'b' )"

    def test_nin_becomes_and_of_inequalities(self) -> None:
        result = compile_text({"attribute": "status", "nin": ["a", "b"]})
        assert result == "( status <> 'a' AND status <> 'b' )"

    @pytest.mark.parametrize(
        ("operator", "expected"),
        [("in", "status = 'a'"), ("nin", "status <> 'a'")],
    )
    def test_scalar_matches_one_element_list(self, operator: str, expected: str) -> None:
        scalar = compile_text({"attribute": "status", operator: "a"})
        wrapped = compile_text({"attribute": "status", operator: ["a"]})
        assert scalar == wrapped == expected

    def test_contains_all(self) -> None:
        result = compile_text({"attribute": "tags", "contains": ["x", "y"]})
        assert result == "( contains(tags, 'x') AND contains(tags, 'y') )"

    def test_contains_some(self) -> None:
        result = compile_text({"attribute": "tags", "containsSome": ["x", "y"]})
        assert result == "( contains(tags, 'x') OR contains(tags, 'y') )"

    def test_not_contains(self) -> None:
        assert compile_text({"attribute": "tags", "notContains": "x"}) == "NOT contains(tags, 'x')"

    def test_exists(self) -> None:
        assert compile_text({"attribute": "deleted", "exists": True}) == "attribute_exists(deleted)"
        assert compile_text({"attribute": "deleted", "exists": False}) == "attribute_not_exists(deleted)"

    def test_is_null(self) -> None:
        assert compile_text({"attribute": "deleted", "isNull": True}) == "attribute_not_exists(deleted)"
        assert compile_text({"attribute": "deleted", "isNull": False}) == "attribute_exists(deleted)"

    def test_is_empty(self) -> None:
        assert compile_text({"attribute": "name", "isEmpty": True}) == "name = ''"
        assert compile_text({"attribute": "name", "isEmpty": False}) == "name <> ''"

    def test_unknown_operator_keys_are_skipped(self) -> None:
        result = compile_text({"attribute": "age", "gte": 18, "approximately": 20})
        assert result == "age >= 18"

    def test_unknown_attribute_raises(self) -> None:
        with pytest.raises(UnknownFilterAttribute) as exc_info:
            compile_text({"attribute": "color", "eq": "red"})
        assert exc_info.value.attribute == "color"

    def test_property_reference_value(self) -> None:
        result = compile_text({"attribute": "total", "gt": {"val": "limit", "valType": "propRef"}})
        assert result == "total > limit"

    def test_unknown_property_reference_raises(self) -> None:
        with pytest.raises(UnknownFilterAttribute):
            compile_text({"attribute": "total", "gt": {"val": "budget", "valType": "propRef"}})

    def test_literal_complex_value_is_unwrapped(self) -> None:
        result = compile_text({"attribute": "name", "eq": {"val": "limit", "valType": "literal"}})
        assert result == "name = 'limit'"


class TestEntityFilters:
    def test_attributes_combined_with_and(self) -> None:
        result = compile_text({"status": {"eq": "active"}, "age": {"gte": 18}})
        assert result == "( status = 'active' AND age >= 18 )"

    def test_entity_logical_or(self) -> None:
        result = compile_text({"status": {"eq": "active"}, "age": {"gte": 18}, "logicalOp": "or"})
        assert result == "( status = 'active' OR age >= 18 )"


class TestFilterGroups:
    def test_branches(self) -> None:
        group = {
            "and": [{"attribute": "status", "eq": "active"}],
            "or": [{"attribute": "age", "lt": 18}, {"attribute": "age", "gt": 65}],
            "not": [{"attribute": "name", "eq": "root"}],
        }
        assert compile_text(group) == (
            "( status = 'active' AND ( age < 18 OR age > 65 ) AND NOT name = 'root' )"
        )

    def test_nested_groups(self) -> None:
        group = {"and": [{"or": [{"attribute": "age", "lt": 18}, {"attribute": "age", "gt": 65}]}]}
        assert compile_text(group) == "( age < 18 OR age > 65 )"

    def test_empty_group(self) -> None:
        assert compile_text({"and": [], "or": [], "not": []}) == ""

    def test_invalid_shape_raises(self) -> None:
        with pytest.raises(InvalidFilterShape):
            compile_text({"status": "active"})
