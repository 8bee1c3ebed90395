"""Unit tests for entitykit.query.querystring module."""

import pytest

from entitykit.core.errors import InvalidFilterShape, InvalidFilterValue
from entitykit.query.compiler import compile_filter
from entitykit.query.expressions import TextOperations, text_attribute_refs
from entitykit.query.filters import AttributeFilter, FilterGroup
from entitykit.query.querystring import (
    COMBINED_CRITERIA_FILTER_ID,
    KEYWORD_SEARCH_FILTER_ID,
    QUERY_STRING_FILTER_ID,
    add_filter_group_to_criteria,
    make_filter_group_for_search_keywords,
    make_filters_from_query_string_param,
    parse_query_string,
    parse_query_string_params,
    parse_query_string_to_filter_group,
    split_search_terms,
)


class TestParseQueryString:
    def test_flat_and_nested_keys(self) -> None:
        assert parse_query_string("status=active&age[gte]=18") == {
            "status": "active",
            "age": {"gte": "18"},
        }

    def test_leading_question_mark(self) -> None:
        assert parse_query_string("?a=1") == {"a": "1"}

    def test_repeated_keys_become_lists(self) -> None:
        assert parse_query_string("status=a&status=b") == {"status": ["a", "b"]}

    def test_bracket_append_and_indexes(self) -> None:
        assert parse_query_string("tags[]=x&tags[]=y") == {"tags": ["x", "y"]}
        assert parse_query_string("or[0][age][lt]=18&or[1][age][gt]=65") == {
            "or": [{"age": {"lt": "18"}}, {"age": {"gt": "65"}}]
        }

    def test_dots_only_when_allowed(self) -> None:
        assert parse_query_string("age.gte=18") == {"age.gte": "18"}
        assert parse_query_string("age.gte=18", allow_dots=True) == {"age": {"gte": "18"}}

    def test_blank_values_are_kept(self) -> None:
        assert parse_query_string("name=") == {"name": ""}

    def test_percent_decoding(self) -> None:
        assert parse_query_string("name=J%C3%B6rg+M") == {"name": "Jörg M"}


class TestMakeFiltersFromParam:
    def test_plain_value_means_equality(self) -> None:
        [result] = make_filters_from_query_string_param("status", "active")
        assert result == AttributeFilter(attribute="status", criteria={"eq": "active"})

    def test_list_value_means_membership(self) -> None:
        [result] = make_filters_from_query_string_param("status", ["a", "b"])
        assert result.criteria == {"in": ["a", "b"]}

    def test_values_are_typed(self) -> None:
        [result] = make_filters_from_query_string_param("age", {"gte": "18", "lt": "65.5"})
        assert result.criteria == {"gte": 18, "lt": 65.5}

    def test_array_operator_values_are_split(self) -> None:
        [result] = make_filters_from_query_string_param("tags", {"in": "a,b;c+1"})
        assert result.criteria == {"in": ["a", "b", "c", 1]}

    def test_logical_op_is_extracted(self) -> None:
        [result] = make_filters_from_query_string_param(
            "age", {"lt": "18", "gt": "65", "logicalOp": "OR"}
        )
        assert result.logical_op == "or"
        assert "logicalOp" not in result.criteria

    def test_invalid_logical_op(self) -> None:
        with pytest.raises(InvalidFilterValue):
            make_filters_from_query_string_param("age", {"lt": "18", "logicalOp": "xor"})

    def test_branch_key_flattens_items(self) -> None:
        result = make_filters_from_query_string_param(
            "or", [{"age": {"lt": "18"}}, {"age": {"gt": "65"}}]
        )
        assert [f.criteria for f in result] == [{"lt": 18}, {"gt": 65}]

    def test_branch_items_must_be_mappings(self) -> None:
        with pytest.raises(InvalidFilterShape):
            make_filters_from_query_string_param("or", ["age"])


class TestParseQueryStringParams:
    def test_branches(self) -> None:
        group = parse_query_string_params(
            {
                "status": "active",
                "or": [{"age": {"lt": "18"}}, {"age": {"gt": "65"}}],
                "not": [{"name": "root"}],
            }
        )

        assert group.filter_id == QUERY_STRING_FILTER_ID
        assert [f.attribute for f in group.and_] == ["status"]
        assert len(group.or_) == 2
        assert group.not_[0].criteria == {"eq": "root"}

    def test_end_to_end_compilation(self) -> None:
        """status=active&age[gte]=18 compiles to an AND of both conditions."""
        group = parse_query_string_to_filter_group("status=active&age[gte]=18")
        expression = compile_filter(
            group, text_attribute_refs(["status", "age"]), TextOperations()
        )
        assert expression == "( status = 'active' AND age >= 18 )"

    def test_empty_query_string(self) -> None:
        assert parse_query_string_to_filter_group("").is_empty()


class TestKeywordSearch:
    def test_split_search_terms(self) -> None:
        assert split_search_terms("red  shoes,size+9") == ["red", "shoes", "size", "9"]
        assert split_search_terms(["red shoes", "big"]) == ["red", "shoes", "big"]
        assert split_search_terms(None) == []

    def test_search_group(self) -> None:
        group = make_filter_group_for_search_keywords(["red", "shoe"], ["name", "bio"])

        assert group.filter_id == KEYWORD_SEARCH_FILTER_ID
        assert [f.attribute for f in group.or_] == ["name", "bio"]
        assert group.or_[0].criteria == {"contains": ["red", "shoe"]}

    def test_search_compiles_to_or_of_contains(self) -> None:
        group = make_filter_group_for_search_keywords(["red"], ["name", "bio"])
        expression = compile_filter(group, text_attribute_refs(["name", "bio"]), TextOperations())
        assert expression == "( contains(name, 'red') OR contains(bio, 'red') )"


class TestAddFilterGroupToCriteria:
    def test_no_criteria_returns_group(self) -> None:
        group = FilterGroup(filter_id="x")
        assert add_filter_group_to_criteria(group) is group

    def test_appends_to_existing_group(self) -> None:
        existing = parse_query_string_to_filter_group("status=active")
        search = make_filter_group_for_search_keywords(["red"], ["name"])

        combined = add_filter_group_to_criteria(search, existing)

        assert combined.filter_id == QUERY_STRING_FILTER_ID
        assert combined.and_[-1] == search
        assert len(existing.and_) == 1

    def test_wraps_other_filters(self) -> None:
        search = make_filter_group_for_search_keywords(["red"], ["name"])

        combined = add_filter_group_to_criteria(search, {"status": {"eq": "active"}})

        assert combined.filter_id == COMBINED_CRITERIA_FILTER_ID
        assert len(combined.and_) == 2
        assert combined.and_[1] == search
