"""Filter descriptions, compilation, query-string parsing and index planning."""

from entitykit.query.compiler import compile_filter, make_parentheses_group
from entitykit.query.expressions import FilterOperations, TextOperations, text_attribute_refs
from entitykit.query.filters import (
    AttributeFilter,
    EntityFilter,
    Filter,
    FilterGroup,
    classify_filter,
    is_attribute_filter,
    is_complex_filter_value,
    is_entity_filter,
    is_filter_criteria,
    is_filter_group,
)
from entitykit.query.operators import FilterOperator, resolve_operator
from entitykit.query.paths import parse_entity_attribute_paths
from entitykit.query.planner import (
    IndexMatch,
    KeyMatch,
    KeyMatcher,
    extract_equality_filters,
    find_matching_index,
)
from entitykit.query.querystring import (
    add_filter_group_to_criteria,
    make_filter_group_for_search_keywords,
    parse_query_string,
    parse_query_string_params,
    parse_query_string_to_filter_group,
    split_search_terms,
)

__all__ = [
    # Filters
    "AttributeFilter",
    "EntityFilter",
    "Filter",
    "FilterGroup",
    "FilterOperator",
    "classify_filter",
    "is_attribute_filter",
    "is_complex_filter_value",
    "is_entity_filter",
    "is_filter_criteria",
    "is_filter_group",
    "resolve_operator",
    # Compilation
    "FilterOperations",
    "TextOperations",
    "compile_filter",
    "make_parentheses_group",
    "text_attribute_refs",
    # Query strings
    "add_filter_group_to_criteria",
    "make_filter_group_for_search_keywords",
    "parse_entity_attribute_paths",
    "parse_query_string",
    "parse_query_string_params",
    "parse_query_string_to_filter_group",
    "split_search_terms",
    # Planning
    "IndexMatch",
    "KeyMatch",
    "KeyMatcher",
    "extract_equality_filters",
    "find_matching_index",
]
