"""Compile filter descriptions into repository filter expressions.

The compiler walks a classified filter and renders every operator clause
through the repository's :class:`FilterOperations`. Clauses, attribute
filters and group branches are combined with :func:`make_parentheses_group`:
a single expression is returned bare, two or more are wrapped in one pair
of parentheses.

Usage:
    expression = compile_filter(
        {"status": {"eq": "active"}, "age": {"gte": 18}},
        text_attribute_refs(["status", "age"]),
        TextOperations(),
    )
    # "( status = 'active' AND age >= 18 )"
"""

from collections.abc import Mapping
from typing import Any

from entitykit.core.errors import InvalidFilterValue, UnknownFilterAttribute
from entitykit.core.values import to_list
from entitykit.observability.logging import get_logger
from entitykit.query.expressions import FilterOperations
from entitykit.query.filters import (
    AttributeFilter,
    EntityFilter,
    FilterGroup,
    classify_filter,
    is_complex_filter_value,
)
from entitykit.query.operators import FilterOperator, resolve_operator

log = get_logger(__name__)


def make_parentheses_group(items: list[str], delimiter: str) -> str:
    """Join expressions with ``delimiter``.

    Empty expressions are dropped. One remaining expression is returned as
    is; several are joined by the upper-cased delimiter inside a single pair
    of parentheses.

    Example:
        >>> make_parentheses_group(["a = 1", "b = 2"], "and")
        '( a = 1 AND b = 2 )'
        >>> make_parentheses_group(["a = 1"], "or")
        'a = 1'
    """
    expressions = [item for item in items if item]
    if not expressions:
        return ""
    if len(expressions) == 1:
        return expressions[0]
    return f"( {f' {delimiter.upper()} '.join(expressions)} )"


def _resolve_attribute(attributes: Mapping[str, Any], name: Any) -> Any:
    ref = attributes.get(name) if isinstance(name, str) else None
    if ref is None:
        raise UnknownFilterAttribute(str(name))
    return ref


def _resolve_value(value: Any, attributes: Mapping[str, Any], operations: FilterOperations) -> Any:
    if is_complex_filter_value(value):
        if value["valType"] == "propRef":
            return operations.name(_resolve_attribute(attributes, value["val"]))
        return value["val"]
    if isinstance(value, list | tuple):
        return [_resolve_value(item, attributes, operations) for item in value]
    return value


def _compile_clause(
    operator: FilterOperator,
    key: str,
    ref: Any,
    raw_value: Any,
    attributes: Mapping[str, Any],
    operations: FilterOperations,
) -> str:
    value = _resolve_value(raw_value, attributes, operations)

    match operator:
        case FilterOperator.EQ:
            return operations.eq(ref, value)
        case FilterOperator.NE:
            return operations.ne(ref, value)
        case FilterOperator.GT:
            return operations.gt(ref, value)
        case FilterOperator.GTE:
            return operations.gte(ref, value)
        case FilterOperator.LT:
            return operations.lt(ref, value)
        case FilterOperator.LTE:
            return operations.lte(ref, value)
        case FilterOperator.BETWEEN:
            if not isinstance(value, list | tuple) or len(value) != 2:
                raise InvalidFilterValue(
                    f"'{key}' expects exactly two values",
                    operator=key,
                    value=raw_value,
                )
            return operations.between(ref, value[0], value[1])
        case FilterOperator.BEGINS:
            return operations.begins(ref, value)
        case FilterOperator.CONTAINS:
            return make_parentheses_group(
                [operations.contains(ref, item) for item in to_list(value)], "and"
            )
        case FilterOperator.CONTAINS_SOME:
            return make_parentheses_group(
                [operations.contains(ref, item) for item in to_list(value)], "or"
            )
        case FilterOperator.NOT_CONTAINS:
            return make_parentheses_group(
                [operations.not_contains(ref, item) for item in to_list(value)], "and"
            )
        case FilterOperator.IN:
            return make_parentheses_group(
                [operations.eq(ref, item) for item in to_list(value)], "or"
            )
        case FilterOperator.NIN:
            return make_parentheses_group(
                [operations.ne(ref, item) for item in to_list(value)], "and"
            )
        case FilterOperator.EXISTS:
            return operations.exists(ref) if value else operations.not_exists(ref)
        case FilterOperator.IS_NULL:
            return operations.not_exists(ref) if value else operations.exists(ref)
        case FilterOperator.IS_EMPTY:
            return operations.eq(ref, "") if value else operations.ne(ref, "")


def compile_attribute_filter(
    filter: AttributeFilter,
    attributes: Mapping[str, Any],
    operations: FilterOperations,
) -> str:
    """Compile the operator clauses of one attribute, in insertion order.

    Raises:
        UnknownFilterAttribute: If the attribute is not in ``attributes``.
        InvalidFilterValue: If a ``between`` clause does not have two values.
    """
    ref = _resolve_attribute(attributes, filter.attribute)

    fragments = []
    for key, raw_value in filter.criteria.items():
        operator = resolve_operator(key)
        if operator is None:
            log.debug(
                "query.filter.operator_skipped",
                attribute=filter.attribute,
                operator=key,
            )
            continue
        fragments.append(_compile_clause(operator, key, ref, raw_value, attributes, operations))

    return make_parentheses_group(fragments, filter.logical_op)


def compile_entity_filter(
    filter: EntityFilter,
    attributes: Mapping[str, Any],
    operations: FilterOperations,
) -> str:
    """Compile each attribute's criteria and combine them with the filter's logical op."""
    return make_parentheses_group(
        [
            compile_attribute_filter(attribute_filter, attributes, operations)
            for attribute_filter in filter.attribute_filters()
        ],
        filter.logical_op,
    )


def compile_filter_group(
    group: FilterGroup,
    attributes: Mapping[str, Any],
    operations: FilterOperations,
) -> str:
    """Compile a group as ``and-branch AND or-branch AND NOT not-branch``."""
    and_expression = make_parentheses_group(
        [compile_filter(child, attributes, operations) for child in group.and_], "and"
    )
    or_expression = make_parentheses_group(
        [compile_filter(child, attributes, operations) for child in group.or_], "or"
    )
    not_expression = make_parentheses_group(
        [compile_filter(child, attributes, operations) for child in group.not_], "and"
    )
    if not_expression:
        not_expression = f"NOT {not_expression}"

    return make_parentheses_group([and_expression, or_expression, not_expression], "and")


def compile_filter(
    filter: Any,
    attributes: Mapping[str, Any],
    operations: FilterOperations,
) -> str:
    """Compile any filter description into an expression string.

    Args:
        filter: A filter variant or a raw mapping in one of the filter shapes.
        attributes: Attribute name to repository attribute reference.
        operations: The repository's operation primitives.

    Returns:
        The compiled expression, or ``''`` for an empty filter.

    Raises:
        InvalidFilterShape: If ``filter`` is not exactly one filter shape.
        UnknownFilterAttribute: If a filter names an unknown attribute.
        InvalidFilterValue: If an operator receives an unusable value.
    """
    match classify_filter(filter):
        case AttributeFilter() as attribute_filter:
            return compile_attribute_filter(attribute_filter, attributes, operations)
        case EntityFilter() as entity_filter:
            return compile_entity_filter(entity_filter, attributes, operations)
        case FilterGroup() as group:
            return compile_filter_group(group, attributes, operations)
