"""Filter operators and their accepted aliases."""

from enum import Enum


class FilterOperator(str, Enum):
    """Canonical filter operators understood by the compiler."""

    EQ = "eq"
    NE = "ne"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    BETWEEN = "between"
    BEGINS = "begins"
    CONTAINS = "contains"
    CONTAINS_SOME = "containsSome"
    NOT_CONTAINS = "notContains"
    IN = "in"
    NIN = "nin"
    EXISTS = "exists"
    IS_NULL = "isNull"
    IS_EMPTY = "isEmpty"


OPERATOR_ALIASES: dict[FilterOperator, tuple[str, ...]] = {
    FilterOperator.EQ: ("equalTo", "equal", "eq", "==", "==="),
    FilterOperator.NE: ("notEqualTo", "notEqual", "neq", "ne", "!=", "!==", "<>"),
    FilterOperator.GT: ("greaterThan", "greaterThen", "gt", ">"),
    FilterOperator.GTE: ("greaterThanOrEqualTo", "greaterThenOrEqualTo", "gte", ">=", ">=="),
    FilterOperator.LT: ("lessThan", "lessThen", "lt", "<"),
    FilterOperator.LTE: ("lessThanOrEqualTo", "lessThenOrEqualTo", "lte", "<=", "<=="),
    FilterOperator.BETWEEN: ("between", "bt", "bw", "><"),
    FilterOperator.BEGINS: ("begins", "beginsWith", "startsWith", "like"),
    FilterOperator.CONTAINS: ("contains", "has", "includes"),
    FilterOperator.CONTAINS_SOME: ("containsSome", "hasSome", "includesSome"),
    FilterOperator.NOT_CONTAINS: ("notContains", "notHas", "notIncludes"),
    FilterOperator.IN: ("in", "inList"),
    FilterOperator.NIN: ("nin", "notIn", "notInList"),
    FilterOperator.EXISTS: ("exists",),
    FilterOperator.IS_NULL: ("isNull",),
    FilterOperator.IS_EMPTY: ("isEmpty",),
}

_ALIAS_LOOKUP: dict[str, FilterOperator] = {
    alias: operator for operator, aliases in OPERATOR_ALIASES.items() for alias in aliases
}

# Keys of an attribute filter that describe the filter rather than a clause
FILTER_META_KEYS = frozenset({"filterId", "filterLabel", "attribute", "logicalOp"})

# Operators whose query-string value is split into a list
ARRAY_VALUE_OPERATOR_KEYS = frozenset(
    {
        "in",
        "inList",
        "nin",
        "notIn",
        "notInList",
        "contains",
        "includes",
        "has",
        "notContains",
        "notIncludes",
        "notHas",
        "containsSome",
        "includesSome",
        "hasSome",
    }
)


def resolve_operator(key: str) -> FilterOperator | None:
    """Map an operator key or alias to its canonical operator.

    Returns None for keys that are not operators, including the filter
    meta keys.
    """
    if key in FILTER_META_KEYS:
        return None
    return _ALIAS_LOOKUP.get(key)


def is_operator_key(key: str) -> bool:
    """Check whether ``key`` is a recognised operator or alias."""
    return resolve_operator(key) is not None
