"""Query-string parameters to filter descriptions.

A raw query string such as ``status=active&age[gte]=18&tags[in]=a,b`` is
expanded into nested parameters by :func:`parse_query_string` and turned
into a :class:`FilterGroup` by :func:`parse_query_string_params`:

* ``and``/``or``/``not`` keys hold lists of single-attribute objects that
  are parsed recursively into that branch;
* every other key is an attribute. A plain value means ``{eq: value}``, a
  repeated key means ``{in: [values]}``;
* values of membership and containment operators are split on
  ``& , + ; : .``;
* every value is passed through :func:`parse_value_to_correct_type`.

Keyword search helpers live here as well, since search keywords arrive
through the same query string.
"""

from collections.abc import Mapping
import re
from typing import Any
from urllib.parse import parse_qsl

from entitykit.core.errors import InvalidFilterShape, InvalidFilterValue
from entitykit.core.values import parse_value_to_correct_type, to_list
from entitykit.query.filters import (
    GROUP_BRANCH_KEYS,
    AttributeFilter,
    EntityFilter,
    FilterGroup,
    classify_filter,
)
from entitykit.query.operators import ARRAY_VALUE_OPERATOR_KEYS

QUERY_STRING_FILTER_ID = "query_string_params"
KEYWORD_SEARCH_FILTER_ID = "keyword_search"
COMBINED_CRITERIA_FILTER_ID = "combined_criteria"

PARSE_VALUE_DELIMITERS = re.compile(r"(?:&|,|\+|;|:|\.)+")
SEARCH_TERM_DELIMITERS = re.compile(r"(?:&| |,|\+)+")

_KEY_SEGMENT = re.compile(r"\[([^\[\]]*)\]")


# =============================================================================
# Raw query strings
# =============================================================================


def _split_key(key: str, allow_dots: bool) -> list[str]:
    bracket = key.find("[")
    if bracket <= 0:
        head, segments = key, []
    else:
        head, segments = key[:bracket], _KEY_SEGMENT.findall(key[bracket:])

    if allow_dots and "." in head:
        return [part for part in head.split(".") if part] + segments
    return [head, *segments]


def _assign(container: dict[str, Any], segments: list[str], value: str) -> None:
    key, rest = segments[0], segments[1:]
    if key == "":
        key = str(len(container))

    if not rest:
        existing = container.get(key)
        if existing is None:
            container[key] = value
        elif isinstance(existing, list):
            existing.append(value)
        elif isinstance(existing, dict):
            existing[str(len(existing))] = value
        else:
            container[key] = [existing, value]
        return

    child = container.get(key)
    if isinstance(child, list):
        child = {str(index): item for index, item in enumerate(child)}
    elif not isinstance(child, dict):
        # a later nested key replaces an earlier scalar
        child = {}
    container[key] = child
    _assign(child, rest, value)


def _listify(value: Any) -> Any:
    if isinstance(value, list):
        return [_listify(item) for item in value]
    if not isinstance(value, dict):
        return value

    converted = {key: _listify(item) for key, item in value.items()}
    if converted and all(key.isdigit() for key in converted):
        return [converted[key] for key in sorted(converted, key=int)]
    return converted


def parse_query_string(raw: str, *, allow_dots: bool = False) -> dict[str, Any]:
    """Expand a URL query string into nested parameters.

    ``a[b]=1`` nests, ``a[0]=x`` and ``a[]=x`` build lists, and a repeated
    key collects its values into a list. With ``allow_dots``, ``a.b=1`` is
    read like ``a[b]=1``.

    Example:
        >>> parse_query_string("status=active&age[gte]=18")
        {'status': 'active', 'age': {'gte': '18'}}
    """
    params: dict[str, Any] = {}
    for key, value in parse_qsl(raw.lstrip("?"), keep_blank_values=True):
        if not key:
            continue
        _assign(params, _split_key(key, allow_dots), value)
    return _listify(params)


# =============================================================================
# Parameters to filters
# =============================================================================


def _coerce_criteria(criteria: Mapping[str, Any]) -> dict[str, Any]:
    coerced = {}
    for key, value in criteria.items():
        if key in ARRAY_VALUE_OPERATOR_KEYS and isinstance(value, str):
            value = [piece for piece in PARSE_VALUE_DELIMITERS.split(value) if piece]
        coerced[key] = parse_value_to_correct_type(value)
    return coerced


def make_filters_from_query_string_param(name: str, value: Any) -> list[AttributeFilter]:
    """Turn one parameter into attribute filters.

    Branch keys (``and``/``or``/``not``) return the flattened filters of
    their items; any other key returns a single attribute filter.

    Raises:
        InvalidFilterShape: If a branch item is not a mapping.
        InvalidFilterValue: If ``logicalOp`` is neither ``and`` nor ``or``.
    """
    if name in GROUP_BRANCH_KEYS:
        items = list(value.values()) if isinstance(value, Mapping) else to_list(value)
        filters: list[AttributeFilter] = []
        for item in items:
            if not isinstance(item, Mapping):
                raise InvalidFilterShape(
                    f"Items of '{name}' must map attribute names to criteria",
                    value=item,
                )
            for item_name, item_value in item.items():
                filters.extend(make_filters_from_query_string_param(item_name, item_value))
        return filters

    if isinstance(value, list):
        criteria: dict[str, Any] = {"in": value}
    elif isinstance(value, Mapping):
        criteria = dict(value)
    else:
        criteria = {"eq": value}

    logical_op = str(criteria.pop("logicalOp", "and")).strip().lower()
    if logical_op not in ("and", "or"):
        raise InvalidFilterValue(
            f"logicalOp for '{name}' must be 'and' or 'or'",
            operator="logicalOp",
            value=logical_op,
        )

    return [
        AttributeFilter(
            attribute=name,
            criteria=_coerce_criteria(criteria),
            logical_op=logical_op,
        )
    ]


def parse_query_string_params(params: Mapping[str, Any]) -> FilterGroup:
    """Turn flat or nested query-string parameters into a filter group.

    Non-branch parameters land in the ``and`` branch.

    Example:
        >>> group = parse_query_string_params({"status": "active", "age": {"gte": "18"}})
        >>> [f.to_raw() for f in group.and_]
        [{'attribute': 'status', 'eq': 'active'}, {'attribute': 'age', 'gte': 18}]
    """
    branches: dict[str, list[AttributeFilter]] = {key: [] for key in GROUP_BRANCH_KEYS}
    for name, value in params.items():
        branch = name if name in GROUP_BRANCH_KEYS else "and"
        branches[branch].extend(make_filters_from_query_string_param(name, value))

    return FilterGroup(
        and_=branches["and"],
        or_=branches["or"],
        not_=branches["not"],
        filter_id=QUERY_STRING_FILTER_ID,
    )


def parse_query_string_to_filter_group(raw: str, *, allow_dots: bool = False) -> FilterGroup:
    """Parse a raw query string straight into a filter group."""
    return parse_query_string_params(parse_query_string(raw, allow_dots=allow_dots))


# =============================================================================
# Keyword search
# =============================================================================


def split_search_terms(text: str | list[str] | None) -> list[str]:
    """Split free text into search keywords; lists are split item by item."""
    if not text:
        return []
    if isinstance(text, str):
        return [term for term in SEARCH_TERM_DELIMITERS.split(text) if term]
    return [term for item in text for term in split_search_terms(item)]


def make_filter_group_for_search_keywords(
    keywords: list[str],
    attribute_names: list[str] | None = None,
) -> FilterGroup:
    """Build an OR group matching records where any attribute contains all keywords."""
    return FilterGroup(
        or_=[
            AttributeFilter(attribute=name, criteria={"contains": list(keywords)})
            for name in attribute_names or []
        ],
        filter_id=KEYWORD_SEARCH_FILTER_ID,
    )


def add_filter_group_to_criteria(group: FilterGroup, criteria: Any = None) -> FilterGroup:
    """AND ``group`` with existing filter criteria.

    Existing groups keep their branches and get ``group`` appended to
    ``and``; attribute and entity filters are wrapped in a new group.
    """
    if criteria is None:
        return group

    existing = classify_filter(criteria)
    if isinstance(existing, FilterGroup):
        return existing.model_copy(update={"and_": [*existing.and_, group]})

    combined: list[AttributeFilter | EntityFilter | FilterGroup] = [existing, group]
    return FilterGroup(and_=combined, filter_id=COMBINED_CRITERIA_FILTER_ID)
