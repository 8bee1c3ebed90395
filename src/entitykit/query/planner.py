"""Index selection for list and query operations.

The planner offers the equality conditions of a filter to the
repository's own key matcher. If the repository can build a key from
them, the planner maps the repository's internal index identifier back
to the schema's index name. Otherwise it looks for an index whose
partition key template equals the entity name. ``None`` means the caller
has to scan the primary index.

The planner never ranks indexes itself; among equality matches the
repository's choice wins, and any equality match wins over a template.
"""

from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

from entitykit.observability.logging import get_logger
from entitykit.query.filters import (
    AttributeFilter,
    EntityFilter,
    FilterGroup,
    is_complex_filter_value,
    is_filter_group,
)
from entitykit.query.operators import FilterOperator, resolve_operator

if TYPE_CHECKING:
    from entitykit.entity.schema import EntitySchema

log = get_logger(__name__)

PRIMARY_INDEX_ID = ""


class KeyMatch(BaseModel, frozen=True):
    """What a repository can build from a set of equality conditions.

    Attributes:
        keys: Attribute name to value for every condition used in the key.
        index: Internal identifier of the index; ``""`` is the primary index.
        should_scan: True when no key could be built and a scan is required.
    """

    keys: dict[str, Any] = Field(default_factory=dict)
    index: str = PRIMARY_INDEX_ID
    should_scan: bool = True


class IndexMatch(BaseModel, frozen=True):
    """The chosen index and the equality values consumed by its key."""

    index_name: str
    index_filters: dict[str, Any] = Field(default_factory=dict)


type KeyMatcher = Callable[[dict[str, Any]], KeyMatch | None]


def _is_scalar(value: Any) -> bool:
    return not isinstance(value, Mapping | list | tuple | set) or is_complex_filter_value(value)


def _equality_value(criteria: Any) -> tuple[bool, Any]:
    """Return ``(True, value)`` when ``criteria`` is a plain equality."""
    if not isinstance(criteria, Mapping):
        if isinstance(criteria, list | tuple | set):
            return False, None
        return True, criteria

    clauses = [(key, value) for key, value in criteria.items() if resolve_operator(key) is not None]
    if len(clauses) != 1:
        return False, None

    key, value = clauses[0]
    if resolve_operator(key) is not FilterOperator.EQ or not _is_scalar(value):
        return False, None
    if is_complex_filter_value(value):
        if value["valType"] == "propRef":
            return False, None
        value = value["val"]
    return True, value


def _unwrap_equality(value: Any) -> Any:
    found, unwrapped = _equality_value(value)
    return unwrapped if found else value


def extract_equality_filters(filters: Any) -> dict[str, Any]:
    """Collect the attribute equalities a key could be built from.

    Accepts an attribute -> value/criteria mapping, an entity or attribute
    filter, or a group (only its ``and`` branch counts). Entity filters
    combined with ``or`` contribute nothing.
    """
    if filters is None:
        return {}

    if isinstance(filters, AttributeFilter):
        if filters.logical_op != "and":
            return {}
        found, value = _equality_value(filters.criteria)
        return {filters.attribute: value} if found else {}

    if isinstance(filters, EntityFilter):
        if filters.logical_op != "and":
            return {}
        return extract_equality_filters(filters.criteria)

    if isinstance(filters, FilterGroup):
        equalities: dict[str, Any] = {}
        for child in filters.and_:
            equalities.update(extract_equality_filters(child))
        return equalities

    if not isinstance(filters, Mapping) or is_filter_group(filters):
        return {}

    if isinstance(filters.get("attribute"), str):
        criteria = {k: v for k, v in filters.items() if k != "attribute"}
        if str(criteria.get("logicalOp", "and")).lower() != "and":
            return {}
        found, value = _equality_value(criteria)
        return {filters["attribute"]: value} if found else {}

    if str(filters.get("logicalOp", "and")).lower() != "and":
        return {}

    equalities = {}
    for attribute, criteria in filters.items():
        if attribute in ("logicalOp", "filterId", "filterLabel"):
            continue
        found, value = _equality_value(criteria)
        if found:
            equalities[attribute] = value
    return equalities


def find_template_index(schema: "EntitySchema", entity_name: str) -> str | None:
    """Name of the first index whose partition key template is ``entity_name``."""
    wanted = entity_name.lower()
    for name, index in schema.indexes.items():
        template = index.pk.template
        if template is not None and template.lower() == wanted:
            return name
    return None


def find_matching_index(
    schema: "EntitySchema",
    filters: Any,
    entity_name: str,
    key_matcher: KeyMatcher,
) -> IndexMatch | None:
    """Choose the index a list or query should run against.

    Args:
        schema: The entity schema with its declared indexes.
        filters: The caller's filters; see :func:`extract_equality_filters`.
        entity_name: Used for the template fallback, case-insensitively.
        key_matcher: The repository's ``key_match`` primitive.

    Returns:
        The matched index, or None when the primary index has to be scanned.
    """
    equalities = extract_equality_filters(filters)

    if equalities:
        key_match = key_matcher(equalities)
        if key_match is not None and not key_match.should_scan:
            found = schema.index_by_id(key_match.index)
            if found is not None:
                index_name = found[0]
                index_filters = {
                    attribute: _unwrap_equality(value)
                    for attribute, value in key_match.keys.items()
                }
                log.debug(
                    "query.planner.key_match",
                    entity_name=entity_name,
                    index_name=index_name,
                    attributes=sorted(index_filters),
                )
                return IndexMatch(index_name=index_name, index_filters=index_filters)
            log.warning(
                "query.planner.unknown_index",
                entity_name=entity_name,
                index=key_match.index,
            )

    template_index = find_template_index(schema, entity_name)
    if template_index is not None:
        log.debug(
            "query.planner.template_match",
            entity_name=entity_name,
            index_name=template_index,
        )
        return IndexMatch(index_name=template_index)

    log.debug("query.planner.scan", entity_name=entity_name)
    return None
