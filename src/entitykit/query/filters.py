"""Filter descriptions as a tagged union.

A filter description is exactly one of:

* :class:`AttributeFilter` - one attribute with one or more operator
  clauses, e.g. ``{"attribute": "age", "gte": 18, "lt": 65}``;
* :class:`EntityFilter` - a map of attribute name to criteria, e.g.
  ``{"status": {"eq": "active"}, "age": {"gte": 18}}``;
* :class:`FilterGroup` - explicit ``and``/``or``/``not`` composition of
  nested filter descriptions.

Raw mappings (as received from JSON or a query string) are turned into a
variant by :func:`classify_filter`, which raises ``InvalidFilterShape``
when a value matches no shape or more than one.
"""

from collections.abc import Mapping
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from entitykit.core.errors import InvalidFilterShape
from entitykit.query.operators import FILTER_META_KEYS, is_operator_key

type LogicalOp = Literal["and", "or"]

GROUP_BRANCH_KEYS = ("and", "or", "not")
_GROUP_META_KEYS = frozenset({"filterId", "filterLabel"})
_ENTITY_META_KEYS = frozenset({"filterId", "filterLabel", "logicalOp"})
_COMPLEX_VALUE_TYPES = frozenset({"literal", "propRef", "expression"})


def _normalize_logical_op(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().lower()
    return value


class AttributeFilter(BaseModel, frozen=True):
    """Operator clauses on a single attribute.

    Attributes:
        attribute: Name of the filtered attribute.
        criteria: Operator key to value, in insertion order. Keys that are
            not operators are kept and skipped at compile time.
        logical_op: How the clauses are combined.
    """

    model_config = ConfigDict(populate_by_name=True)

    kind: Literal["attribute"] = "attribute"
    attribute: str
    criteria: dict[str, Any] = Field(default_factory=dict)
    logical_op: LogicalOp = Field(default="and", alias="logicalOp")
    filter_id: str | None = Field(default=None, alias="filterId")
    filter_label: str | None = Field(default=None, alias="filterLabel")

    @field_validator("logical_op", mode="before")
    @classmethod
    def normalize_logical_op(cls, v: Any) -> Any:
        """Accept any casing for the logical operator."""
        return _normalize_logical_op(v)

    def to_raw(self) -> dict[str, Any]:
        """Return the serializable mapping form of this filter."""
        raw: dict[str, Any] = {"attribute": self.attribute, **self.criteria}
        if self.logical_op != "and":
            raw["logicalOp"] = self.logical_op
        return _with_meta(raw, self.filter_id, self.filter_label)


class EntityFilter(BaseModel, frozen=True):
    """Criteria for several attributes combined by one logical operator."""

    model_config = ConfigDict(populate_by_name=True)

    kind: Literal["entity"] = "entity"
    criteria: dict[str, dict[str, Any]] = Field(default_factory=dict)
    logical_op: LogicalOp = Field(default="and", alias="logicalOp")
    filter_id: str | None = Field(default=None, alias="filterId")
    filter_label: str | None = Field(default=None, alias="filterLabel")

    @field_validator("logical_op", mode="before")
    @classmethod
    def normalize_logical_op(cls, v: Any) -> Any:
        """Accept any casing for the logical operator."""
        return _normalize_logical_op(v)

    def attribute_filters(self) -> list[AttributeFilter]:
        """Expand the criteria map into one attribute filter per attribute."""
        filters = []
        for attribute, criteria in self.criteria.items():
            filters.append(
                AttributeFilter(
                    attribute=attribute,
                    criteria={k: v for k, v in criteria.items() if k not in FILTER_META_KEYS},
                    logical_op=criteria.get("logicalOp", "and"),
                )
            )
        return filters

    def to_raw(self) -> dict[str, Any]:
        """Return the serializable mapping form of this filter."""
        raw: dict[str, Any] = {key: dict(value) for key, value in self.criteria.items()}
        if self.logical_op != "and":
            raw["logicalOp"] = self.logical_op
        return _with_meta(raw, self.filter_id, self.filter_label)


class FilterGroup(BaseModel, frozen=True):
    """Explicit composition of nested filters.

    ``and_`` children must all hold, at least one ``or_`` child must hold
    (when there are any), and the ``not_`` children must not all hold.
    """

    model_config = ConfigDict(populate_by_name=True)

    kind: Literal["group"] = "group"
    and_: list["Filter"] = Field(default_factory=list, alias="and")
    or_: list["Filter"] = Field(default_factory=list, alias="or")
    not_: list["Filter"] = Field(default_factory=list, alias="not")
    filter_id: str | None = Field(default=None, alias="filterId")
    filter_label: str | None = Field(default=None, alias="filterLabel")

    @field_validator("and_", "or_", "not_", mode="before")
    @classmethod
    def classify_children(cls, v: Any) -> Any:
        """Turn raw child mappings into filter variants."""
        if v is None:
            return []
        if isinstance(v, list | tuple):
            return [classify_filter(item) for item in v]
        return v

    def is_empty(self) -> bool:
        """True when no branch has children."""
        return not (self.and_ or self.or_ or self.not_)

    def to_raw(self) -> dict[str, Any]:
        """Return the serializable mapping form of this group."""
        raw: dict[str, Any] = {
            "and": [child.to_raw() for child in self.and_],
            "or": [child.to_raw() for child in self.or_],
            "not": [child.to_raw() for child in self.not_],
        }
        return _with_meta(raw, self.filter_id, self.filter_label)


Filter = Annotated[AttributeFilter | EntityFilter | FilterGroup, Field(discriminator="kind")]

FilterGroup.model_rebuild()


def _with_meta(raw: dict[str, Any], filter_id: str | None, filter_label: str | None) -> dict[str, Any]:
    if filter_id is not None:
        raw["filterId"] = filter_id
    if filter_label is not None:
        raw["filterLabel"] = filter_label
    return raw


def is_complex_filter_value(value: Any) -> bool:
    """Check for a ``{"val": ..., "valType": ...}`` tagged filter value."""
    return (
        isinstance(value, Mapping)
        and "val" in value
        and value.get("valType") in _COMPLEX_VALUE_TYPES
    )


def is_filter_criteria(value: Any) -> bool:
    """A mapping with at least one recognised operator key."""
    return isinstance(value, Mapping) and any(
        isinstance(key, str) and is_operator_key(key) for key in value
    )


def is_attribute_filter(value: Any) -> bool:
    """Filter criteria that also name their ``attribute``."""
    return is_filter_criteria(value) and isinstance(value.get("attribute"), str)


def is_entity_filter(value: Any) -> bool:
    """A non-empty map whose every non-meta key maps to filter criteria."""
    if not isinstance(value, Mapping) or not value:
        return False
    attribute_keys = [key for key in value if key not in _ENTITY_META_KEYS]
    return bool(attribute_keys) and all(is_filter_criteria(value[key]) for key in attribute_keys)


def is_filter_group(value: Any) -> bool:
    """A non-empty map of ``and``/``or``/``not`` lists of filters."""
    if not isinstance(value, Mapping) or not value:
        return False

    branches = [key for key in GROUP_BRANCH_KEYS if key in value]
    if not branches:
        return False
    if any(key not in GROUP_BRANCH_KEYS and key not in _GROUP_META_KEYS for key in value):
        return False

    for key in branches:
        items = value[key]
        if not isinstance(items, list | tuple):
            return False
        for item in items:
            if isinstance(item, AttributeFilter | EntityFilter | FilterGroup):
                continue
            if not (is_entity_filter(item) or is_filter_group(item) or is_attribute_filter(item)):
                return False
    return True


def classify_filter(value: Any) -> AttributeFilter | EntityFilter | FilterGroup:
    """Turn a raw filter description into its variant.

    Already-classified variants are returned unchanged. The three shapes are
    mutually exclusive: an attribute filter names its ``attribute`` with a
    string, entity filter values are criteria mappings and group branches
    are lists, so at most one predicate accepts a description.

    Raises:
        InvalidFilterShape: If ``value`` matches no shape.
    """
    if isinstance(value, AttributeFilter | EntityFilter | FilterGroup):
        return value

    if not isinstance(value, Mapping):
        raise InvalidFilterShape(
            f"Filter must be a mapping, got {type(value).__name__}", value=value
        )

    shapes = [
        shape
        for shape, check in (
            ("entity", is_entity_filter),
            ("group", is_filter_group),
            ("attribute", is_attribute_filter),
        )
        if check(value)
    ]

    if not shapes:
        raise InvalidFilterShape("Value is not a valid filter description", value=value)

    match shapes[0]:
        case "attribute":
            return AttributeFilter(
                attribute=value["attribute"],
                criteria={k: v for k, v in value.items() if k not in FILTER_META_KEYS},
                logical_op=value.get("logicalOp", "and"),
                filter_id=value.get("filterId"),
                filter_label=value.get("filterLabel"),
            )
        case "entity":
            return EntityFilter(
                criteria={
                    key: dict(criteria)
                    for key, criteria in value.items()
                    if key not in _ENTITY_META_KEYS
                },
                logical_op=value.get("logicalOp", "and"),
                filter_id=value.get("filterId"),
                filter_label=value.get("filterLabel"),
            )
        case _:
            return FilterGroup(
                and_=value.get("and", []),
                or_=value.get("or", []),
                not_=value.get("not", []),
                filter_id=value.get("filterId"),
                filter_label=value.get("filterLabel"),
            )
