"""Filter primitives rendered as SQLite predicates over JSON documents.

Attributes are read with ``json_extract(data, '$."name"')`` and every
literal becomes a bound parameter, so compiled filters never interpolate
user values into SQL. One :class:`SqlOperations` instance collects the
parameters of one statement.
"""

from dataclasses import dataclass
import json
import re
from typing import Any

from entitykit.core.errors import PersistenceError

_ATTRIBUTE_NAME = re.compile(r"^[A-Za-z0-9_\-]+$")


@dataclass(frozen=True, slots=True)
class SqlAttribute:
    """An attribute of the ``data`` JSON document."""

    name: str

    def __post_init__(self) -> None:
        if not _ATTRIBUTE_NAME.match(self.name):
            raise PersistenceError(
                f"Attribute name cannot be used in a JSON path: {self.name!r}",
                operation="filter",
                table="entities",
            )

    @property
    def path(self) -> str:
        return f"'$.\"{self.name}\"'"

    @property
    def expression(self) -> str:
        return f"json_extract(data, {self.path})"

    def __str__(self) -> str:
        return self.expression


class _RawSql(str):
    """SQL emitted as-is instead of being bound."""


def sql_attribute_refs(attribute_names: list[str]) -> dict[str, SqlAttribute]:
    """Attribute-reference map for :class:`SqlOperations`."""
    return {name: SqlAttribute(name) for name in attribute_names}


class SqlOperations:
    """Build SQLite predicates, collecting bound parameters in :attr:`params`."""

    def __init__(self, prefix: str = "p") -> None:
        self._prefix = prefix
        self.params: dict[str, Any] = {}

    def bind(self, value: Any) -> str:
        """Bind ``value`` and return its placeholder."""
        if isinstance(value, _RawSql):
            return str(value)
        if isinstance(value, list | tuple | dict | set):
            value = json.dumps(list(value) if isinstance(value, set | tuple) else value, default=str)
        name = f"{self._prefix}{len(self.params)}"
        self.params[name] = value
        return f":{name}"

    def eq(self, ref: SqlAttribute, value: Any) -> str:
        if value is None:
            return self.not_exists(ref)
        return f"{ref} = {self.bind(value)}"

    def ne(self, ref: SqlAttribute, value: Any) -> str:
        if value is None:
            return self.exists(ref)
        return f"{ref} IS NOT {self.bind(value)}"

    def gt(self, ref: SqlAttribute, value: Any) -> str:
        return f"{ref} > {self.bind(value)}"

    def gte(self, ref: SqlAttribute, value: Any) -> str:
        return f"{ref} >= {self.bind(value)}"

    def lt(self, ref: SqlAttribute, value: Any) -> str:
        return f"{ref} < {self.bind(value)}"

    def lte(self, ref: SqlAttribute, value: Any) -> str:
        return f"{ref} <= {self.bind(value)}"

    def between(self, ref: SqlAttribute, lower: Any, upper: Any) -> str:
        return f"{ref} BETWEEN {self.bind(lower)} AND {self.bind(upper)}"

    def begins(self, ref: SqlAttribute, value: Any) -> str:
        placeholder = self.bind(value)
        return f"substr({ref}, 1, length({placeholder})) = {placeholder}"

    def contains(self, ref: SqlAttribute, value: Any) -> str:
        placeholder = self.bind(value)
        return (
            f"CASE WHEN json_type(data, {ref.path}) = 'array' "
            f"THEN EXISTS (SELECT 1 FROM json_each(data, {ref.path}) WHERE json_each.value = {placeholder}) "
            f"ELSE instr({ref}, {placeholder}) > 0 END"
        )

    def not_contains(self, ref: SqlAttribute, value: Any) -> str:
        return f"NOT COALESCE({self.contains(ref, value)}, 0)"

    def exists(self, ref: SqlAttribute) -> str:
        return f"json_type(data, {ref.path}) IS NOT NULL"

    def not_exists(self, ref: SqlAttribute) -> str:
        return f"json_type(data, {ref.path}) IS NULL"

    def name(self, ref: SqlAttribute) -> _RawSql:
        return _RawSql(ref.expression)
