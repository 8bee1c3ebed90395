"""Operation primitives the filter compiler renders through.

A repository exposes an attribute-reference map and a set of operation
primitives; the compiler only ever combines the strings those primitives
return. :class:`TextOperations` is a repository-independent rendering
used for display and for tests.
"""

import json
from typing import Any, Protocol


class FilterOperations(Protocol):
    """Boolean primitives over attribute references.

    ``ref`` is whatever the repository's attribute map holds for an
    attribute; ``value`` is a literal or the result of :meth:`name`.
    """

    def eq(self, ref: Any, value: Any) -> str: ...

    def ne(self, ref: Any, value: Any) -> str: ...

    def gt(self, ref: Any, value: Any) -> str: ...

    def gte(self, ref: Any, value: Any) -> str: ...

    def lt(self, ref: Any, value: Any) -> str: ...

    def lte(self, ref: Any, value: Any) -> str: ...

    def between(self, ref: Any, lower: Any, upper: Any) -> str: ...

    def begins(self, ref: Any, value: Any) -> str: ...

    def contains(self, ref: Any, value: Any) -> str: ...

    def not_contains(self, ref: Any, value: Any) -> str: ...

    def exists(self, ref: Any) -> str: ...

    def not_exists(self, ref: Any) -> str: ...

    def name(self, ref: Any) -> Any:
        """Wrap ``ref`` so it is rendered as an attribute, not a literal."""
        ...


class _AttributeName(str):
    """Marks a value as a same-record attribute reference."""


def text_attribute_refs(attribute_names: list[str]) -> dict[str, str]:
    """Attribute-reference map for :class:`TextOperations`."""
    return {name: name for name in attribute_names}


class TextOperations:
    """Render filters as a readable expression.

    Example:
        >>> ops = TextOperations()
        >>> ops.eq("status", "active")
        "status = 'active'"
        >>> ops.gt("total", ops.name("limit"))
        'total > limit'
    """

    @staticmethod
    def literal(value: Any) -> str:
        """Render ``value`` as an expression literal."""
        if isinstance(value, _AttributeName):
            return str(value)
        if value is None:
            return "null"
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, int | float):
            return repr(value)
        if isinstance(value, str):
            escaped = value.replace("'", "''")
            return f"'{escaped}'"
        return json.dumps(value, default=str, sort_keys=True)

    def _compare(self, ref: Any, symbol: str, value: Any) -> str:
        return f"{ref} {symbol} {self.literal(value)}"

    def eq(self, ref: Any, value: Any) -> str:
        return self._compare(ref, "=", value)

    def ne(self, ref: Any, value: Any) -> str:
        return self._compare(ref, "<>", value)

    def gt(self, ref: Any, value: Any) -> str:
        return self._compare(ref, ">", value)

    def gte(self, ref: Any, value: Any) -> str:
        return self._compare(ref, ">=", value)

    def lt(self, ref: Any, value: Any) -> str:
        return self._compare(ref, "<", value)

    def lte(self, ref: Any, value: Any) -> str:
        return self._compare(ref, "<=", value)

    def between(self, ref: Any, lower: Any, upper: Any) -> str:
        return f"{ref} BETWEEN {self.literal(lower)} AND {self.literal(upper)}"

    def begins(self, ref: Any, value: Any) -> str:
        return f"begins_with({ref}, {self.literal(value)})"

    def contains(self, ref: Any, value: Any) -> str:
        return f"contains({ref}, {self.literal(value)})"

    def not_contains(self, ref: Any, value: Any) -> str:
        return f"NOT contains({ref}, {self.literal(value)})"

    def exists(self, ref: Any) -> str:
        return f"attribute_exists({ref})"

    def not_exists(self, ref: Any) -> str:
        return f"attribute_not_exists({ref})"

    def name(self, ref: Any) -> _AttributeName:
        return _AttributeName(ref)
