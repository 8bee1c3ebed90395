"""Dotted attribute paths to nested attribute-selection trees.

``["user.name", "user.address.city"]`` becomes::

    {"user": {"attributes": {"name": True, "address": {"attributes": {"city": True}}}}}

The tree declares which nested sub-attributes a caller wants returned; it
is not a filter.
"""

import re
from typing import Any

# Same delimiter set as query-string values, minus the dot which separates path segments
PATH_LIST_DELIMITERS = re.compile(r"(?:&|,|\+|;|:|\s)+")


def split_attribute_paths(paths: str | list[str] | tuple[str, ...]) -> list[str]:
    """Normalize a delimited string or a sequence of paths into a list."""
    if isinstance(paths, str):
        return [path for path in PATH_LIST_DELIMITERS.split(paths) if path]
    return [path.strip() for path in paths if path and path.strip()]


def _format(tree: dict[str, Any]) -> dict[str, Any]:
    return {
        key: {"attributes": _format(value)} if isinstance(value, dict) else value
        for key, value in tree.items()
    }


def parse_entity_attribute_paths(paths: str | list[str] | tuple[str, ...]) -> dict[str, Any]:
    """Build the nested selection tree for ``paths``.

    A leaf selected on its own and later used as a parent becomes a parent;
    a parent later selected on its own stays a parent.

    Example:
        >>> parse_entity_attribute_paths("id,user.name")
        {'id': True, 'user': {'attributes': {'name': True}}}
    """
    tree: dict[str, Any] = {}

    for path in split_attribute_paths(paths):
        keys = [key for key in path.split(".") if key]
        if not keys:
            continue

        node = tree
        for key in keys[:-1]:
            child = node.get(key)
            if not isinstance(child, dict):
                child = node[key] = {}
            node = child

        if not isinstance(node.get(keys[-1]), dict):
            node[keys[-1]] = True

    return _format(tree)
