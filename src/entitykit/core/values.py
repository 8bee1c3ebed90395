"""Value helpers shared by the filter and query-string modules."""

from datetime import datetime
import json
import re
from typing import Any

_NUMBER_PATTERN = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")
_INTEGER_PATTERN = re.compile(r"^[+-]?\d+$")


def to_list(value: Any) -> list[Any]:
    """Wrap a scalar into a one-element list; lists and tuples are copied."""
    if isinstance(value, list | tuple | set):
        return list(value)
    return [value]


def is_empty_value(value: Any) -> bool:
    """Return True for None, empty strings and empty collections."""
    if value is None:
        return True
    if isinstance(value, str | dict | list | tuple | set):
        return len(value) == 0
    return False


def pick_keys(record: dict[str, Any], keys: list[str]) -> dict[str, Any]:
    """Return the subset of ``record`` restricted to ``keys`` that are present."""
    return {key: record[key] for key in keys if key in record}


def parse_value_to_correct_type(
    target: Any,
    *,
    parse_null: bool = True,
    parse_boolean: bool = True,
    parse_number: bool = True,
    parse_json: bool = False,
    parse_date: bool = False,
) -> Any:
    """Infer a typed value from a URL query-string value.

    Strings are converted in this order: ``''`` stays ``''``, ``null`` and
    ``undefined`` become ``None``, ``true``/``false`` become booleans,
    decimal strings become ``int`` or ``float``. JSON arrays/objects and ISO
    dates are only converted when enabled. Lists and dicts are converted
    element by element; other values are returned unchanged.
    """
    options = {
        "parse_null": parse_null,
        "parse_boolean": parse_boolean,
        "parse_number": parse_number,
        "parse_json": parse_json,
        "parse_date": parse_date,
    }

    if isinstance(target, list):
        return [parse_value_to_correct_type(item, **options) for item in target]

    if isinstance(target, dict):
        return {
            key: parse_value_to_correct_type(value, **options)
            for key, value in target.items()
        }

    if not isinstance(target, str) or target == "":
        return target

    if parse_null and target in ("null", "undefined"):
        return None

    if parse_boolean and target in ("true", "false"):
        return target == "true"

    if parse_number and _NUMBER_PATTERN.match(target):
        if _INTEGER_PATTERN.match(target):
            return int(target)
        return float(target)

    if parse_json and target[:1] in ("{", "["):
        try:
            return json.loads(target)
        except json.JSONDecodeError:
            return target

    if parse_date:
        try:
            return datetime.fromisoformat(target)
        except ValueError:
            return target

    return target
