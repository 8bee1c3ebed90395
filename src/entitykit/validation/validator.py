"""Rule-based entity validator.

Entity validations map attribute names to rules::

    {
        "email": {"required": True, "pattern": r"^[^@]+@[^@]+$"},
        "age": {"gte": 18, "lt": {"value": 130, "message": "Too old"}},
        "slug": {"maxLength": 64, "operations": ["create"]},
    }

A rule value is either a plain value or a mapping with ``value`` and
optionally ``message`` and ``messageId``. Rules apply to ``create``,
``upsert`` and ``update`` unless the attribute lists its ``operations``;
``required`` is never checked on ``update`` since update payloads are
partial.

``readOnly`` and ``nullable`` look at whether the attribute is present in
the input rather than at its value: a read-only attribute may not appear in
an ``update`` payload at all, and a non-nullable one may not be sent as
``None``.

Error messages are looked up by message id, most specific first, in the
caller's overrides and then in :data:`DEFAULT_MESSAGES`. For rule
``required`` on ``user.email`` the ids are
``validation.entity.user.email.required``, ``validation.email.required``
and ``validation.required``.
"""

from collections.abc import Mapping
import re
from typing import Any

from entitykit.entity.protocols import Actor, ValidationResult
from entitykit.observability.logging import get_logger
from entitykit.validation.messages import DEFAULT_MESSAGES, FALLBACK_MESSAGE, render_message

log = get_logger(__name__)

DEFAULT_OPERATIONS = frozenset({"create", "upsert", "update"})
RULE_META_KEYS = frozenset({"operations"})
PRESENCE_RULES = frozenset({"readOnly", "nullable"})

_DATATYPE_CHECKS = {
    "string": lambda value: isinstance(value, str),
    "number": lambda value: isinstance(value, int | float) and not isinstance(value, bool),
    "boolean": lambda value: isinstance(value, bool),
    "list": lambda value: isinstance(value, list | tuple),
    "set": lambda value: isinstance(value, set | frozenset | list | tuple),
    "map": lambda value: isinstance(value, Mapping),
    "any": lambda value: True,
}


def _rule_value(raw: Any) -> tuple[Any, str | None, str | None]:
    if isinstance(raw, Mapping) and "value" in raw:
        return raw["value"], raw.get("message"), raw.get("messageId")
    return raw, None, None


def _length(value: Any) -> int:
    try:
        return len(value)
    except TypeError:
        return len(str(value))


def _compare(value: Any, expected: Any, check: Any) -> bool:
    try:
        return bool(check(value, expected))
    except TypeError:
        return False


def check_rule(rule: str, expected: Any, value: Any) -> tuple[bool, Any]:
    """Evaluate one rule.

    Returns:
        ``(passed, refined)`` where ``refined`` is what the rule compared.

    Raises:
        ValueError: If ``rule`` is not a known rule.
    """
    match rule:
        case "required":
            present = value is not None and value != ""
            return (present or not expected), value
        case "minLength":
            length = _length(value)
            return length >= expected, length
        case "maxLength":
            length = _length(value)
            return length <= expected, length
        case "pattern":
            return re.search(expected, str(value)) is not None, value
        case "datatype":
            checker = _DATATYPE_CHECKS.get(str(expected))
            return (checker is not None and checker(value)), type(value).__name__
        case "eq":
            return value == expected, value
        case "neq":
            return value != expected, value
        case "gt":
            return _compare(value, expected, lambda a, b: a > b), value
        case "gte":
            return _compare(value, expected, lambda a, b: a >= b), value
        case "lt":
            return _compare(value, expected, lambda a, b: a < b), value
        case "lte":
            return _compare(value, expected, lambda a, b: a <= b), value
        case "inList":
            return value in list(expected), value
        case "notInList":
            return value not in list(expected), value
        case "readOnly":
            return not expected, value
        case "nullable":
            return bool(expected) or value is not None, value
        case _:
            raise ValueError(f"Unknown validation rule: {rule!r}")


def make_message_ids(entity_name: str, attribute: str, rule: str, message_id: str | None) -> list[str]:
    """Candidate message ids, most specific first."""
    name = rule.lower()
    ids = [
        f"validation.entity.{entity_name}.{attribute}.{name}",
        f"validation.{attribute}.{name}",
        f"validation.{name}",
    ]
    if message_id:
        ids.insert(0, message_id)
    return ids


def make_error_message(
    message_ids: list[str],
    overrides: Mapping[str, str],
    *,
    custom_message: str | None = None,
    **values: Any,
) -> str:
    """Render the first matching template for ``message_ids``."""
    template = custom_message
    if template is None:
        template = next((overrides[i] for i in message_ids if i in overrides), None)
    if template is None:
        template = next((DEFAULT_MESSAGES[i] for i in message_ids if i in DEFAULT_MESSAGES), None)
    return render_message(template or FALLBACK_MESSAGE, **values)


def validate_input(
    *,
    operation_name: str,
    entity_name: str,
    entity_validations: Mapping[str, Mapping[str, Any]],
    input: Mapping[str, Any],
    overridden_error_messages: Mapping[str, str] | None = None,
) -> ValidationResult:
    """Check ``input`` against every rule that applies to ``operation_name``.

    Raises:
        ValueError: If a validation names an unknown rule.
    """
    overrides = overridden_error_messages or {}
    errors: list[dict[str, Any]] = []

    for attribute, rules in entity_validations.items():
        operations = frozenset(rules.get("operations") or DEFAULT_OPERATIONS)
        if operation_name not in operations:
            continue

        present = isinstance(input, Mapping) and attribute in input
        value = input.get(attribute) if present else None

        for rule, raw in rules.items():
            if rule in RULE_META_KEYS:
                continue
            if rule == "required" and operation_name == "update":
                continue
            if rule in PRESENCE_RULES:
                if not present or (rule == "readOnly" and operation_name != "update"):
                    continue
            elif rule != "required" and value is None:
                continue

            expected, custom_message, message_id = _rule_value(raw)
            passed, refined = check_rule(rule, expected, value)
            if passed:
                continue

            message_ids = make_message_ids(entity_name, attribute, rule, message_id)
            errors.append(
                {
                    "path": attribute,
                    "rule": rule,
                    "expected": expected,
                    "received": value,
                    "message_ids": message_ids,
                    "message": make_error_message(
                        message_ids,
                        overrides,
                        custom_message=custom_message,
                        key=attribute,
                        validationName=rule,
                        validationValue=expected,
                        received=value,
                        refinedReceived=refined,
                    ),
                }
            )

    return ValidationResult(passed=not errors, errors=errors)


class RuleValidator:
    """Validator collaborator backed by :func:`validate_input`."""

    async def validate_entity(
        self,
        *,
        operation_name: str,
        entity_name: str,
        entity_validations: Mapping[str, Any],
        overridden_error_messages: Mapping[str, str],
        input: Mapping[str, Any],
        actor: Actor = None,
    ) -> ValidationResult:
        result = validate_input(
            operation_name=operation_name,
            entity_name=entity_name,
            entity_validations=entity_validations,
            input=input,
            overridden_error_messages=overridden_error_messages,
        )
        log.debug(
            "validation.entity.completed",
            entity_name=entity_name,
            operation=operation_name,
            passed=result.passed,
            error_count=len(result.errors),
        )
        return result
