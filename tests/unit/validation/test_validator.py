"""Unit tests for entitykit.validation.validator module."""

from typing import Any

import pytest

from entitykit.validation.messages import DEFAULT_MESSAGES, render_message
from entitykit.validation.validator import (
    RuleValidator,
    check_rule,
    make_error_message,
    make_message_ids,
    validate_input,
)

VALIDATIONS: dict[str, Any] = {
    "email": {"required": True, "pattern": r"^[^@]+@[^@]+$"},
    "age": {"gte": 0, "lt": {"value": 130, "message": "Nobody is {received}"}},
    "slug": {"maxLength": 5, "operations": ["create"]},
}


def validate(input: dict[str, Any], operation: str = "create", **kwargs: Any) -> Any:
    return validate_input(
        operation_name=operation,
        entity_name="user",
        entity_validations=VALIDATIONS,
        input=input,
        **kwargs,
    )


class TestCheckRule:
    @pytest.mark.parametrize(
        ("rule", "expected", "value", "passed"),
        [
            ("required", True, "x", True),
            ("required", True, "", False),
            ("required", True, None, False),
            ("required", False, None, True),
            ("minLength", 3, "ab", False),
            ("maxLength", 3, [1, 2, 3], True),
            ("pattern", r"^\d+$", "123", True),
            ("datatype", "number", True, False),
            ("datatype", "map", {}, True),
            ("eq", 1, 1, True),
            ("neq", 1, 1, False),
            ("gt", 1, 2, True),
            ("lte", 1, 2, False),
            ("gte", 1, "a", False),
            ("inList", ["a", "b"], "a", True),
            ("notInList", ["a", "b"], "a", False),
            ("readOnly", True, "x", False),
            ("readOnly", False, "x", True),
            ("nullable", False, None, False),
            ("nullable", False, 0, True),
            ("nullable", True, None, True),
        ],
    )
    def test_rules(self, rule: str, expected: Any, value: Any, passed: bool) -> None:
        assert check_rule(rule, expected, value)[0] is passed

    def test_length_rules_refine_to_length(self) -> None:
        assert check_rule("maxLength", 2, "abcd") == (False, 4)

    def test_unknown_rule(self) -> None:
        with pytest.raises(ValueError, match="Unknown validation rule"):
            check_rule("isFancy", True, "x")


class TestMessages:
    def test_message_ids_most_specific_first(self) -> None:
        assert make_message_ids("user", "email", "maxLength", None) == [
            "validation.entity.user.email.maxlength",
            "validation.email.maxlength",
            "validation.maxlength",
        ]
        assert make_message_ids("user", "email", "eq", "custom.id")[0] == "custom.id"

    def test_override_beats_default(self) -> None:
        ids = make_message_ids("user", "email", "required", None)
        message = make_error_message(
            ids, {"validation.email.required": "Email please"}, key="email"
        )
        assert message == "Email please"

    def test_default_template(self) -> None:
        ids = make_message_ids("user", "email", "required", None)
        assert make_error_message(ids, {}, key="email") == "Value for 'email' is required"

    def test_fallback_template(self) -> None:
        message = make_error_message(
            ["validation.custom"],
            {},
            key="x",
            validationName="custom",
            validationValue=1,
            received=2,
            refinedReceived=2,
        )
        assert message == "Validation failed for 'x'; expected 'custom/1', received '2/2'."

    def test_render_keeps_unknown_placeholders(self) -> None:
        assert render_message("{key} {other}", key="a") == "a {other}"
        assert render_message("{key}", key=None) == ""

    def test_every_default_mentions_key(self) -> None:
        assert all("{key}" in template for template in DEFAULT_MESSAGES.values())


class TestValidateInput:
    def test_valid_input(self) -> None:
        result = validate({"email": "a@b.c", "age": 30, "slug": "abc"})
        assert result.passed
        assert result.errors == []

    def test_collects_structured_errors(self) -> None:
        result = validate({"email": "nope", "age": -1})

        assert not result.passed
        assert [(e["path"], e["rule"]) for e in result.errors] == [
            ("email", "pattern"),
            ("age", "gte"),
        ]
        error = result.errors[1]
        assert error["expected"] == 0
        assert error["received"] == -1
        assert error["message"] == "Value for 'age' should be greater than or equal to '0'"

    def test_custom_rule_message(self) -> None:
        result = validate({"email": "a@b.c", "age": 200})
        assert result.errors[0]["message"] == "Nobody is 200"

    def test_missing_value_only_fails_required(self) -> None:
        result = validate({})
        assert [(e["path"], e["rule"]) for e in result.errors] == [("email", "required")]

    def test_required_skipped_on_update(self) -> None:
        assert validate({}, operation="update").passed

    def test_operations_restrict_rules(self) -> None:
        assert not validate({"email": "a@b.c", "slug": "too-long"}).passed
        assert validate({"slug": "too-long"}, operation="update").passed

    def test_read_operations_are_unchecked(self) -> None:
        assert validate({}, operation="get").passed

    def test_overrides_are_used(self) -> None:
        result = validate(
            {},
            overridden_error_messages={"validation.entity.user.email.required": "Need an email"},
        )
        assert result.errors[0]["message"] == "Need an email"


class TestPresenceRules:
    RULES: dict[str, Any] = {
        "createdBy": {"readOnly": True},
        "title": {"nullable": False, "minLength": 3},
    }

    def check(self, input: dict[str, Any], operation: str) -> list[tuple[str, str]]:
        result = validate_input(
            operation_name=operation,
            entity_name="document",
            entity_validations=self.RULES,
            input=input,
        )
        return [(e["path"], e["rule"]) for e in result.errors]

    def test_read_only_rejected_on_update(self) -> None:
        assert self.check({"createdBy": "mallory"}, "update") == [("createdBy", "readOnly")]

    def test_read_only_rejected_even_when_cleared(self) -> None:
        assert self.check({"createdBy": None}, "update") == [("createdBy", "readOnly")]

    @pytest.mark.parametrize("operation", ["create", "upsert"])
    def test_read_only_allowed_when_writing_whole_entity(self, operation: str) -> None:
        assert self.check({"createdBy": "ann"}, operation) == []

    @pytest.mark.parametrize("operation", ["create", "upsert", "update"])
    def test_explicit_none_rejected_when_not_nullable(self, operation: str) -> None:
        assert self.check({"title": None}, operation) == [("title", "nullable")]

    def test_absent_attributes_pass(self) -> None:
        assert self.check({}, "update") == []
        assert self.check({}, "create") == []

    def test_messages(self) -> None:
        result = validate_input(
            operation_name="update",
            entity_name="document",
            entity_validations=self.RULES,
            input={"createdBy": "mallory", "title": None},
        )
        assert [e["message"] for e in result.errors] == [
            "Value for 'createdBy' is read-only and cannot be updated",
            "Value for 'title' cannot be null",
        ]


class TestRuleValidator:
    async def test_validate_entity(self) -> None:
        result = await RuleValidator().validate_entity(
            operation_name="create",
            entity_name="user",
            entity_validations=VALIDATIONS,
            overridden_error_messages={},
            input={"email": "a@b.c"},
            actor={"id": "admin"},
        )
        assert result.passed
