"""Unit tests for entitykit.core.security module."""

from entitykit.core.security import (
    REDACTED,
    is_sensitive_field,
    is_sensitive_value,
    mask_secret,
    redact,
)


class TestMaskSecret:
    def test_empty(self) -> None:
        assert mask_secret("") == "<empty>"

    def test_short_value_fully_masked(self) -> None:
        assert mask_secret("abc") == "***"

    def test_prefixed_value_keeps_prefix_and_tail(self) -> None:
        assert mask_secret("sk-1234567890abcdef") == "sk-...cdef"

    def test_plain_value_keeps_tail(self) -> None:
        assert mask_secret("abcdefghijklmnop") == "...mnop"


class TestSensitiveDetection:
    def test_sensitive_field_names(self) -> None:
        assert is_sensitive_field("password")
        assert is_sensitive_field("user_api_key")
        assert is_sensitive_field("ACCESS_TOKEN")
        assert not is_sensitive_field("email")
        assert not is_sensitive_field("")

    def test_sensitive_values(self) -> None:
        assert is_sensitive_value("sk-abcdef")
        assert is_sensitive_value("Bearer xyz")
        assert not is_sensitive_value("hello")
        assert not is_sensitive_value(42)


class TestRedact:
    def test_masks_sensitive_keys(self) -> None:
        assert redact({"password": "hunter2", "name": "test"}) == {
            "password": REDACTED,
            "name": "test",
        }

    def test_recurses_into_nested_structures(self) -> None:
        data = {"user": {"token": "t", "tags": ["a", {"secret": "s"}]}}
        assert redact(data) == {"user": {"token": REDACTED, "tags": ["a", {"secret": REDACTED}]}}

    def test_masks_credential_like_values(self) -> None:
        assert redact({"note": "sk-1234567890abcdef"}) == {"note": "sk-...cdef"}

    def test_does_not_mutate_input(self) -> None:
        data = {"password": "x"}
        redact(data)
        assert data == {"password": "x"}
