"""Redaction helpers for entity payloads.

Entity payloads travel through log lines, event payloads and audit
records. The helpers here mask the attributes that commonly carry
credentials before such data leaves the process.
"""

from typing import Any

REDACTED = "<REDACTED>"

# Attribute names (case-insensitive substrings) that should be masked
SENSITIVE_FIELD_NAMES = frozenset(
    {
        "password",
        "passwd",
        "secret",
        "token",
        "credential",
        "api_key",
        "apikey",
        "api-key",
        "authorization",
        "private_key",
        "otp",
    }
)

# Value prefixes that indicate secrets regardless of the attribute name
SENSITIVE_PREFIXES = (
    "sk-",
    "pk-",
    "bearer ",
    "token ",
    "secret_",
)


def mask_secret(value: str, visible_chars: int = 4) -> str:
    """Mask a secret for safe logging, keeping the last few characters.

    Example:
        >>> mask_secret("sk-1234567890abcdef")
        'sk-...cdef'
    """
    if not value:
        return "<empty>"

    if len(value) <= visible_chars + 4:
        return "*" * len(value)

    if "-" in value[:6]:
        prefix = value[: value.index("-") + 1]
        return f"{prefix}...{value[-visible_chars:]}"

    return f"...{value[-visible_chars:]}"


def is_sensitive_field(field_name: str) -> bool:
    """Check if an attribute name indicates sensitive data."""
    if not field_name:
        return False

    field_lower = field_name.lower()
    return any(sensitive in field_lower for sensitive in SENSITIVE_FIELD_NAMES)


def is_sensitive_value(value: Any) -> bool:
    """Check if a value looks like a credential."""
    if not isinstance(value, str):
        return False

    value_lower = value.lower()
    return any(value_lower.startswith(prefix) for prefix in SENSITIVE_PREFIXES)


def redact(data: Any) -> Any:
    """Return a copy of ``data`` with sensitive values masked.

    Mappings are processed key by key, lists element by element; any other
    value is returned unchanged unless it looks like a credential.

    Example:
        >>> redact({"password": "hunter2", "name": "test"})
        {'password': '<REDACTED>', 'name': 'test'}
    """
    if isinstance(data, dict):
        result = {}
        for key, value in data.items():
            if isinstance(key, str) and is_sensitive_field(key):
                result[key] = REDACTED
            else:
                result[key] = redact(value)
        return result

    if isinstance(data, list | tuple):
        return [redact(item) for item in data]

    if is_sensitive_value(data):
        return mask_secret(data)

    return data
