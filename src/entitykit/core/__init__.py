"""entitykit core module - errors, redaction and value helpers."""

from entitykit.core.errors import (
    AuthorizationError,
    ConfigError,
    EntitykitError,
    EntityValidationError,
    FilterError,
    InvalidFilterShape,
    InvalidFilterValue,
    MissingPayload,
    PersistenceError,
    SchemaError,
    UnknownFilterAttribute,
)
from entitykit.core.security import redact
from entitykit.core.values import (
    is_empty_value,
    parse_value_to_correct_type,
    pick_keys,
    to_list,
)

__all__ = [
    # Errors
    "EntitykitError",
    "ConfigError",
    "PersistenceError",
    "SchemaError",
    "FilterError",
    "InvalidFilterShape",
    "UnknownFilterAttribute",
    "InvalidFilterValue",
    "EntityValidationError",
    "MissingPayload",
    "AuthorizationError",
    # Helpers
    "redact",
    "to_list",
    "is_empty_value",
    "pick_keys",
    "parse_value_to_correct_type",
]
