"""Error hierarchy for entitykit.

This module defines the exception hierarchy for entitykit. Errors raised by
external collaborators (repositories, validators, authorizers) are never
wrapped; the ones below are raised by entitykit itself.

Exception Hierarchy:
    EntitykitError (base)
    ├── ConfigError             - Configuration loading and validation issues
    ├── PersistenceError        - Database and storage issues
    ├── SchemaError             - Invalid entity schema declarations
    ├── FilterError             - Filter description problems
    │   ├── InvalidFilterShape      - Value is not exactly one filter shape
    │   ├── UnknownFilterAttribute  - Filter names an attribute the entity lacks
    │   └── InvalidFilterValue      - Operator received an unusable value
    ├── EntityValidationError   - Structured validation failures
    ├── MissingPayload          - Write operation called without data
    └── AuthorizationError      - Actor is not allowed to run the operation
"""

from typing import Any


class EntitykitError(Exception):
    """Base exception for all entitykit errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dict with additional context.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize the error.

        Args:
            message: Human-readable error description.
            details: Optional dict with additional context about the error.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.details:
            return f"{self.message} (details: {self.details})"
        return self.message


class ConfigError(EntitykitError):
    """Error from configuration operations.

    Attributes:
        config_key: The configuration key that caused the error.
        config_file: Path to the config file if applicable.
    """

    def __init__(
        self,
        message: str,
        *,
        config_key: str | None = None,
        config_file: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.config_key = config_key
        self.config_file = config_file


class PersistenceError(EntitykitError):
    """Error from database and storage operations.

    Attributes:
        operation: The operation that failed (e.g., "insert", "select").
        table: The database table involved if applicable.
    """

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        table: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.operation = operation
        self.table = table


class SchemaError(EntitykitError):
    """Raised when an entity schema declaration breaks a schema invariant.

    Attributes:
        entity_name: Name of the entity whose schema is invalid.
    """

    def __init__(
        self,
        message: str,
        *,
        entity_name: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.entity_name = entity_name


class FilterError(EntitykitError):
    """Base class for filter description and compilation errors."""


class InvalidFilterShape(FilterError):
    """Raised when a value is not exactly one of the filter shapes.

    Attributes:
        value: The offending filter value.
    """

    def __init__(
        self,
        message: str,
        *,
        value: Any = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.value = value


class UnknownFilterAttribute(FilterError):
    """Raised when a filter references an attribute the entity does not have.

    Attributes:
        attribute: The unresolvable attribute name.
    """

    def __init__(
        self,
        attribute: str,
        *,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(f"Unknown filter attribute: {attribute!r}", details)
        self.attribute = attribute


class InvalidFilterValue(FilterError):
    """Raised when an operator clause carries a value it cannot use.

    Attributes:
        operator: The operator key as written in the filter.
        value: The rejected value.
    """

    def __init__(
        self,
        message: str,
        *,
        operator: str | None = None,
        value: Any = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.operator = operator
        self.value = value


class EntityValidationError(EntitykitError):
    """Error carrying structured validation failures.

    Raised by the CRUD pipeline when validation fails and by the uniqueness
    enforcer when a value collides and may not be rewritten.

    Attributes:
        errors: List of structured failures, each a dict with at least
            ``path`` and ``message`` keys.
    """

    def __init__(
        self,
        errors: list[dict[str, Any]],
        message: str = "Entity validation failed",
        *,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize validation error.

        Args:
            errors: Structured validation failures.
            message: Human-readable error description.
            details: Optional dict with additional context.
        """
        super().__init__(message, details)
        self.errors = list(errors)

    def __str__(self) -> str:
        """Return the message followed by the individual failure messages."""
        base = super().__str__()
        messages = [str(error.get("message", error)) for error in self.errors]
        if messages:
            return f"{base}: {'; '.join(messages)}"
        return base


class MissingPayload(EntitykitError):
    """Raised when a create, upsert or update call has no data object.

    Attributes:
        operation: The CRUD operation that was called.
    """

    def __init__(
        self,
        operation: str,
        *,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(f"No data provided for {operation} operation", details)
        self.operation = operation


class AuthorizationError(EntitykitError):
    """Raised when the authorizer rejects an operation.

    Attributes:
        entity_name: Entity the operation targeted.
        crud_type: The rejected CRUD operation.
        errors: Reasons reported by the authorizer.
    """

    def __init__(
        self,
        entity_name: str,
        crud_type: str,
        *,
        errors: list[Any] | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            f"Authorization failed for {crud_type} on {entity_name}", details
        )
        self.entity_name = entity_name
        self.crud_type = crud_type
        self.errors = list(errors or [])
