"""Contracts of the collaborators the CRUD pipeline consumes.

The pipeline never depends on concrete implementations: repositories,
validators, authorizers and audit loggers are anything with the methods
below. :mod:`entitykit.persistence`, :mod:`entitykit.validation`,
:mod:`entitykit.authorization` and :mod:`entitykit.audit` ship
implementations.
"""

from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from typing import Any, Protocol

from pydantic import BaseModel, Field

from entitykit.query.expressions import FilterOperations
from entitykit.query.planner import KeyMatch

type Actor = Mapping[str, Any] | None
type Tenant = Mapping[str, Any] | str | None

# (attribute refs, operations) -> filter expression
type WherePredicate = Callable[[Mapping[str, Any], FilterOperations], str]


# =============================================================================
# Repository
# =============================================================================


class RepositoryOperation(Protocol):
    """A prepared repository call; nothing happens until ``go``."""

    async def go(self) -> dict[str, Any]: ...


class PatchOperation(Protocol):
    def set(self, data: Mapping[str, Any]) -> "PatchOperation": ...

    async def go(self) -> dict[str, Any]: ...


class QueryOperation(Protocol):
    """A prepared list/query call refined by ``where`` predicates."""

    def where(self, predicate: WherePredicate) -> "QueryOperation": ...

    async def go(self, **options: Any) -> dict[str, Any]: ...


class Repository(Protocol):
    """Keyed, secondary-indexed storage of one entity type.

    Every call returns the repository's native response, commonly
    ``{"data": entity}`` or ``{"data": [entities], "cursor": ...}``.
    """

    query: Mapping[str, Callable[[dict[str, Any]], QueryOperation]]

    def get(self, identifiers: Mapping[str, Any]) -> RepositoryOperation: ...

    def create(self, data: Mapping[str, Any]) -> RepositoryOperation: ...

    def upsert(self, data: Mapping[str, Any]) -> RepositoryOperation: ...

    def patch(self, identifiers: Mapping[str, Any]) -> PatchOperation: ...

    def delete(self, identifiers: Mapping[str, Any]) -> RepositoryOperation: ...

    def match(self, equalities: Mapping[str, Any]) -> QueryOperation: ...

    def key_match(self, equalities: dict[str, Any]) -> KeyMatch: ...


# =============================================================================
# Validation
# =============================================================================


class ValidationResult(BaseModel, frozen=True):
    """Outcome of validating one input.

    Attributes:
        passed: True when every rule held.
        errors: Structured failures, each with ``path``, ``rule`` and
            ``message`` keys.
    """

    passed: bool
    errors: list[dict[str, Any]] = Field(default_factory=list)


class Validator(Protocol):
    async def validate_entity(
        self,
        *,
        operation_name: str,
        entity_name: str,
        entity_validations: Mapping[str, Any],
        overridden_error_messages: Mapping[str, str],
        input: Mapping[str, Any],
        actor: Actor = None,
    ) -> ValidationResult: ...


# =============================================================================
# Authorization
# =============================================================================


class AuthorizationResult(BaseModel, frozen=True):
    """Outcome of an authorization check."""

    passed: bool
    errors: list[Any] = Field(default_factory=list)


class Authorizer(Protocol):
    async def authorize(
        self,
        *,
        entity_name: str,
        crud_type: str,
        identifiers: Mapping[str, Any] | None = None,
        data: Mapping[str, Any] | None = None,
        actor: Actor = None,
        tenant: Tenant = None,
    ) -> AuthorizationResult: ...


# =============================================================================
# Audit
# =============================================================================


class AuditRecord(BaseModel, frozen=True):
    """One audited CRUD call.

    Attributes:
        entity_name: Entity the call targeted.
        crud_type: The CRUD operation.
        identifiers: Identifiers of the affected entity, if any.
        data: The input payload, if any.
        entity: The repository response.
        actor: Who performed the call.
        tenant: Tenant the call ran for.
        correlation_id: Correlation id of the call's events.
        enabled: Per-call override; False skips the record.
        timestamp: When the call completed.
    """

    entity_name: str
    crud_type: str
    identifiers: dict[str, Any] | None = None
    data: Any = None
    entity: Any = None
    actor: Any = None
    tenant: Any = None
    correlation_id: str | None = None
    enabled: bool | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


class AuditLogger(Protocol):
    async def audit(self, record: AuditRecord) -> None: ...
