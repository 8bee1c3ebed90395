"""CRUD orchestration.

Every operation runs the same linear pipeline::

    pre -> pre/validate -> validate -> post/validate -> authorize
        -> [uniqueness] -> persist -> post -> audit

Each phase is published through the event dispatcher as a structured
entity event, so listeners can observe or extend a phase without touching
the pipeline. Validation and authorization failures end the call; listener
failures never do.

Collaborators are passed explicitly on every call:

    collaborators = CrudCollaborators(
        validator=RuleValidator(),
        authorizer=AllowAllAuthorizer(),
        audit_logger=NullAuditLogger(),
        event_dispatcher=EventDispatcher(),
    )
    response = await create_entity(service, collaborators, data={"email": "a@b.c"})

Each operation returns the repository's native response unchanged.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol
from uuid import uuid4

from entitykit.config.models import UniquenessConfig
from entitykit.core.errors import AuthorizationError, EntityValidationError, MissingPayload
from entitykit.core.values import is_empty_value
from entitykit.entity.protocols import (
    Actor,
    AuditLogger,
    AuditRecord,
    Authorizer,
    QueryOperation,
    Repository,
    Tenant,
    Validator,
)
from entitykit.entity.schema import EntitySchema
from entitykit.entity.uniqueness import enforce_unique_attributes
from entitykit.events.dispatcher import EventDispatcher
from entitykit.events.entity import EntityEventEmitter
from entitykit.observability.logging import bound_context, get_logger
from entitykit.query.compiler import compile_filter
from entitykit.query.filters import (
    AttributeFilter,
    EntityFilter,
    FilterGroup,
    classify_filter,
    is_filter_criteria,
    is_filter_group,
)
from entitykit.query.planner import find_matching_index

log = get_logger(__name__)

PAGINATION_KEYS = ("order", "pager", "cursor", "count", "limit", "pages", "attributes")


@dataclass(frozen=True, slots=True)
class CrudCollaborators:
    """The pluggable strategies every CRUD call runs with."""

    validator: Validator
    authorizer: Authorizer
    audit_logger: AuditLogger
    event_dispatcher: EventDispatcher


class CrudEntityService(Protocol):
    """What the pipeline needs from an entity service."""

    uniqueness: UniquenessConfig

    def get_repository(self) -> Repository: ...

    def get_entity_schema(self) -> EntitySchema: ...

    def get_entity_name(self) -> str: ...

    def get_entity_validations(self) -> Mapping[str, Any]: ...

    def get_overridden_entity_validation_error_messages(self) -> Mapping[str, str]: ...

    def extract_entity_identifiers(
        self, input: Any, access_pattern: str | None = None
    ) -> dict[str, Any]: ...

    async def is_unique_attribute_value(
        self,
        attribute_name: str,
        attribute_value: Any,
        ignored_identifiers: Mapping[str, Any] | None = None,
    ) -> bool: ...


# =============================================================================
# Pipeline steps
# =============================================================================


class _Call:
    """State of one CRUD call: names, context and the event emitter."""

    def __init__(
        self,
        entity_service: CrudEntityService,
        collaborators: CrudCollaborators,
        operation: str,
        *,
        actor: Actor,
        tenant: Tenant,
        context: Mapping[str, Any] | None,
    ) -> None:
        self.entity_service = entity_service
        self.collaborators = collaborators
        self.operation = operation
        self.entity_name = entity_service.get_entity_name()
        self.actor = actor
        self.tenant = tenant

        base_context = {
            "actor": actor,
            "tenant": tenant,
            "correlation_id": uuid4().hex,
        }
        self.context = {**base_context, **(context or {})}
        self.correlation_id = self.context["correlation_id"]
        self.events = EntityEventEmitter(
            collaborators.event_dispatcher,
            entity=self.entity_name,
            operation=operation,
            context=self.context,
        )

    async def validate(self, input: Any) -> None:
        """Run the validate phases; raise on failure."""
        await self.events.emit("pre", {"input": input}, sub_phase="validate")

        result = await self.collaborators.validator.validate_entity(
            operation_name=self.operation,
            entity_name=self.entity_name,
            entity_validations=self.entity_service.get_entity_validations(),
            overridden_error_messages=(
                self.entity_service.get_overridden_entity_validation_error_messages()
            ),
            input=input,
            actor=self.actor,
        )

        await self.events.emit(
            "post",
            {"input": input, "validation_result": result},
            sub_phase="validate",
            success_fail="success" if result.passed else "fail",
        )

        if not result.passed:
            log.info(
                "entity.crud.validation_failed",
                entity_name=self.entity_name,
                operation=self.operation,
                error_count=len(result.errors),
            )
            raise EntityValidationError(
                result.errors,
                message=f"Validation failed for {self.operation} on {self.entity_name}",
            )

    async def authorize(
        self,
        *,
        identifiers: Mapping[str, Any] | None = None,
        data: Mapping[str, Any] | None = None,
    ) -> None:
        """Ask the authorizer; raise when it refuses."""
        result = await self.collaborators.authorizer.authorize(
            entity_name=self.entity_name,
            crud_type=self.operation,
            identifiers=identifiers,
            data=data,
            actor=self.actor,
            tenant=self.tenant,
        )
        if not result.passed:
            log.info(
                "entity.crud.authorization_failed",
                entity_name=self.entity_name,
                operation=self.operation,
            )
            raise AuthorizationError(self.entity_name, self.operation, errors=result.errors)

    async def persist(self, operation: Any, **options: Any) -> dict[str, Any]:
        """Run the prepared repository call and publish its outcome."""
        try:
            response = await operation.go(**options)
        except Exception as e:
            await self.events.emit("post", {"error": str(e)}, success_fail="fail")
            raise
        await self.events.emit("post", {"entity": response}, success_fail="success")
        return response

    async def audit(
        self,
        *,
        entity: Any,
        identifiers: Mapping[str, Any] | None = None,
        data: Any = None,
    ) -> None:
        await self.collaborators.audit_logger.audit(
            AuditRecord(
                entity_name=self.entity_name,
                crud_type=self.operation,
                identifiers=dict(identifiers) if identifiers is not None else None,
                data=data,
                entity=entity,
                actor=self.actor,
                tenant=self.tenant,
                correlation_id=self.correlation_id,
            )
        )

    def started(self, **fields: Any) -> None:
        log.debug(f"entity.crud.{self.operation}.started", entity_name=self.entity_name, **fields)

    def completed(self) -> None:
        log.debug(f"entity.crud.{self.operation}.completed", entity_name=self.entity_name)


def _require_payload(data: Any, operation: str) -> dict[str, Any]:
    if not data or not isinstance(data, Mapping):
        raise MissingPayload(operation)
    return dict(data)


def strip_empty_options(options: Mapping[str, Any] | None) -> dict[str, Any]:
    """Drop pagination options that are None, empty strings or empty collections."""
    return {key: value for key, value in (options or {}).items() if not is_empty_value(value)}


def pagination_options(options: Mapping[str, Any] | None) -> dict[str, Any]:
    """The non-empty options among :data:`PAGINATION_KEYS`; other keys are dropped."""
    stripped = strip_empty_options(options)
    unknown = sorted(key for key in stripped if key not in PAGINATION_KEYS)
    if unknown:
        log.debug("entity.crud.pagination.ignored", keys=unknown)
    return {key: value for key, value in stripped.items() if key in PAGINATION_KEYS}


def normalize_list_filters(
    filters: Any,
) -> AttributeFilter | EntityFilter | FilterGroup | None:
    """Classify list filters, reading bare ``attribute: value`` entries as equalities."""
    if filters is None or (isinstance(filters, Mapping) and not filters):
        return None
    if isinstance(filters, AttributeFilter | EntityFilter | FilterGroup):
        return filters
    if isinstance(filters, Mapping) and "attribute" not in filters and not is_filter_group(filters):
        filters = {
            key: value
            if key in ("logicalOp", "filterId", "filterLabel") or is_filter_criteria(value)
            else {"eq": value}
            for key, value in filters.items()
        }
    return classify_filter(filters)


async def _run_filtered(
    call: _Call,
    filters: AttributeFilter | EntityFilter | FilterGroup | None,
    pagination: Mapping[str, Any] | None,
) -> dict[str, Any]:
    entity_service = call.entity_service
    repository = entity_service.get_repository()

    index_match = find_matching_index(
        entity_service.get_entity_schema(),
        filters,
        call.entity_name,
        repository.key_match,
    )

    operation: QueryOperation
    if index_match is not None:
        operation = repository.query[index_match.index_name](dict(index_match.index_filters))
    else:
        operation = repository.match({})

    if filters is not None:
        refinement = filters
        operation = operation.where(
            lambda attributes, operations: compile_filter(refinement, attributes, operations)
        )

    return await call.persist(operation, **pagination_options(pagination))


# =============================================================================
# Operations
# =============================================================================


async def get_entity(
    entity_service: CrudEntityService,
    collaborators: CrudCollaborators,
    *,
    id: Any,
    actor: Actor = None,
    tenant: Tenant = None,
    context: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """Fetch one entity by identifier."""
    call = _Call(
        entity_service, collaborators, "get", actor=actor, tenant=tenant, context=context
    )
    with bound_context(correlation_id=call.correlation_id):
        call.started(id=id)

        identifiers = entity_service.extract_entity_identifiers(id)
        await call.events.emit("pre", {"identifiers": identifiers})
        await call.validate(identifiers)
        await call.authorize(identifiers=identifiers)

        response = await call.persist(entity_service.get_repository().get(identifiers))

        await call.audit(entity=response, identifiers=identifiers)
        call.completed()
        return response


async def create_entity(
    entity_service: CrudEntityService,
    collaborators: CrudCollaborators,
    *,
    data: Mapping[str, Any] | None,
    actor: Actor = None,
    tenant: Tenant = None,
    context: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """Create an entity after validation, authorization and uniqueness checks.

    Raises:
        MissingPayload: If ``data`` is empty; raised before any collaborator runs.
        EntityValidationError: If validation or uniqueness fails.
        AuthorizationError: If the authorizer refuses.
    """
    payload = _require_payload(data, "create")

    call = _Call(
        entity_service, collaborators, "create", actor=actor, tenant=tenant, context=context
    )
    with bound_context(correlation_id=call.correlation_id):
        call.started()

        await call.events.emit("pre", {"data": payload})
        await call.validate(payload)
        await call.authorize(data=payload)
        await enforce_unique_attributes(
            entity_service,
            payload,
            max_attempts=entity_service.uniqueness.max_attempts,
        )

        response = await call.persist(entity_service.get_repository().create(payload))

        await call.audit(entity=response, data=payload)
        call.completed()
        return response


async def upsert_entity(
    entity_service: CrudEntityService,
    collaborators: CrudCollaborators,
    *,
    data: Mapping[str, Any] | None,
    actor: Actor = None,
    tenant: Tenant = None,
    context: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """Create or replace an entity.

    The entity's own identifiers are ignored by the uniqueness check, so
    replacing an entity never collides with itself.
    """
    payload = _require_payload(data, "upsert")

    call = _Call(
        entity_service, collaborators, "upsert", actor=actor, tenant=tenant, context=context
    )
    with bound_context(correlation_id=call.correlation_id):
        call.started()

        await call.events.emit("pre", {"data": payload})
        await call.validate(payload)
        await call.authorize(data=payload)

        identifiers = entity_service.extract_entity_identifiers(payload)
        await enforce_unique_attributes(
            entity_service,
            payload,
            ignored_identifiers=identifiers or None,
            max_attempts=entity_service.uniqueness.max_attempts,
        )

        response = await call.persist(entity_service.get_repository().upsert(payload))

        await call.audit(entity=response, data=payload)
        call.completed()
        return response


async def update_entity(
    entity_service: CrudEntityService,
    collaborators: CrudCollaborators,
    *,
    id: Any,
    data: Mapping[str, Any] | None,
    actor: Actor = None,
    tenant: Tenant = None,
    context: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """Patch an entity."""
    payload = _require_payload(data, "update")

    call = _Call(
        entity_service, collaborators, "update", actor=actor, tenant=tenant, context=context
    )
    with bound_context(correlation_id=call.correlation_id):
        call.started(id=id)

        await call.events.emit("pre", {"data": payload})
        await call.validate(payload)

        await call.events.emit("pre", {"id": id}, sub_phase="compositeKey")
        identifiers = entity_service.extract_entity_identifiers(id)
        await call.events.emit("post", {"identifiers": identifiers}, sub_phase="compositeKey")

        await call.authorize(identifiers=identifiers, data=payload)
        await enforce_unique_attributes(
            entity_service,
            payload,
            ignored_identifiers=identifiers,
            max_attempts=entity_service.uniqueness.max_attempts,
        )

        patch = entity_service.get_repository().patch(identifiers).set(payload)
        response = await call.persist(patch)

        await call.audit(entity=response, identifiers=identifiers, data=payload)
        call.completed()
        return response


async def delete_entity(
    entity_service: CrudEntityService,
    collaborators: CrudCollaborators,
    *,
    id: Any,
    actor: Actor = None,
    tenant: Tenant = None,
    context: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """Delete one entity by identifier."""
    call = _Call(
        entity_service, collaborators, "delete", actor=actor, tenant=tenant, context=context
    )
    with bound_context(correlation_id=call.correlation_id):
        call.started(id=id)

        identifiers = entity_service.extract_entity_identifiers(id)
        await call.events.emit("pre", {"identifiers": identifiers})
        await call.validate(identifiers)
        await call.authorize(identifiers=identifiers)

        response = await call.persist(entity_service.get_repository().delete(identifiers))

        await call.audit(entity=response, identifiers=identifiers)
        call.completed()
        return response


async def list_entity(
    entity_service: CrudEntityService,
    collaborators: CrudCollaborators,
    *,
    filters: Any = None,
    pagination: Mapping[str, Any] | None = None,
    actor: Actor = None,
    tenant: Tenant = None,
    context: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """List entities matching an entity filter.

    ``filters`` maps attribute names to criteria or bare values (read as
    equalities). The best index is chosen by the planner; the full filter
    is always applied as a refinement.
    """
    call = _Call(
        entity_service, collaborators, "list", actor=actor, tenant=tenant, context=context
    )
    with bound_context(correlation_id=call.correlation_id):
        call.started()

        normalized = normalize_list_filters(filters)
        query = {
            "filters": normalized.to_raw() if normalized is not None else None,
            "pagination": pagination_options(pagination),
        }

        await call.events.emit("pre", {"query": query})
        await call.validate(query)
        await call.authorize()

        response = await _run_filtered(call, normalized, pagination)

        await call.audit(entity=response, data=query)
        call.completed()
        return response


async def query_entity(
    entity_service: CrudEntityService,
    collaborators: CrudCollaborators,
    *,
    filters: Any = None,
    pagination: Mapping[str, Any] | None = None,
    actor: Actor = None,
    tenant: Tenant = None,
    context: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """Query entities with any filter description (attribute, entity or group)."""
    call = _Call(
        entity_service, collaborators, "query", actor=actor, tenant=tenant, context=context
    )
    with bound_context(correlation_id=call.correlation_id):
        call.started()

        classified = None if filters is None else classify_filter(filters)
        if isinstance(classified, FilterGroup) and classified.is_empty():
            classified = None
        query = {
            "filters": classified.to_raw() if classified is not None else None,
            "pagination": pagination_options(pagination),
        }

        await call.events.emit("pre", {"query": query})
        await call.validate(query)
        await call.authorize()

        response = await _run_filtered(call, classified, pagination)

        await call.audit(entity=response, data=query)
        call.completed()
        return response
