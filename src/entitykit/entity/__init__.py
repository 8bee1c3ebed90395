"""Entity schemas, the CRUD pipeline and the entity service."""

from entitykit.entity.crud import (
    CrudCollaborators,
    create_entity,
    delete_entity,
    get_entity,
    list_entity,
    query_entity,
    update_entity,
    upsert_entity,
)
from entitykit.entity.protocols import (
    AuditLogger,
    AuditRecord,
    AuthorizationResult,
    Authorizer,
    Repository,
    ValidationResult,
    Validator,
)
from entitykit.entity.schema import (
    EntityAttribute,
    EntityIndex,
    EntitySchema,
    IndexKey,
    load_entity_schema,
    load_entity_schema_file,
)
from entitykit.entity.service import EntityService
from entitykit.entity.uniqueness import check_uniqueness_and_update, generate_unique_value

__all__ = [
    # Schema
    "EntityAttribute",
    "EntityIndex",
    "EntitySchema",
    "IndexKey",
    "load_entity_schema",
    "load_entity_schema_file",
    # Contracts
    "AuditLogger",
    "AuditRecord",
    "AuthorizationResult",
    "Authorizer",
    "Repository",
    "ValidationResult",
    "Validator",
    # Pipeline
    "CrudCollaborators",
    "create_entity",
    "delete_entity",
    "get_entity",
    "list_entity",
    "query_entity",
    "update_entity",
    "upsert_entity",
    # Service
    "EntityService",
    "check_uniqueness_and_update",
    "generate_unique_value",
]
