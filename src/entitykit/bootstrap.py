"""Assemble the CRUD collaborators from configuration.

Nothing in entitykit reaches for a module-level default collaborator; the
application builds one :class:`CrudCollaborators` at startup and passes it
to every :class:`EntityService`.

Usage:
    config = load_config(missing_ok=True)
    database = Database(config.persistence.database_url)
    await database.initialize()

    collaborators = create_collaborators(config, engine=database.engine)
    users = EntityService(schema, SqlEntityRepository(schema, database.engine), collaborators)
"""

from sqlalchemy.ext.asyncio import AsyncEngine

from entitykit.audit import ConsoleAuditLogger, NullAuditLogger, SqlAuditLogger
from entitykit.authorization import AllowAllAuthorizer
from entitykit.config.models import EntitykitConfig
from entitykit.core.errors import ConfigError
from entitykit.entity.crud import CrudCollaborators
from entitykit.entity.protocols import AuditLogger, Authorizer, Validator
from entitykit.events.dispatcher import EventDispatcher
from entitykit.observability.logging import get_logger
from entitykit.validation import RuleValidator

log = get_logger(__name__)


def create_audit_logger(config: EntitykitConfig, *, engine: AsyncEngine | None = None) -> AuditLogger:
    """Build the audit logger named by ``config.audit.backend``.

    Raises:
        ConfigError: If the SQL backend is selected without an engine.
    """
    audit = config.audit
    if not audit.enabled or audit.backend == "null":
        return NullAuditLogger()
    if audit.backend == "console":
        return ConsoleAuditLogger(enabled=audit.enabled)
    if engine is None:
        raise ConfigError(
            "The sql audit backend requires a database engine",
            config_key="audit.backend",
        )
    return SqlAuditLogger(engine, enabled=audit.enabled, raise_on_failure=audit.raise_on_failure)


def create_collaborators(
    config: EntitykitConfig,
    *,
    engine: AsyncEngine | None = None,
    validator: Validator | None = None,
    authorizer: Authorizer | None = None,
    event_dispatcher: EventDispatcher | None = None,
) -> CrudCollaborators:
    """Build the collaborators shared by every entity service.

    Unspecified collaborators get the stock implementations: the rule
    validator, an authorizer that allows everything and a fresh dispatcher.
    """
    collaborators = CrudCollaborators(
        validator=validator or RuleValidator(),
        authorizer=authorizer or AllowAllAuthorizer(),
        audit_logger=create_audit_logger(config, engine=engine),
        event_dispatcher=event_dispatcher or EventDispatcher(),
    )
    log.debug(
        "bootstrap.collaborators.created",
        audit_backend=config.audit.backend,
        validator=type(collaborators.validator).__name__,
        authorizer=type(collaborators.authorizer).__name__,
    )
    return collaborators
