"""Audit loggers.

Three backends ship with entitykit:

- :class:`NullAuditLogger` discards records.
- :class:`ConsoleAuditLogger` emits one structured log line per record.
- :class:`SqlAuditLogger` stores records in the ``audit_records`` table.

Payloads are redacted before they leave the process. A record whose
``enabled`` flag is False is skipped by every backend.
"""

from typing import Any
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine
import stamina

from entitykit.core.errors import PersistenceError
from entitykit.core.security import redact
from entitykit.entity.protocols import AuditRecord
from entitykit.observability.logging import get_logger
from entitykit.persistence.schema import audit_records_table

log = get_logger(__name__)


def _should_record(enabled: bool, record: AuditRecord) -> bool:
    if record.enabled is not None:
        return record.enabled
    return enabled


class NullAuditLogger:
    async def audit(self, record: AuditRecord) -> None:
        return None


class ConsoleAuditLogger:
    """Log audit records through structlog."""

    def __init__(self, *, enabled: bool = True) -> None:
        self.enabled = enabled

    async def audit(self, record: AuditRecord) -> None:
        if not _should_record(self.enabled, record):
            return

        log.info(
            "audit.record.logged",
            entity_name=record.entity_name,
            crud_type=record.crud_type,
            identifiers=redact(record.identifiers),
            data=redact(record.data),
            actor=redact(record.actor),
            tenant=record.tenant,
            correlation_id=record.correlation_id,
        )


class SqlAuditLogger:
    """Persist audit records.

    Inserts retry on transient SQLite errors (a locked database, mostly).
    Audit writes are best-effort: once retries are exhausted the failure is
    logged and the CRUD call that produced the record still succeeds. Pass
    ``raise_on_failure=True`` to get a :class:`PersistenceError` instead.

    Usage:
        audit_logger = SqlAuditLogger(database.engine)
        await audit_logger.audit(record)
        rows = await audit_logger.recent(limit=20)
    """

    def __init__(
        self,
        engine: AsyncEngine,
        *,
        enabled: bool = True,
        max_retries: int = 3,
        raise_on_failure: bool = False,
    ) -> None:
        self._engine = engine
        self.enabled = enabled
        self._max_retries = max_retries
        self.raise_on_failure = raise_on_failure

    async def _insert(self, values: dict[str, Any]) -> None:
        async with self._engine.begin() as conn:
            await conn.execute(audit_records_table.insert().values(**values))

    async def audit(self, record: AuditRecord) -> None:
        if not _should_record(self.enabled, record):
            return

        values = {
            "id": str(uuid4()),
            "entity_name": record.entity_name,
            "crud_type": record.crud_type,
            "correlation_id": record.correlation_id,
            "actor": redact(record.actor),
            "tenant": redact(record.tenant),
            "identifiers": redact(record.identifiers),
            "payload": redact(
                record.model_dump(mode="json", include={"data", "entity"})
            ),
            "timestamp": record.timestamp,
        }

        @stamina.retry(
            on=OperationalError,
            attempts=self._max_retries,
            wait_initial=0.05,
            wait_max=1.0,
            wait_jitter=0.05,
        )
        async def _with_retry() -> None:
            await self._insert(values)

        try:
            await _with_retry()
        except SQLAlchemyError as e:
            log.error(
                "audit.record.failed",
                entity_name=record.entity_name,
                crud_type=record.crud_type,
                correlation_id=record.correlation_id,
                error=str(e),
            )
            if not self.raise_on_failure:
                return
            raise PersistenceError(
                f"Failed to write audit record: {e}",
                operation="insert",
                table="audit_records",
                details={"entity_name": record.entity_name, "crud_type": record.crud_type},
            ) from e

    async def recent(self, limit: int = 20, entity_name: str | None = None) -> list[dict[str, Any]]:
        """Return the newest audit records, newest first."""
        statement = select(audit_records_table).order_by(audit_records_table.c.timestamp.desc())
        if entity_name:
            statement = statement.where(audit_records_table.c.entity_name == entity_name)
        statement = statement.limit(limit)

        try:
            async with self._engine.connect() as conn:
                rows = (await conn.execute(statement)).mappings().all()
        except SQLAlchemyError as e:
            raise PersistenceError(
                f"Failed to read audit records: {e}",
                operation="select",
                table="audit_records",
            ) from e
        return [dict(row) for row in rows]
