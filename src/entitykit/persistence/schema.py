"""Database schema definitions using SQLAlchemy Core.

Tables:
    entities: every entity of every type, one JSON document per row. The
        ``pk`` column holds the serialized primary key so ``(entity, pk)``
        is unique.
    audit_records: audit trail written by the SQL audit logger.
"""

from datetime import UTC, datetime

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    UniqueConstraint,
    text,
)

metadata = MetaData()


def _utc_now() -> datetime:
    return datetime.now(UTC)


entities_table = Table(
    "entities",
    metadata,
    # Row id; also the ordering and cursor key for listings
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("entity", String(100), nullable=False),
    # JSON array of the primary key attribute values
    Column("pk", String(500), nullable=False),
    Column("data", JSON, nullable=False),
    Column(
        "created_at",
        DateTime(timezone=True),
        nullable=False,
        default=_utc_now,
        server_default=text("CURRENT_TIMESTAMP"),
    ),
    Column(
        "updated_at",
        DateTime(timezone=True),
        nullable=False,
        default=_utc_now,
        onupdate=_utc_now,
        server_default=text("CURRENT_TIMESTAMP"),
    ),
    UniqueConstraint("entity", "pk", name="uq_entities_entity_pk"),
    Index("ix_entities_entity", "entity"),
)

audit_records_table = Table(
    "audit_records",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("entity_name", String(100), nullable=False),
    Column("crud_type", String(20), nullable=False),
    Column("correlation_id", String(64), nullable=True),
    Column("actor", JSON, nullable=True),
    Column("tenant", JSON, nullable=True),
    Column("identifiers", JSON, nullable=True),
    # Redacted input payload and repository response
    Column("payload", JSON, nullable=False),
    Column(
        "timestamp",
        DateTime(timezone=True),
        nullable=False,
        default=_utc_now,
        server_default=text("CURRENT_TIMESTAMP"),
    ),
    Index("ix_audit_records_entity_name", "entity_name"),
    Index("ix_audit_records_timestamp", "timestamp"),
)
