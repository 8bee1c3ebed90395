"""SQLite persistence for entitykit.

Main components:
- Database: async engine lifecycle
- SqlEntityRepository: repository adapter over the entities table
- SqlOperations: filter primitives rendered as SQLite predicates
"""

from entitykit.persistence.database import Database
from entitykit.persistence.operations import SqlAttribute, SqlOperations, sql_attribute_refs
from entitykit.persistence.repository import (
    SqlEntityRepository,
    SqlQueryOperation,
    decode_cursor,
    encode_cursor,
)
from entitykit.persistence.schema import audit_records_table, entities_table, metadata

__all__ = [
    "Database",
    "SqlAttribute",
    "SqlEntityRepository",
    "SqlOperations",
    "SqlQueryOperation",
    "audit_records_table",
    "decode_cursor",
    "encode_cursor",
    "entities_table",
    "metadata",
    "sql_attribute_refs",
]
