"""Audit loggers for CRUD calls."""

from entitykit.audit.loggers import ConsoleAuditLogger, NullAuditLogger, SqlAuditLogger

__all__ = [
    "ConsoleAuditLogger",
    "NullAuditLogger",
    "SqlAuditLogger",
]
