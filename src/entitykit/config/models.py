"""Pydantic models for entitykit configuration.

Classes:
    PersistenceConfig: SQLite storage location
    UniquenessConfig: Collision resolution settings
    AuditConfig: Audit logger selection
    EntitykitConfig: Top-level configuration combining all sections
"""

import os
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from entitykit.observability.logging import LoggingConfig


def get_config_dir() -> Path:
    """Return the configuration directory.

    ENTITYKIT_CONFIG_DIR overrides the default ~/.entitykit/.
    """
    override = os.environ.get("ENTITYKIT_CONFIG_DIR", "").strip()
    if override:
        return Path(override).expanduser()
    return Path.home() / ".entitykit"


class PersistenceConfig(BaseModel, frozen=True):
    """Storage configuration.

    Attributes:
        database_path: Path of the SQLite database used by the SQL
            repository adapter and the SQL audit logger.
    """

    database_path: str = Field(default="~/.entitykit/entitykit.db")

    @property
    def database_url(self) -> str:
        """SQLAlchemy async URL for ``database_path``."""
        if self.database_path == ":memory:":
            return "sqlite+aiosqlite:///:memory:"
        return f"sqlite+aiosqlite:///{Path(self.database_path).expanduser()}"


class UniquenessConfig(BaseModel, frozen=True):
    """Uniqueness enforcement settings.

    Attributes:
        max_attempts: Number of numbered suffixes tried before falling back
            to a random suffix when a unique value collides.
    """

    max_attempts: int = Field(default=5, ge=1, le=100)


class AuditConfig(BaseModel, frozen=True):
    """Audit logging settings.

    Attributes:
        enabled: Whether audit records are written at all.
        backend: Which audit logger to assemble at startup.
        raise_on_failure: Make a failed sql audit write fail the CRUD call
            instead of being logged.
    """

    enabled: bool = True
    backend: Literal["null", "console", "sql"] = "null"
    raise_on_failure: bool = False

    @field_validator("backend", mode="before")
    @classmethod
    def normalize_backend(cls, v: object) -> object:
        """Accept any casing for the backend name."""
        if isinstance(v, str):
            return v.strip().lower()
        return v


class EntitykitConfig(BaseModel, frozen=True):
    """Top-level entitykit configuration.

    Example:
        config = EntitykitConfig.model_validate(yaml.safe_load(text))
        config.uniqueness.max_attempts
    """

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    persistence: PersistenceConfig = Field(default_factory=PersistenceConfig)
    uniqueness: UniquenessConfig = Field(default_factory=UniquenessConfig)
    audit: AuditConfig = Field(default_factory=AuditConfig)


def get_default_config() -> EntitykitConfig:
    """Return the configuration written by ``entitykit config init``."""
    return EntitykitConfig()
