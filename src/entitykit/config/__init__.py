"""Configuration module for entitykit.

Configuration is stored in ~/.entitykit/config.yaml (or the directory named
by ENTITYKIT_CONFIG_DIR).

Usage:
    from entitykit.config import load_config

    config = load_config(missing_ok=True)
    config.uniqueness.max_attempts
"""

from entitykit.config.loader import (
    config_exists,
    create_default_config,
    ensure_config_dir,
    load_config,
    load_environment,
)
from entitykit.config.models import (
    AuditConfig,
    EntitykitConfig,
    PersistenceConfig,
    UniquenessConfig,
    get_config_dir,
    get_default_config,
)

__all__ = [
    # Models
    "EntitykitConfig",
    "AuditConfig",
    "PersistenceConfig",
    "UniquenessConfig",
    # Loader functions
    "load_config",
    "load_environment",
    "create_default_config",
    "ensure_config_dir",
    "config_exists",
    # Model helpers
    "get_config_dir",
    "get_default_config",
]
