"""Observability module for entitykit.

Main components:
- Logging: configure_logging, get_logger, bind_context, bound_context, unbind_context
"""

from entitykit.observability.logging import (
    LoggingConfig,
    LogMode,
    bind_context,
    bound_context,
    clear_context,
    configure_logging,
    get_logger,
    reset_logging,
    unbind_context,
)

__all__ = [
    "LogMode",
    "LoggingConfig",
    "bind_context",
    "bound_context",
    "clear_context",
    "configure_logging",
    "get_logger",
    "reset_logging",
    "unbind_context",
]
