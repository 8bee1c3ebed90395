"""Structured logging configuration for entitykit.

This module configures structlog with standard processors for structured
logging throughout the library. It supports both development mode
(human-readable console output) and production mode (JSON output).

Features:
- ISO 8601 timestamps
- Log level in all entries
- contextvars integration for cross-async context propagation
- Redaction of credential-like attributes in entity payloads
- Daily log rotation with configurable retention

Standard log keys:
- entity_name: Entity the operation works on
- crud_type: CRUD operation (get, create, update, ...)
- actor: Acting user or system identifier
- tenant: Tenant identifier
- correlation_id: Request correlation identifier

Event naming convention:
- Use dot.notation (e.g., "entity.crud.create.completed", "events.listener.failed")
- Format: domain.entity.verb_past_tense

Usage:
    from entitykit.observability import configure_logging, get_logger, bind_context

    configure_logging(LoggingConfig(mode=LogMode.DEV))

    log = get_logger()
    bind_context(correlation_id="req-123")
    log.info("entity.crud.get.started", entity_name="user")
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from enum import Enum
import logging
from logging.handlers import TimedRotatingFileHandler
import os
from pathlib import Path
import sys
from typing import Any

from pydantic import BaseModel, Field
import structlog

from entitykit.core.security import redact

_STANDARD_KEYS = frozenset({"event", "level", "timestamp", "filename", "lineno"})


class LogMode(str, Enum):
    """Logging output mode."""

    DEV = "dev"
    PROD = "prod"


class LoggingConfig(BaseModel, frozen=True):
    """Configuration for structured logging.

    Attributes:
        mode: Output mode (dev for human-readable, prod for JSON).
        log_level: Minimum log level to output.
        log_dir: Directory for log files. Defaults to ~/.entitykit/logs/.
        max_log_days: Number of days to retain log files.
        enable_file_logging: Whether to write logs to files.
    """

    mode: LogMode = Field(default=LogMode.DEV)
    log_level: str = Field(default="INFO")
    log_dir: Path = Field(default_factory=lambda: Path.home() / ".entitykit" / "logs")
    max_log_days: int = Field(default=7, ge=1, le=365)
    enable_file_logging: bool = Field(default=False)


_configured: bool = False
_current_config: LoggingConfig | None = None


def _get_mode_from_env() -> LogMode:
    """Read the logging mode from ENTITYKIT_LOG_MODE (defaults to dev)."""
    env_mode = os.environ.get("ENTITYKIT_LOG_MODE", "dev").lower()
    if env_mode == "prod":
        return LogMode.PROD
    return LogMode.DEV


def _get_log_level(level_str: str) -> int:
    level_map = {
        "DEBUG": logging.DEBUG,
        "INFO": logging.INFO,
        "WARNING": logging.WARNING,
        "WARN": logging.WARNING,
        "ERROR": logging.ERROR,
        "CRITICAL": logging.CRITICAL,
    }
    return level_map.get(level_str.upper(), logging.INFO)


def _setup_file_handler(config: LoggingConfig) -> TimedRotatingFileHandler | None:
    """Set up the daily rotating file handler.

    Returns:
        Configured handler, or None if file logging is disabled.
    """
    if not config.enable_file_logging:
        return None

    config.log_dir.mkdir(parents=True, exist_ok=True)

    handler = TimedRotatingFileHandler(
        filename=str(config.log_dir / "entitykit.log"),
        when="midnight",
        interval=1,
        backupCount=config.max_log_days,
        encoding="utf-8",
        utc=True,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    handler.setLevel(_get_log_level(config.log_level))
    return handler


def _redact_sensitive_data(
    _logger: Any,
    _method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Structlog processor that masks credential-like values in log entries."""
    for key, value in list(event_dict.items()):
        if key in _STANDARD_KEYS:
            continue
        event_dict[key] = redact({key: value})[key]
    return event_dict


def _get_processors(mode: LogMode) -> list[Any]:
    """Build the processor chain, ending with the renderer for ``mode``."""
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        _redact_sensitive_data,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if mode == LogMode.DEV:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))
    else:
        processors.append(structlog.processors.JSONRenderer())

    return processors


class _FileWritingPrintLogger:
    """Print logger that writes to stderr and optionally to a file handler."""

    def __init__(self, file_handler: TimedRotatingFileHandler | None = None) -> None:
        self._file_handler = file_handler

    def _log(self, message: str, level: int = logging.INFO) -> None:
        print(message, file=sys.stderr)

        if self._file_handler:
            record = logging.LogRecord(
                name="entitykit",
                level=level,
                pathname="",
                lineno=0,
                msg=message,
                args=(),
                exc_info=None,
            )
            self._file_handler.emit(record)

    def msg(self, message: str) -> None:
        self._log(message, logging.INFO)

    def __call__(self, message: str) -> None:
        self.msg(message)

    def debug(self, message: str) -> None:
        self._log(message, logging.DEBUG)

    def info(self, message: str) -> None:
        self._log(message, logging.INFO)

    def warning(self, message: str) -> None:
        self._log(message, logging.WARNING)

    warn = warning

    def error(self, message: str) -> None:
        self._log(message, logging.ERROR)

    def critical(self, message: str) -> None:
        self._log(message, logging.CRITICAL)

    fatal = critical

    def exception(self, message: str) -> None:
        self._log(message, logging.ERROR)


class _FileWritingPrintLoggerFactory:
    """Factory for creating file-writing print loggers."""

    def __init__(self, file_handler: TimedRotatingFileHandler | None = None) -> None:
        self._file_handler = file_handler

    def __call__(self, *_args: Any) -> _FileWritingPrintLogger:
        return _FileWritingPrintLogger(self._file_handler)


def configure_logging(config: LoggingConfig | None = None) -> None:
    """Configure structlog for the application.

    This should be called once at application startup. Calling it again
    replaces the previous configuration.

    Args:
        config: Logging configuration. If None, uses defaults with
               mode from the ENTITYKIT_LOG_MODE environment variable.

    Example:
        configure_logging(LoggingConfig(mode=LogMode.PROD, max_log_days=14))
    """
    global _configured, _current_config

    if config is None:
        config = LoggingConfig(mode=_get_mode_from_env())

    _current_config = config
    log_level = _get_log_level(config.log_level)

    file_handler = _setup_file_handler(config)

    structlog.configure(
        processors=_get_processors(config.mode),
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=_FileWritingPrintLoggerFactory(file_handler),
        cache_logger_on_first_use=True,
    )

    _configured = True


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a bound logger instance, configuring defaults on first use.

    Example:
        log = get_logger(__name__)
        log.info("entity.crud.create.completed", entity_name="user")
    """
    if not _configured:
        configure_logging()

    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Bind context variables included in every subsequent log entry.

    Context propagates across awaits within the same task, which makes it
    the place for request-scoped keys such as ``correlation_id``.

    Example:
        bind_context(correlation_id="req-123", tenant="acme")
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    """Remove context variables from the logging context."""
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    """Clear all bound context variables."""
    structlog.contextvars.clear_contextvars()


@contextmanager
def bound_context(**kwargs: Any) -> Iterator[None]:
    """Bind context variables for the duration of a block.

    Previous values of the same keys are restored on exit, so nested
    blocks keep the outer context intact.

    Example:
        with bound_context(correlation_id="req-123"):
            log.info("entity.crud.get.started")
    """
    with structlog.contextvars.bound_contextvars(**kwargs):
        yield


def get_current_config() -> LoggingConfig | None:
    """Return the active logging configuration, if any."""
    return _current_config


def is_configured() -> bool:
    """Check if configure_logging has been called."""
    return _configured


def reset_logging() -> None:
    """Reset logging configuration state.

    This is primarily for testing purposes.
    """
    global _configured, _current_config
    _configured = False
    _current_config = None
    structlog.contextvars.clear_contextvars()
    structlog.reset_defaults()
