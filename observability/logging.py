"""
Componentry - Structured Logging with Trace Context

Routes structlog through the standard library so container events end up
in the same handlers as the host application's logs, stamped with the
active trace_id/span_id.

Features:
- JSON or human-readable console rendering
- trace_id / span_id taken from the current OpenTelemetry span
- Optional size-rotated log file
- Context binding for container name and lifecycle phase

Usage:
    from observability.logging import setup_logging, get_logger

    setup_logging(LoggingConfig(level="DEBUG", json_format=False))

    logger = get_logger(__name__)
    logger.info("Singleton realized", instance_id="dataSource")
"""
from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, List, Optional

import structlog
from opentelemetry import trace
from structlog.types import EventDict, Processor, WrappedLogger

_configured: bool = False


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass
class LoggingConfig:
    """Logging settings; unset fields fall back to environment variables."""

    service_name: str = "componentry"
    level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper())
    json_format: bool = field(
        default_factory=lambda: os.getenv("LOG_FORMAT", "json").lower() == "json"
    )
    enable_trace_context: bool = True
    log_to_console: bool = True
    log_to_file: bool = field(default_factory=lambda: _env_flag("LOG_TO_FILE", "false"))
    log_file_path: Path = field(
        default_factory=lambda: Path(os.getenv("LOG_FILE", "./logs/componentry.log"))
    )
    max_file_size: int = 10 * 1024 * 1024
    backup_count: int = 5
    include_timestamp: bool = True
    environment: str = field(
        default_factory=lambda: os.getenv("ENVIRONMENT", "development")
    )


# =============================================================================
# Processors
# =============================================================================

def add_trace_context(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Copy the ids of the active span, if any, onto the event."""
    span_context = trace.get_current_span().get_span_context()
    if span_context.is_valid:
        event_dict["trace_id"] = trace.format_trace_id(span_context.trace_id)
        event_dict["span_id"] = trace.format_span_id(span_context.span_id)
    return event_dict


def add_service_context(service_name: str, environment: str) -> Processor:
    """Build a processor stamping every event with service and environment."""

    def processor(
        logger: WrappedLogger,
        method_name: str,
        event_dict: EventDict,
    ) -> EventDict:
        event_dict.setdefault("service", service_name)
        event_dict.setdefault("environment", environment)
        return event_dict

    return processor


def add_timestamp(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()
    return event_dict


def format_exception(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Replace ``exc_info`` with a flat ``{"type", "message"}`` mapping."""
    exc_info = event_dict.pop("exc_info", None)
    if isinstance(exc_info, BaseException):
        error = exc_info
    elif isinstance(exc_info, tuple):
        error = exc_info[1]
    else:
        return event_dict

    if error is not None:
        event_dict["exception"] = {
            "type": type(error).__name__,
            "message": str(error),
        }
    return event_dict


# =============================================================================
# Setup
# =============================================================================

def _build_processors(config: LoggingConfig) -> List[Processor]:
    processors: List[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_service_context(config.service_name, config.environment),
    ]
    if config.include_timestamp:
        processors.append(add_timestamp)
    if config.enable_trace_context:
        processors.append(add_trace_context)
    processors += [
        format_exception,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
        if config.json_format
        else structlog.dev.ConsoleRenderer(colors=False),
    ]
    return processors


def _build_handlers(config: LoggingConfig) -> List[logging.Handler]:
    handlers: List[logging.Handler] = []
    if config.log_to_console:
        handlers.append(logging.StreamHandler(sys.stdout))
    if config.log_to_file:
        config.log_file_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(RotatingFileHandler(
            config.log_file_path,
            maxBytes=config.max_file_size,
            backupCount=config.backup_count,
            encoding="utf-8",
        ))

    # Events arrive already rendered by structlog.
    formatter = logging.Formatter("%(message)s")
    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


def setup_logging(config: Optional[LoggingConfig] = None) -> None:
    """
    Configure structlog and the root stdlib logger.

    Only the first call takes effect until ``shutdown_logging()`` runs.

    Args:
        config: Logging settings; defaults are read from the environment.
    """
    global _configured
    if _configured:
        return

    config = config or LoggingConfig()
    level = logging.getLevelName(config.level)
    if not isinstance(level, int):
        level = logging.INFO

    structlog.configure(
        processors=_build_processors(config),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
    for handler in _build_handlers(config):
        handler.setLevel(level)
        root.addHandler(handler)
    root.setLevel(level)

    # The SDK's own exporter chatter is rarely useful next to container events.
    logging.getLogger("opentelemetry").setLevel(logging.WARNING)

    _configured = True


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger, configuring logging with defaults on first use."""
    if not _configured:
        setup_logging()
    return structlog.get_logger(name)


def shutdown_logging() -> None:
    """Flush and close root handlers; the next ``setup_logging`` reconfigures."""
    global _configured
    for handler in logging.getLogger().handlers:
        handler.flush()
        handler.close()
    _configured = False


# =============================================================================
# Context
# =============================================================================

class LogContext:
    """
    Bind key/value pairs to every event logged inside the block.

    Example:
        >>> with LogContext(container="default", phase="init"):
        ...     logger.info("Realizing singletons")
    """

    def __init__(self, **kwargs: Any):
        self.context = kwargs

    def __enter__(self) -> "LogContext":
        structlog.contextvars.bind_contextvars(**self.context)
        return self

    def __exit__(self, *args: Any) -> None:
        structlog.contextvars.unbind_contextvars(*self.context)


def bind_context(**kwargs: Any) -> None:
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


# =============================================================================
# Container Logger
# =============================================================================

class ContainerLogger:
    """Logger specialized for container lifecycle events."""

    def __init__(self, container_name: str):
        self._logger = get_logger("componentry.container")
        self.container_name = container_name

    def init_started(self, definitions: int, edges: int) -> None:
        self._logger.info(
            "Container init started",
            container=self.container_name,
            definitions=definitions,
            edges=edges,
            component="container",
        )

    def init_completed(self, order: list, duration: float) -> None:
        self._logger.info(
            "Container initialized",
            container=self.container_name,
            init_order=order,
            duration_ms=round(duration * 1000, 3),
            component="container",
        )

    def singleton_realized(self, instance_id: str) -> None:
        self._logger.debug(
            "Eager singleton realized",
            container=self.container_name,
            instance_id=instance_id,
            component="container",
        )

    def definition_replaced(self, instance_id: str, lifetime: str) -> None:
        self._logger.warning(
            "Definition replaced",
            container=self.container_name,
            instance_id=instance_id,
            lifetime=lifetime,
            component="container",
        )

    def destructor_failed(self, index: int, error: BaseException) -> None:
        self._logger.warning(
            "Destructor failed, continuing",
            container=self.container_name,
            destructor_index=index,
            error=str(error),
            error_type=type(error).__name__,
            component="container",
        )

    def closed(self, destructors: int, duration: float) -> None:
        self._logger.info(
            "Container closed",
            container=self.container_name,
            destructors=destructors,
            duration_ms=round(duration * 1000, 3),
            component="container",
        )
