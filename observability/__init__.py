"""
Componentry - Observability Package

Structured logging and tracing used by the container.

Components:
- tracing: OpenTelemetry tracing with optional OTLP export
- logging: Structlog integration with trace context propagation

Usage:
    from observability import setup_observability, get_logger

    # Initialize at application startup
    setup_observability(service_name="my-app")

    logger = get_logger(__name__)
"""
from .tracing import (
    setup_tracing,
    get_tracer,
    get_tracer_provider,
    create_span,
    span_decorator,
    TracingConfig,
    shutdown_tracing,
)
from .logging import (
    setup_logging,
    get_logger,
    LoggingConfig,
    LogContext,
    ContainerLogger,
    shutdown_logging,
)

__all__ = [
    # Tracing
    "setup_tracing",
    "get_tracer",
    "get_tracer_provider",
    "create_span",
    "span_decorator",
    "TracingConfig",
    "shutdown_tracing",
    # Logging
    "setup_logging",
    "get_logger",
    "LoggingConfig",
    "LogContext",
    "ContainerLogger",
    "shutdown_logging",
    # Combined setup
    "setup_observability",
    "shutdown_observability",
]

__version__ = "1.0.0"


def setup_observability(
    service_name: str = "componentry",
    otlp_endpoint: str = "",
    enabled: bool = True,
    sample_rate: float = 1.0,
    log_level: str = "INFO",
    json_logs: bool = True,
    environment: str = "development",
) -> None:
    """
    Initialize tracing and logging.

    Args:
        service_name: Name of the service for telemetry
        otlp_endpoint: OTLP collector endpoint (gRPC); empty disables export
        enabled: Enable/disable observability
        sample_rate: Trace sampling rate (0.0-1.0)
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        json_logs: Render logs as JSON instead of console lines
        environment: Deployment environment
    """
    if not enabled:
        return

    setup_tracing(TracingConfig(
        service_name=service_name,
        otlp_endpoint=otlp_endpoint,
        enabled=enabled,
        sample_rate=sample_rate,
        environment=environment,
    ))

    setup_logging(LoggingConfig(
        service_name=service_name,
        level=log_level,
        json_format=json_logs,
        enable_trace_context=True,
        environment=environment,
    ))


def shutdown_observability() -> None:
    """Flush and shut down tracing and logging."""
    shutdown_tracing()
    shutdown_logging()
