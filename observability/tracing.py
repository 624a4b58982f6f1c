"""
Componentry - Tracing with OpenTelemetry

Provides tracing for container lifecycle operations (init, close, cycle
detection, order planning) so that slow or failing wiring shows up next to
the application's own spans.

Features:
- Optional OTLP export to any OTLP-compatible backend
- Optional console export for debugging
- Manual instrumentation decorator and context manager
- Configurable sampling

Usage:
    from observability.tracing import setup_tracing, get_tracer, create_span

    # Setup at startup (optional, the no-op API provider is used otherwise)
    setup_tracing(TracingConfig(service_name="my-app"))

    with create_span("wire_components", attributes={"component.count": 3}):
        container.init()
"""
from __future__ import annotations

import functools
import os
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, Optional, TypeVar, ParamSpec

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource, SERVICE_NAME, SERVICE_VERSION
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SimpleSpanProcessor,
)
from opentelemetry.sdk.trace.sampling import (
    ParentBased,
    TraceIdRatioBased,
    ALWAYS_ON,
    ALWAYS_OFF,
)
from opentelemetry.trace import Span, SpanKind, Status, StatusCode

P = ParamSpec("P")
T = TypeVar("T")

# Global state
_tracer_provider: Optional[TracerProvider] = None
_initialized: bool = False


@dataclass
class TracingConfig:
    """Configuration for OpenTelemetry tracing."""

    service_name: str = "componentry"
    service_version: str = "1.0.0"
    otlp_endpoint: str = field(
        default_factory=lambda: os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", "")
    )
    enabled: bool = field(
        default_factory=lambda: os.getenv("OTEL_TRACING_ENABLED", "true").lower() == "true"
    )
    sample_rate: float = field(
        default_factory=lambda: float(os.getenv("OTEL_SAMPLE_RATE", "1.0"))
    )
    environment: str = field(
        default_factory=lambda: os.getenv("ENVIRONMENT", "development")
    )
    console_export: bool = field(
        default_factory=lambda: os.getenv("OTEL_CONSOLE_EXPORT", "false").lower() == "true"
    )
    batch_export: bool = True

    extra_attributes: Dict[str, str] = field(default_factory=dict)


def setup_tracing(config: Optional[TracingConfig] = None) -> trace.TracerProvider:
    """
    Configure OpenTelemetry tracing.

    Installs an SDK tracer provider as the global provider. OTLP export is
    only attached when an endpoint is configured.

    Args:
        config: Tracing configuration. Uses defaults if not provided.

    Returns:
        Configured TracerProvider
    """
    global _tracer_provider, _initialized

    if _initialized and _tracer_provider:
        return _tracer_provider

    config = config or TracingConfig()

    if not config.enabled:
        _initialized = True
        return trace.get_tracer_provider()

    resource = Resource.create({
        SERVICE_NAME: config.service_name,
        SERVICE_VERSION: config.service_version,
        "deployment.environment": config.environment,
        **config.extra_attributes,
    })

    _tracer_provider = TracerProvider(resource=resource, sampler=_build_sampler(config.sample_rate))

    if config.otlp_endpoint:
        otlp_exporter = OTLPSpanExporter(endpoint=config.otlp_endpoint, insecure=True)
        if config.batch_export:
            _tracer_provider.add_span_processor(BatchSpanProcessor(otlp_exporter))
        else:
            _tracer_provider.add_span_processor(SimpleSpanProcessor(otlp_exporter))

    if config.console_export:
        _tracer_provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))

    trace.set_tracer_provider(_tracer_provider)
    _initialized = True

    return _tracer_provider


def _build_sampler(rate: float):
    if rate <= 0.0:
        return ALWAYS_OFF
    if rate >= 1.0:
        return ALWAYS_ON
    return ParentBased(root=TraceIdRatioBased(rate))


def get_tracer_provider() -> trace.TracerProvider:
    """Get the configured tracer provider, or the API's global one."""
    return _tracer_provider or trace.get_tracer_provider()


def get_tracer(name: str, version: str = "1.0.0") -> trace.Tracer:
    """
    Get a tracer instance for manual instrumentation.

    Tracers obtained before ``setup_tracing`` runs are proxies that start
    delegating once a provider is installed.

    Args:
        name: Tracer name, typically __name__ of the module
        version: Tracer version string
    """
    if _tracer_provider is not None:
        return _tracer_provider.get_tracer(name, version)
    return trace.get_tracer(name, version)


def shutdown_tracing() -> None:
    """Flush pending spans and shut the provider down."""
    global _tracer_provider, _initialized
    if _tracer_provider is not None:
        _tracer_provider.shutdown()
    _initialized = False
    _tracer_provider = None


@contextmanager
def create_span(
    name: str,
    kind: SpanKind = SpanKind.INTERNAL,
    attributes: Optional[Dict[str, Any]] = None,
    tracer_name: str = "componentry.observability",
) -> Iterator[Span]:
    """
    Run the enclosed block inside a new current span.

    An exception escaping the block marks the span as failed, is recorded
    on it, and is re-raised unchanged.

    Example:
        >>> with create_span("container.init", attributes={"container.name": "app"}) as span:
        ...     span.set_attribute("container.definitions", 4)
    """
    tracer = get_tracer(tracer_name)
    with tracer.start_as_current_span(
        name, kind=kind, record_exception=False, set_status_on_exception=False
    ) as span:
        for key, value in (attributes or {}).items():
            _set_safe_attribute(span, key, value)
        try:
            yield span
        except Exception as e:
            span.set_status(Status(StatusCode.ERROR, str(e)))
            span.record_exception(e)
            raise


def span_decorator(
    name: Optional[str] = None,
    kind: SpanKind = SpanKind.INTERNAL,
    attributes: Optional[Dict[str, Any]] = None,
) -> Callable[[Callable[P, T]], Callable[P, T]]:
    """
    Trace every call of a synchronous function with ``create_span``.

    The span is named ``name`` (or the function's name) and the tracer is
    looked up per call under the function's module, so functions decorated
    at import time pick up a provider installed later.
    """

    def decorator(func: Callable[P, T]) -> Callable[P, T]:
        span_name = name or func.__name__

        @functools.wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            with create_span(span_name, kind, attributes, tracer_name=func.__module__):
                return func(*args, **kwargs)

        return wrapper

    return decorator


def _set_safe_attribute(span: Span, key: str, value: Any) -> None:
    """Set an attribute, coercing values OpenTelemetry can't store to strings."""
    if value is None:
        return
    if isinstance(value, (str, bool, int, float)):
        span.set_attribute(key, value)
    elif isinstance(value, (list, tuple)):
        span.set_attribute(key, [str(v) for v in value])
    else:
        span.set_attribute(key, str(value))
