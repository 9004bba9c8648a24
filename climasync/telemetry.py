"""OpenTelemetry tracing for refreshes and mutations.

:class:`~climasync.realtime.Refresher` opens a ``view.refresh`` span per
fetch and :class:`~climasync.mutations.OptimisticMutator` a ``mutation``
span per write. Spans carry the logging context (view, user, request id), so
a trace and its log lines can be joined.

The tracer provider is created lazily on the first :func:`get_tracer` call.
Spans are exported over OTLP only when ``enable_tracing`` is set and an
``otlp_endpoint`` is configured.

Environment Variables:
    - OTEL_SERVICE_NAME: Service name for traces (default: "climasync")
"""

from __future__ import annotations

import os
from typing import Any

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace import Status, StatusCode, Tracer
from opentelemetry.trace.span import Span

from climasync.config import settings
from climasync.logging import get_request_context, logger

_provider: TracerProvider | None = None


def initialize_telemetry() -> TracerProvider:
    """Install the global tracer provider once and return it.

    Raises:
        ValueError: If the OTLP exporter rejects the configured endpoint
    """
    global _provider
    if _provider is not None:
        return _provider

    provider = TracerProvider(
        resource=Resource.create(
            {
                "service.name": os.getenv("OTEL_SERVICE_NAME", "climasync"),
                "deployment.environment": settings.environment.value,
            }
        )
    )
    if settings.enable_tracing and settings.otlp_endpoint:
        try:
            provider.add_span_processor(
                BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.otlp_endpoint))
            )
        except Exception as e:
            raise ValueError(f"Invalid OTLP endpoint: {settings.otlp_endpoint}") from e
        logger.info("Exporting spans over OTLP", endpoint=settings.otlp_endpoint)

    trace.set_tracer_provider(provider)
    _provider = provider
    return provider


def get_tracer(name: str) -> Tracer:
    initialize_telemetry()
    return trace.get_tracer(name)


def add_span_attributes(span: Span, attributes: dict[str, Any]) -> None:
    """Set attributes, stringifying values OpenTelemetry cannot store (None, dicts, lists)."""
    for key, value in attributes.items():
        if value is None or isinstance(value, (list, dict)):
            value = str(value)
        span.set_attribute(key, value)


def record_exception_in_span(span: Span, exception: BaseException, set_status: bool = True) -> None:
    span.record_exception(exception)
    if set_status:
        span.set_status(Status(StatusCode.ERROR, str(exception) or type(exception).__name__))


def sync_logging_context_to_span(span: Span) -> None:
    """Copy the fields set in the logging context onto ``span``."""
    add_span_attributes(span, {k: v for k, v in get_request_context().items() if v})


def shutdown_telemetry() -> None:
    """Flush pending spans; the next :func:`get_tracer` call starts a new provider."""
    global _provider
    if _provider is None:
        return
    _provider.shutdown()
    _provider = None
    logger.info("Telemetry shut down")


__all__ = [
    "initialize_telemetry",
    "shutdown_telemetry",
    "get_tracer",
    "add_span_attributes",
    "record_exception_in_span",
    "sync_logging_context_to_span",
]
