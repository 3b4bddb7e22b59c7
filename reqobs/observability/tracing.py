from __future__ import annotations

from typing import Any

import structlog
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, SpanExporter

from reqobs.config import Settings


def build_tracer_provider(settings: Settings, exporter: SpanExporter | None = None) -> TracerProvider:
    """TracerProvider tagged with the service identity.

    Spans go to ``exporter`` when given, else to an OTLP/gRPC collector at
    ``OTLP_ENDPOINT``. With neither, spans are created but not exported.
    """

    resource = Resource.create(
        {
            "service.name": settings.service_name,
            "service.version": settings.service_version,
        }
    )
    provider = TracerProvider(resource=resource)

    if exporter is None and settings.otlp_endpoint:
        exporter = OTLPSpanExporter(endpoint=settings.otlp_endpoint, insecure=True)
    if exporter is not None:
        provider.add_span_processor(BatchSpanProcessor(exporter))

    return provider


def configure_tracing(app: Any, settings: Settings) -> TracerProvider | None:
    """Instrument the FastAPI app and outbound httpx calls, if tracing is enabled."""

    if not settings.tracing_enabled:
        structlog.get_logger("tracing").info("tracing_disabled")
        return None

    provider = build_tracer_provider(settings)
    trace.set_tracer_provider(provider)

    FastAPIInstrumentor.instrument_app(app, tracer_provider=provider)
    HTTPXClientInstrumentor().instrument(tracer_provider=provider)

    structlog.get_logger("tracing").info(
        "tracing_initialized",
        service=settings.service_name,
        otlp_endpoint=settings.otlp_endpoint or None,
    )
    return provider
