from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from reqobs.config import Settings
from reqobs.observability.tracing import build_tracer_provider, configure_tracing


def test_tracer_provider_carries_service_identity() -> None:
    settings = Settings(service_name="api-service-2", service_version="1.2.3")
    provider = build_tracer_provider(settings)

    attributes = provider.resource.attributes
    assert attributes["service.name"] == "api-service-2"
    assert attributes["service.version"] == "1.2.3"


def test_spans_reach_the_given_exporter() -> None:
    exporter = InMemorySpanExporter()
    provider = build_tracer_provider(Settings(service_name="svc"), exporter=exporter)

    with provider.get_tracer(__name__).start_as_current_span("compute"):
        pass
    provider.force_flush()

    assert [span.name for span in exporter.get_finished_spans()] == ["compute"]
    provider.shutdown()


def test_configure_tracing_is_a_noop_when_disabled() -> None:
    assert configure_tracing(app=object(), settings=Settings(tracing_enabled=False)) is None
