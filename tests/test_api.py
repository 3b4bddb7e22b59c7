from structlog.testing import capture_logs

from reqobs.app_factory import create_app
from reqobs.config import Settings


async def test_health_reports_service(api_client) -> None:
    resp = await api_client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "service": "test-service"}


async def test_info_reports_version(api_client) -> None:
    resp = await api_client.get("/info")
    assert resp.status_code == 200
    assert resp.json() == {"service": "test-service", "version": "9.9.9"}


async def test_responses_include_x_request_id(api_client) -> None:
    resp = await api_client.get("/health")
    assert resp.status_code == 200
    assert resp.headers.get("x-request-id")


async def test_metrics_endpoint_exposes_latency_histogram(api_client) -> None:
    await api_client.get("/items/1")
    await api_client.get("/items/2")

    resp = await api_client.get("/metrics")
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/plain")

    body = resp.text
    assert "# TYPE http_request_duration_seconds histogram" in body
    assert 'http_request_duration_seconds_count{method="GET",route="/items/{item_id}",status_code="200"} 2.0' in body
    assert 'le="3.0"' in body


async def test_metrics_endpoint_includes_process_collectors(api_client) -> None:
    resp = await api_client.get("/metrics")
    assert "python_info" in resp.text


def test_apps_do_not_share_registries() -> None:
    settings = Settings(service_name="a")
    first = create_app(settings=settings)
    second = create_app(settings=settings)
    assert first.state.http_metrics.registry is not second.state.http_metrics.registry


def test_custom_buckets_from_settings(registry) -> None:
    app = create_app(settings=Settings(service_name="b", histogram_buckets=[0.05, 2.0]), registry=registry)
    app.state.http_metrics.observe(method="GET", route="/", status_code=200, seconds=0.01)

    labels = {"method": "GET", "route": "/", "status_code": "200"}
    assert registry.get_sample_value("http_request_duration_seconds_bucket", {**labels, "le": "0.05"}) == 1.0
    assert registry.get_sample_value("http_request_duration_seconds_bucket", {**labels, "le": "0.1"}) is None


async def test_lifespan_logs_start_and_stop(app) -> None:
    with capture_logs() as logs:
        async with app.router.lifespan_context(app):
            pass

    assert [e["event"] for e in logs] == ["service_started", "service_stopping"]
    assert logs[0]["service"] == "test-service"
    assert logs[0]["version"] == "9.9.9"
