from __future__ import annotations

from collections.abc import Sequence

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Histogram,
    generate_latest,
)
from prometheus_client.gc_collector import GCCollector
from prometheus_client.platform_collector import PlatformCollector
from prometheus_client.process_collector import ProcessCollector


DEFAULT_BUCKETS: tuple[float, ...] = (0.1, 0.2, 0.5, 1.0, 3.0)


class HttpMetrics:
    """Per-process HTTP latency histogram bound to one explicit registry.

    Construct once at startup and hand the same instance to the middleware.
    prometheus_client collectors lock internally, so concurrent ``observe``
    calls from in-flight requests are safe.
    """

    def __init__(
        self,
        registry: CollectorRegistry,
        buckets: Sequence[float] = DEFAULT_BUCKETS,
        default_collectors: bool = True,
    ) -> None:
        self.registry = registry
        self.request_duration = Histogram(
            "http_request_duration_seconds",
            "Duration of HTTP requests in seconds",
            labelnames=("method", "route", "status_code"),
            buckets=tuple(buckets),
            registry=registry,
        )
        if default_collectors:
            ProcessCollector(registry=registry)
            PlatformCollector(registry=registry)
            GCCollector(registry=registry)

    def observe(self, method: str, route: str, status_code: int | str, seconds: float) -> None:
        self.request_duration.labels(method=method, route=route, status_code=str(status_code)).observe(
            max(seconds, 0.0)
        )

    def render(self) -> tuple[bytes, str]:
        """Prometheus text exposition for this registry."""

        return generate_latest(self.registry), CONTENT_TYPE_LATEST
