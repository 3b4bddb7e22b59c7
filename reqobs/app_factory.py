from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import structlog
from fastapi import FastAPI
from prometheus_client import CollectorRegistry
from starlette.types import ASGIApp

from reqobs.api.health import router as health_router
from reqobs.api.metrics import router as metrics_router
from reqobs.config import Settings, get_settings
from reqobs.observability.logging import configure_logging, shutdown_logging
from reqobs.observability.metrics import HttpMetrics
from reqobs.observability.middleware import RequestObservabilityMiddleware
from reqobs.observability.tracing import configure_tracing


class ObservedFastAPI(FastAPI):
    """FastAPI app whose observability middleware wraps the whole stack.

    ``add_middleware`` would place it inside Starlette's ServerErrorMiddleware,
    where responses rendered by ``Exception``/500 handlers are never seen.
    """

    observability_options: dict[str, Any] | None = None

    def build_middleware_stack(self) -> ASGIApp:
        app = super().build_middleware_stack()
        if self.observability_options is None:
            return app
        return RequestObservabilityMiddleware(app, **self.observability_options)


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings: Settings = app.state.settings
    structlog.get_logger("lifecycle").info(
        "service_started",
        service=settings.service_name,
        version=settings.service_version,
    )
    yield
    structlog.get_logger("lifecycle").info("service_stopping", service=settings.service_name)
    shutdown_logging()


def create_app(settings: Settings | None = None, registry: CollectorRegistry | None = None) -> FastAPI:
    """Build a FastAPI app with request observability wired in.

    One registry per app; pass ``registry`` to share or inspect it.
    """

    settings = settings or get_settings()
    configure_logging(service=settings.service_name, level=settings.log_level)

    http_metrics = HttpMetrics(
        registry if registry is not None else CollectorRegistry(),
        buckets=settings.histogram_buckets,
    )

    app = ObservedFastAPI(title=settings.service_name, version=settings.service_version, lifespan=_lifespan)
    app.state.settings = settings
    app.state.http_metrics = http_metrics
    app.observability_options = {
        "service": settings.service_name,
        "metrics": http_metrics,
        "header_name": settings.request_id_header,
        "echo_header": settings.echo_request_id,
        "excluded_paths": settings.metrics_excluded_paths,
    }

    app.include_router(health_router)
    app.include_router(metrics_router)

    configure_tracing(app, settings)
    return app
