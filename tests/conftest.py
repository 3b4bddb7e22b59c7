from __future__ import annotations

import asyncio
import io
from collections.abc import AsyncIterator, Iterator

import pytest
from fastapi import FastAPI
from fastapi.responses import JSONResponse
from httpx import ASGITransport, AsyncClient
from prometheus_client import CollectorRegistry

from reqobs.app_factory import create_app
from reqobs.config import Settings, get_settings
from reqobs.observability.context import get_correlation_id
from reqobs.observability.logging import configure_logging, reset_logging


@pytest.fixture(autouse=True)
def test_environment(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    monkeypatch.setenv("SERVICE_NAME", "test-service")
    get_settings.cache_clear()

    yield

    reset_logging()
    get_settings.cache_clear()


@pytest.fixture
def settings() -> Settings:
    return Settings(service_name="test-service", service_version="9.9.9")


@pytest.fixture
def registry() -> CollectorRegistry:
    return CollectorRegistry()


@pytest.fixture
def log_stream(settings: Settings) -> io.StringIO:
    """Rendered JSON log lines; call shutdown_logging() before reading."""

    stream = io.StringIO()
    configure_logging(service=settings.service_name, stream=stream)
    return stream


@pytest.fixture
def app(settings: Settings, registry: CollectorRegistry, log_stream: io.StringIO) -> FastAPI:
    app = create_app(settings=settings, registry=registry)

    @app.get("/items/{item_id}")
    async def get_item(item_id: str) -> dict[str, str]:
        return {"item_id": item_id}

    @app.get("/slow")
    async def slow() -> dict[str, str]:
        await asyncio.sleep(0.2)
        return {"message": "Completed in 200ms"}

    @app.get("/boom")
    async def boom() -> dict[str, str]:
        raise RuntimeError("handler exploded")

    @app.get("/teapot")
    async def teapot() -> JSONResponse:
        return JSONResponse({"error": "short and stout"}, status_code=418)

    @app.get("/whoami")
    async def whoami() -> dict[str, str | None]:
        return {"correlation_id": get_correlation_id()}

    return app


@pytest.fixture
async def api_client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    # Let Starlette's ServerErrorMiddleware answer 500 instead of re-raising into the test.
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
