from __future__ import annotations

from time import perf_counter
from typing import Any, Awaitable, Callable

import httpx
import structlog

from reqobs.config import Settings
from reqobs.observability.context import get_correlation_id


def correlation_hook(header_name: str) -> Callable[[httpx.Request], Awaitable[None]]:
    """httpx request hook forwarding the current request's correlation id."""

    async def hook(request: httpx.Request) -> None:
        correlation_id = get_correlation_id()
        if correlation_id and header_name not in request.headers:
            request.headers[header_name] = correlation_id

    return hook


def create_peer_client(settings: Settings, **kwargs: Any) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=settings.peer_base_url,
        timeout=settings.peer_timeout_seconds,
        event_hooks={"request": [correlation_hook(settings.request_id_header)]},
        **kwargs,
    )


async def call_peer(client: httpx.AsyncClient, path: str = "/") -> httpx.Response:
    """GET ``path`` on the peer service, timing the call and logging the outcome.

    Non-2xx responses and transport errors are logged and re-raised; there is
    no retry.
    """

    target = str(client.base_url)
    start = perf_counter()
    try:
        resp = await client.get(path)
        resp.raise_for_status()
    except httpx.HTTPError as exc:
        elapsed_ms = (perf_counter() - start) * 1000.0
        status_code = exc.response.status_code if isinstance(exc, httpx.HTTPStatusError) else None
        structlog.get_logger("peer").error(
            "peer_call_failed",
            target=target,
            path=path,
            status_code=status_code,
            error=str(exc) or type(exc).__name__,
            elapsed_ms=round(elapsed_ms, 2),
        )
        raise

    elapsed_ms = (perf_counter() - start) * 1000.0
    structlog.get_logger("peer").info(
        "peer_call",
        target=target,
        path=path,
        status_code=resp.status_code,
        response_bytes=len(resp.content),
        elapsed_ms=round(elapsed_ms, 2),
    )
    return resp
