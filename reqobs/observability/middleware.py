from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any, Callable

import structlog
from starlette.datastructures import Headers, MutableHeaders

from reqobs.observability.context import (
    RequestContext,
    reset_correlation_id,
    resolve_correlation_id,
    set_correlation_id,
)
from reqobs.observability.metrics import HttpMetrics


# Plain stdlib logger for sink failures; it never goes back through the middleware.
_internal_logger = logging.getLogger(__name__)


def _route_template(scope: dict[str, Any]) -> str:
    route = scope.get("route")
    template = getattr(route, "path_format", None) or getattr(route, "path", None)
    return template or scope.get("path") or ""


class RequestObservabilityMiddleware:
    """Correlation ids, start/completion access logs and a latency histogram.

    Pure ASGI so the completion hook can sit on the final ``send`` of the
    response body. Install it outside ServerErrorMiddleware (see
    ``reqobs.app_factory.ObservedFastAPI``) so error responses rendered by
    exception handlers are observed with their real status. A ``finally``
    guard covers the case where no response was sent at all; that is
    reported as 500.
    """

    def __init__(
        self,
        app: Callable[..., Any],
        *,
        service: str,
        metrics: HttpMetrics,
        header_name: str = "X-Request-ID",
        echo_header: bool = True,
        excluded_paths: Iterable[str] = (),
    ) -> None:
        if not service:
            raise ValueError("service must be a non-empty string")
        self.app = app
        self.service = service
        self.metrics = metrics
        self.header_name = header_name
        self.echo_header = echo_header
        # Excluded paths are still logged, just not observed.
        self._excluded_metric_paths = frozenset(excluded_paths)

    async def __call__(self, scope: dict[str, Any], receive: Callable[..., Any], send: Callable[..., Any]) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        context = self.on_request_start(scope)
        status_code: int = 500

        async def send_wrapper(message: dict[str, Any]) -> None:
            nonlocal status_code

            message_type = message.get("type")
            if message_type == "http.response.start":
                status_code = int(message.get("status", 500))
                if self.echo_header:
                    headers = MutableHeaders(scope=message)
                    headers[self.header_name] = context.correlation_id
            elif message_type == "http.response.body" and not message.get("more_body", False):
                self.on_request_complete(context, status_code, _route_template(scope))

            await send(message)

        token = set_correlation_id(context.correlation_id)
        try:
            # Handler log lines carry this app's service, not the process-wide default.
            with structlog.contextvars.bound_contextvars(
                correlation_id=context.correlation_id,
                service=self.service,
            ):
                try:
                    await self.app(scope, receive, send_wrapper)
                finally:
                    # No-op when the final body chunk already completed the request.
                    self.on_request_complete(context, status_code, _route_template(scope))
        finally:
            reset_correlation_id(token)

    def on_request_start(self, scope: dict[str, Any]) -> RequestContext:
        headers = Headers(scope=scope)
        client = scope.get("client")
        context = RequestContext(
            correlation_id=resolve_correlation_id(headers.get(self.header_name)),
            method=scope.get("method") or "",
            path=scope.get("path") or "",
            client_address=client[0] if client else None,
            user_agent=headers.get("user-agent"),
        )

        try:
            structlog.get_logger("access").info(
                "request_started",
                service=self.service,
                correlation_id=context.correlation_id,
                method=context.method,
                path=context.path,
                client_address=context.client_address,
                user_agent=context.user_agent,
            )
        except Exception as exc:
            _internal_logger.error("request_started log failed: %s", type(exc).__name__)

        return context

    def on_request_complete(self, context: RequestContext, status_code: int, route: str | None = None) -> None:
        if context.completed:
            return
        context.completed = True

        elapsed_ms = context.elapsed_ms()

        # Update metrics first so they update even if logging misbehaves.
        if context.path not in self._excluded_metric_paths:
            try:
                self.metrics.observe(
                    method=context.method,
                    route=route or context.path,
                    status_code=status_code,
                    seconds=elapsed_ms / 1000.0,
                )
            except Exception as exc:
                _internal_logger.error("latency observation failed: %s", type(exc).__name__)

        try:
            structlog.get_logger("access").info(
                "request_completed",
                service=self.service,
                correlation_id=context.correlation_id,
                method=context.method,
                path=context.path,
                status_code=status_code,
                duration_ms=round(elapsed_ms, 2),
            )
        except Exception as exc:
            _internal_logger.error("request_completed log failed: %s", type(exc).__name__)
