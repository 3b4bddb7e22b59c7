from __future__ import annotations

import contextvars
import uuid
from dataclasses import dataclass, field
from time import perf_counter


_correlation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar("correlation_id", default=None)


def new_correlation_id() -> str:
    return uuid.uuid4().hex


def resolve_correlation_id(header_value: str | None) -> str:
    """Reuse an inbound id verbatim; blank or missing values get a fresh one."""

    if header_value is None or not header_value.strip():
        return new_correlation_id()
    return header_value


def get_correlation_id() -> str | None:
    """Correlation id of the request being handled in the current context, if any."""

    return _correlation_id.get()


def set_correlation_id(correlation_id: str | None) -> contextvars.Token[str | None]:
    return _correlation_id.set(correlation_id)


def reset_correlation_id(token: contextvars.Token[str | None]) -> None:
    _correlation_id.reset(token)


@dataclass
class RequestContext:
    correlation_id: str
    method: str
    path: str
    client_address: str | None = None
    user_agent: str | None = None
    start_time: float = field(default_factory=perf_counter)
    completed: bool = False

    def elapsed_ms(self) -> float:
        return max((perf_counter() - self.start_time) * 1000.0, 0.0)
