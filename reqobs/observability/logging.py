from __future__ import annotations

import logging
import queue
import sys
from logging.handlers import QueueHandler, QueueListener
from typing import Any, TextIO

import structlog
from opentelemetry import trace
from structlog.typing import EventDict, Processor, WrappedLogger


_CONFIGURED = False
_LISTENER: QueueListener | None = None
_QUEUE_HANDLER: QueueHandler | None = None
_LOGGER_NAMES = ("uvicorn", "uvicorn.error", "uvicorn.access")


def add_service(service: str) -> Processor:
    """Stamp every event with the emitting service's name."""

    def processor(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("service", service)
        return event_dict

    return processor


def add_trace_context(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    span_context = trace.get_current_span().get_span_context()
    if span_context.is_valid:
        event_dict.setdefault("trace_id", format(span_context.trace_id, "032x"))
        event_dict.setdefault("span_id", format(span_context.span_id, "016x"))
    return event_dict


def configure_logging(service: str, level: int | str = logging.INFO, stream: TextIO | None = None) -> None:
    """Configure structlog + stdlib logging for JSON output.

    Records are rendered on the calling thread and handed to a queue; a
    background listener thread does the actual stream writes, so a slow
    stdout never holds up request completion.

    Safe to call multiple times (no-op until shutdown_logging is called).
    ``service`` is the process-wide default stamp: a later call with another
    name does not change it. Inside a request the middleware binds its own
    service into the context, which takes precedence.
    """

    global _CONFIGURED, _LISTENER, _QUEUE_HANDLER
    if _CONFIGURED:
        return

    pre_chain: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        add_service(service),
        add_trace_context,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.EventRenamer("message"),
    ]

    structlog.configure(
        processors=[
            *pre_chain,
            # Let ProcessorFormatter render JSON for stdlib log records too.
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.JSONRenderer(),
        ],
        foreign_pre_chain=pre_chain,
    )

    log_queue: queue.SimpleQueue[logging.LogRecord] = queue.SimpleQueue()
    queue_handler = QueueHandler(log_queue)
    queue_handler.setFormatter(formatter)

    # QueueHandler.prepare() has already rendered the JSON line into record.msg.
    stream_handler = logging.StreamHandler(stream or sys.stdout)
    stream_handler.setFormatter(logging.Formatter("%(message)s"))

    _LISTENER = QueueListener(log_queue, stream_handler)
    _LISTENER.start()
    _QUEUE_HANDLER = queue_handler

    root = logging.getLogger()
    root.handlers = [queue_handler]
    root.setLevel(level)

    # Keep uvicorn's own loggers consistent with our handler.
    for name in _LOGGER_NAMES:
        logger = logging.getLogger(name)
        logger.handlers = [queue_handler]
        logger.propagate = False
        logger.setLevel(level)

    _CONFIGURED = True


def shutdown_logging() -> None:
    """Drain the log queue and stop the writer thread.

    The queue handler is swapped for a direct stream handler with the same
    formatter, so records logged afterwards (uvicorn's final lines, late
    handler logs) are still written, synchronously.
    """

    global _CONFIGURED, _LISTENER, _QUEUE_HANDLER
    _CONFIGURED = False
    if _LISTENER is None or _QUEUE_HANDLER is None:
        return

    _LISTENER.stop()
    stream = next(
        (h.stream for h in _LISTENER.handlers if isinstance(h, logging.StreamHandler)),
        sys.stdout,
    )
    direct_handler = logging.StreamHandler(stream)
    direct_handler.setFormatter(_QUEUE_HANDLER.formatter)

    for logger in (logging.getLogger(), *(logging.getLogger(name) for name in _LOGGER_NAMES)):
        logger.handlers = [direct_handler if h is _QUEUE_HANDLER else h for h in logger.handlers]

    _LISTENER = None
    _QUEUE_HANDLER = None


def reset_logging() -> None:
    """Undo configure_logging (used by tests)."""

    shutdown_logging()
    logging.getLogger().handlers = []
    for name in _LOGGER_NAMES:
        logger = logging.getLogger(name)
        logger.handlers = []
        logger.propagate = True
    structlog.reset_defaults()
