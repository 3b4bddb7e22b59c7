"""Request observability for ASGI services.

Correlation ids + structlog contextvars, start/completion access logs, and a
Prometheus latency histogram on an explicitly constructed registry.
"""

from reqobs.observability.metrics import HttpMetrics
from reqobs.observability.middleware import RequestObservabilityMiddleware

__all__ = ["HttpMetrics", "RequestObservabilityMiddleware"]
