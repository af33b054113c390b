"""
streambridge - Observability Module

- Prometheus metrics (Counter, Histogram)
- Structured JSON logging with context injection

Usage:
    from streambridge.observability import get_logger, get_metrics

    logger = get_logger(__name__)
    metrics = get_metrics()
"""

from .metrics import (
    MetricsCollector,
    get_metrics,
    setup_metrics,
)
from .logging import (
    JSONFormatter,
    StructuredLogger,
    TimedOperation,
    get_logger,
    setup_logging,
    LogContext,
)

__all__ = [
    # Metrics
    "MetricsCollector",
    "get_metrics",
    "setup_metrics",
    # Logging
    "JSONFormatter",
    "StructuredLogger",
    "TimedOperation",
    "get_logger",
    "setup_logging",
    "LogContext",
]
