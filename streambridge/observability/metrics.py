"""
streambridge - Prometheus Metrics

Metrics exposed:
- streambridge_calls_total: Counter of generate/stream calls by flavor, operation, outcome
- streambridge_call_duration_seconds: Histogram of generate latency and stream setup latency
- streambridge_stream_events_total: Counter of emitted stream events by type
- streambridge_tokens_total: Counter of tokens reported by the backend (input/output)
- streambridge_classified_errors_total: Counter of classified errors by kind and retryability
- streambridge_binding_constructions_total: Counter of backend binding constructions

Usage:
    from streambridge.observability.metrics import get_metrics, setup_metrics

    # Optional: use a dedicated registry
    setup_metrics(CollectorRegistry())

    metrics = get_metrics()
    metrics.record_classified_error(kind="RateLimited", retryable=True)

    # Text exposition for a /metrics handler of the host application
    body = metrics.exposition()
"""

from typing import Optional

from prometheus_client import (
    Counter,
    Histogram,
    CollectorRegistry,
    generate_latest,
    REGISTRY,
)


class MetricsCollector:
    """Central metrics collector using the Prometheus client."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry if registry is not None else REGISTRY

        self.calls_total = Counter(
            "streambridge_calls_total",
            "Total number of generate/stream calls",
            labelnames=["api_flavor", "operation", "outcome"],
            registry=self.registry,
        )

        # Backend calls typically range from 0.1s to 60s+
        self.call_duration = Histogram(
            "streambridge_call_duration_seconds",
            "Generate duration, or stream setup duration, in seconds",
            labelnames=["api_flavor", "operation"],
            buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 25.0, 50.0, 100.0, float("inf")),
            registry=self.registry,
        )

        self.stream_events_total = Counter(
            "streambridge_stream_events_total",
            "Stream events emitted to callers",
            labelnames=["api_flavor", "event_type"],
            registry=self.registry,
        )

        self.tokens_total = Counter(
            "streambridge_tokens_total",
            "Tokens reported by the backend",
            labelnames=["api_flavor", "type"],  # type = input/output
            registry=self.registry,
        )

        self.classified_errors_total = Counter(
            "streambridge_classified_errors_total",
            "Errors passed through the classifier",
            labelnames=["kind", "retryable"],
            registry=self.registry,
        )

        self.binding_constructions_total = Counter(
            "streambridge_binding_constructions_total",
            "Backend binding constructions by outcome",
            labelnames=["api_flavor", "outcome"],  # outcome = success/failure
            registry=self.registry,
        )

    def record_call(
        self,
        api_flavor: str,
        operation: str,
        outcome: str,
        duration_seconds: Optional[float] = None,
    ):
        """Record a finished generate call or stream setup."""
        self.calls_total.labels(
            api_flavor=api_flavor,
            operation=operation,
            outcome=outcome,
        ).inc()

        if duration_seconds is not None:
            self.call_duration.labels(
                api_flavor=api_flavor,
                operation=operation,
            ).observe(duration_seconds)

    def record_stream_event(self, api_flavor: str, event_type: str):
        self.stream_events_total.labels(api_flavor=api_flavor, event_type=event_type).inc()

    def record_tokens(
        self,
        api_flavor: str,
        input_tokens: Optional[int],
        output_tokens: Optional[int],
    ):
        """Record token usage; missing counters are skipped."""
        if input_tokens:
            self.tokens_total.labels(api_flavor=api_flavor, type="input").inc(input_tokens)
        if output_tokens:
            self.tokens_total.labels(api_flavor=api_flavor, type="output").inc(output_tokens)

    def record_classified_error(self, kind: str, retryable: bool):
        self.classified_errors_total.labels(
            kind=kind,
            retryable="true" if retryable else "false",
        ).inc()

    def record_binding_construction(self, api_flavor: str, success: bool):
        self.binding_constructions_total.labels(
            api_flavor=api_flavor,
            outcome="success" if success else "failure",
        ).inc()

    def exposition(self) -> bytes:
        """Prometheus text exposition of this collector's registry."""
        return generate_latest(self.registry)


# Module-level functions for convenience
_metrics_instance: Optional[MetricsCollector] = None


def setup_metrics(registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """
    Setup metrics collection.

    Safe to call multiple times with the same registry - returns the
    existing instance.
    """
    global _metrics_instance

    target = registry if registry is not None else REGISTRY
    if _metrics_instance is not None and _metrics_instance.registry is target:
        return _metrics_instance

    _metrics_instance = MetricsCollector(target)
    return _metrics_instance


def get_metrics() -> MetricsCollector:
    """Get the metrics collector, creating it on the default registry if needed."""
    if _metrics_instance is None:
        return setup_metrics()
    return _metrics_instance
