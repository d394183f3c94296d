"""Prometheus metrics for the reference dispatcher.

Metric families (all registered on one `CollectorRegistry`):

- ``dispatch_attempts_total{event_type,outcome}``: entries processed, by outcome
- ``dispatch_duration_seconds{event_type}``: time spent in `Publisher.publish`
- ``dispatch_failures_total{event_type,terminal}``: failed attempts
- ``dispatch_queue_depth``: pending entries seen by the last tick
- ``dead_letters_total``: dead letters seen by the last tick

Recording never raises; a broken collector is logged and the dispatch goes on.
"""

from __future__ import annotations

import functools
import logging

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge, Histogram

logger = logging.getLogger(__name__)

UNKNOWN_EVENT_TYPE = "unknown"

# publish calls are network round trips: sub-second is normal, minutes is not
DURATION_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0)


class DispatchMetrics:
    """Counters, histogram and gauges describing dispatcher activity.

    Args:
        registry: Where the metric families are registered. Pass a fresh
            `CollectorRegistry` in tests; production code shares one instance
            per process through `default_metrics`.
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        registry = REGISTRY if registry is None else registry
        self.registry = registry
        self.attempts = Counter(
            "dispatch_attempts_total",
            "Dispatch entries processed, by outcome",
            ["event_type", "outcome"],
            registry=registry,
        )
        self.duration = Histogram(
            "dispatch_duration_seconds",
            "Time spent publishing one domain event",
            ["event_type"],
            buckets=DURATION_BUCKETS,
            registry=registry,
        )
        self.failures = Counter(
            "dispatch_failures_total",
            "Failed dispatch attempts",
            ["event_type", "terminal"],
            registry=registry,
        )
        self.queue_depth = Gauge(
            "dispatch_queue_depth",
            "Pending dispatch entries at the start of the last tick",
            registry=registry,
        )
        self.dead_letters = Gauge(
            "dead_letters_total",
            "Dead letters recorded, as of the last tick",
            registry=registry,
        )

    def record_attempt(self, event_type: str | None, outcome: str) -> None:
        try:
            self.attempts.labels(
                event_type=event_type or UNKNOWN_EVENT_TYPE, outcome=outcome
            ).inc()
        except Exception:  # pylint: disable=broad-except
            logger.exception("Error recording dispatch attempt metric")

    def observe_duration(self, event_type: str, seconds: float) -> None:
        try:
            self.duration.labels(event_type=event_type).observe(seconds)
        except Exception:  # pylint: disable=broad-except
            logger.exception("Error recording dispatch duration metric")

    def record_failure(self, event_type: str | None, terminal: bool) -> None:
        try:
            self.failures.labels(
                event_type=event_type or UNKNOWN_EVENT_TYPE,
                terminal=str(terminal).lower(),
            ).inc()
        except Exception:  # pylint: disable=broad-except
            logger.exception("Error recording dispatch failure metric")

    def set_backlog(self, pending: int, dead_letters: int | None) -> None:
        """Update both gauges; an unknown dead-letter count leaves that gauge as is."""
        try:
            self.queue_depth.set(pending)
            if dead_letters is not None:
                self.dead_letters.set(dead_letters)
        except Exception:  # pylint: disable=broad-except
            logger.exception("Error recording dispatch backlog metrics")


@functools.cache
def default_metrics() -> DispatchMetrics:
    """The process-wide metrics, registered on the default registry once."""
    return DispatchMetrics()
