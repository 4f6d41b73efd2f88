"""Prometheus counters for alarm decisions and transport results."""

from __future__ import annotations

from prometheus_client import REGISTRY, CollectorRegistry, Counter

_default: "AlarmMetrics | None" = None


class AlarmMetrics:
    """Counters exported for Grafana alerting on the alarm engine itself."""

    def __init__(self, registry: CollectorRegistry | None = REGISTRY):
        self.events = Counter(
            "log_alarm_events_total",
            "Log events seen by the alarm engine, by pipeline outcome",
            ["outcome"],
            registry=registry,
        )
        self.transport_results = Counter(
            "log_alarm_transport_results_total",
            "Notification attempts per transport and result status",
            ["transport", "status"],
            registry=registry,
        )

    def record_outcome(self, outcome: str) -> None:
        self.events.labels(outcome=outcome).inc()

    def record_transport(self, transport: str, status: str) -> None:
        self.transport_results.labels(transport=transport, status=status).inc()


def default_metrics() -> AlarmMetrics:
    """Process-wide counters on the default registry, created once."""
    global _default
    if _default is None:
        _default = AlarmMetrics()
    return _default
