"""
prometheus_client adapter.

Exposes registered gauges as a custom collector, evaluated on every
scrape. Counter-like gauges become counters, everything else a gauge;
a counter-like gauge reading below zero is exported as a gauge.
Register the receiver with a CollectorRegistry; serving the registry is
left to the application.
"""

from __future__ import annotations

import re
from typing import Iterable

from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily
from prometheus_client.metrics_core import Metric
from prometheus_client.registry import Collector

from procvitals.stats.expressions import ExpressionSchema
from procvitals.stats.receiver import Gauge, GaugeFn, StatsReceiver, WeakGaugeStore

_INVALID_METRIC_CHARS = re.compile(r"[^a-zA-Z0-9_]")


def metric_name(path: tuple[str, ...]) -> str:
    """Flatten a gauge path into a Prometheus metric name."""
    name = _INVALID_METRIC_CHARS.sub("_", "_".join(path))
    if name and name[0].isdigit():
        name = f"_{name}"
    return name


class PrometheusStatsReceiver(StatsReceiver, Collector):
    """Receiver that doubles as a prometheus_client collector."""

    def __init__(self) -> None:
        self._store = WeakGaugeStore()
        self._help: dict[tuple[str, ...], str] = {}

    def add_gauge(self, *name: str, fn: GaugeFn, counterish: bool = False) -> Gauge:
        gauge = Gauge(path=tuple(name), fn=fn, counterish=counterish)
        self._store.add(gauge)
        return gauge

    def register_expression(self, schema: ExpressionSchema) -> None:
        if not schema.description:
            return
        for path in schema.expression.metrics:
            self._help.setdefault(path, schema.description)

    def describe(self) -> Iterable[Metric]:
        # Names are only known once gauges are registered; skip duplicate checks
        return []

    def collect(self) -> Iterable[Metric]:
        for gauge in self._store.live():
            name = metric_name(gauge.path)
            documentation = self._help.get(gauge.path, gauge.name)
            value = gauge.read()
            # Negative sentinels ("unsupported") go out as gauges
            if gauge.counterish and value >= 0:
                yield CounterMetricFamily(name, documentation, value=value)
            else:
                yield GaugeMetricFamily(name, documentation, value=value)
