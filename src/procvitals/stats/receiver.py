"""
Stats receivers: where gauges are registered.

A receiver stores gauges the way most metrics sinks do, through weak
references. Whoever creates a gauge is responsible for keeping it alive;
once the last strong reference is dropped the gauge silently disappears
from the receiver.
"""

from __future__ import annotations

import weakref
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Union

import structlog

from procvitals.stats.expressions import ExpressionSchema

logger = structlog.get_logger()

Number = Union[int, float]
GaugeFn = Callable[[], Number]


@dataclass(frozen=True, eq=False)
class Gauge:
    """
    Handle for a registered gauge.

    Attributes:
        path: Name segments, outermost scope first
        fn: Zero-argument function evaluated on every read
        counterish: Hint that the value never decreases
    """

    path: tuple[str, ...]
    fn: GaugeFn
    counterish: bool = False

    @property
    def name(self) -> str:
        return ".".join(self.path)

    def read(self) -> Number:
        return self.fn()


class StatsReceiver(ABC):
    """Minimal sink interface the registry writes into."""

    def scope(self, *namespace: str) -> StatsReceiver:
        """Return a receiver that prefixes every name with ``namespace``."""
        if not namespace:
            return self
        return ScopedStatsReceiver(self, namespace)

    @abstractmethod
    def add_gauge(self, *name: str, fn: GaugeFn, counterish: bool = False) -> Gauge:
        """Register a gauge under ``name`` and return its handle."""

    @abstractmethod
    def register_expression(self, schema: ExpressionSchema) -> None:
        """Record a descriptive expression."""


class ScopedStatsReceiver(StatsReceiver):
    """Namespacing wrapper around another receiver."""

    def __init__(self, underlying: StatsReceiver, namespace: tuple[str, ...]) -> None:
        self._underlying = underlying
        self._namespace = tuple(namespace)

    @property
    def namespace(self) -> tuple[str, ...]:
        return self._namespace

    def scope(self, *namespace: str) -> StatsReceiver:
        if not namespace:
            return self
        return ScopedStatsReceiver(self._underlying, self._namespace + tuple(namespace))

    def add_gauge(self, *name: str, fn: GaugeFn, counterish: bool = False) -> Gauge:
        return self._underlying.add_gauge(*self._namespace, *name, fn=fn, counterish=counterish)

    def register_expression(self, schema: ExpressionSchema) -> None:
        self._underlying.register_expression(schema)


class WeakGaugeStore:
    """Path-keyed weak storage shared by the concrete receivers."""

    def __init__(self) -> None:
        self._gauges: weakref.WeakValueDictionary[tuple[str, ...], Gauge] = (
            weakref.WeakValueDictionary()
        )

    def add(self, gauge: Gauge) -> None:
        if gauge.path in self._gauges:
            # Last registration wins
            logger.debug("gauge_replaced", path=gauge.name)
        self._gauges[gauge.path] = gauge

    def get(self, path: tuple[str, ...]) -> Gauge | None:
        return self._gauges.get(path)

    def live(self) -> list[Gauge]:
        return sorted(self._gauges.values(), key=lambda g: g.path)


class InMemoryStatsReceiver(StatsReceiver):
    """Receiver that keeps gauges in memory and reads them on demand."""

    def __init__(self) -> None:
        self._store = WeakGaugeStore()
        self.expressions: list[ExpressionSchema] = []

    def add_gauge(self, *name: str, fn: GaugeFn, counterish: bool = False) -> Gauge:
        gauge = Gauge(path=tuple(name), fn=fn, counterish=counterish)
        self._store.add(gauge)
        return gauge

    def register_expression(self, schema: ExpressionSchema) -> None:
        self.expressions.append(schema)

    def gauges(self) -> list[Gauge]:
        """Live gauges sorted by path."""
        return self._store.live()

    def gauge(self, *path: str) -> Gauge | None:
        return self._store.get(tuple(path))

    def read(self, *path: str) -> Number:
        """Read a gauge by path; raises KeyError if it is not registered."""
        gauge = self.gauge(*path)
        if gauge is None:
            raise KeyError(".".join(path))
        return gauge.read()

    def snapshot(self) -> dict[str, Number]:
        """Read every live gauge, keyed by dotted name."""
        return {g.name: g.read() for g in self.gauges()}
