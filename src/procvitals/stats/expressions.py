"""
Descriptive expressions layered over registered gauges.

An expression names one or more already-registered gauges and attaches a
description, a unit and labels for downstream dashboards. Nothing numeric
depends on them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from procvitals.stats.receiver import Gauge

# Label naming the subsystem an expression belongs to
ROLE_LABEL = "role"


class Unit(Enum):
    """Units an expression can be tagged with."""

    UNSPECIFIED = "unspecified"
    MILLISECONDS = "milliseconds"
    BYTES = "bytes"


@dataclass(frozen=True)
class Expression:
    """References gauges by their registered path."""

    metrics: tuple[tuple[str, ...], ...]

    @classmethod
    def of(cls, *gauges: Gauge) -> Expression:
        return cls(metrics=tuple(g.path for g in gauges))


@dataclass(frozen=True)
class ExpressionSchema:
    """A named, labeled, unit-tagged expression."""

    name: str
    expression: Expression
    labels: dict[str, str] = field(default_factory=dict)
    unit: Unit = Unit.UNSPECIFIED
    description: str = ""

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "name": self.name,
            "metrics": [".".join(path) for path in self.expression.metrics],
            "labels": dict(self.labels),
            "unit": self.unit.value,
            "description": self.description,
        }
