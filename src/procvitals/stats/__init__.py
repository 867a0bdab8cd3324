"""
Stats receivers, gauge handles and descriptive expressions.
"""

from procvitals.stats.expressions import ROLE_LABEL, Expression, ExpressionSchema, Unit
from procvitals.stats.receiver import (
    Gauge,
    GaugeFn,
    InMemoryStatsReceiver,
    ScopedStatsReceiver,
    StatsReceiver,
)

__all__ = [
    "Expression",
    "ExpressionSchema",
    "Gauge",
    "GaugeFn",
    "InMemoryStatsReceiver",
    "ROLE_LABEL",
    "ScopedStatsReceiver",
    "StatsReceiver",
    "Unit",
]
