"""
procvitals: live runtime gauges for a monitoring pipeline.

Call ``register`` once at startup with a stats receiver; every gauge it
installs re-reads the runtime on each scrape.
"""

from procvitals.estimator import AllocationEstimator, SafepointStats
from procvitals.registry import normalize_name, register, registered_gauges
from procvitals.stats import (
    ExpressionSchema,
    Gauge,
    InMemoryStatsReceiver,
    StatsReceiver,
)

__all__ = [
    "AllocationEstimator",
    "ExpressionSchema",
    "Gauge",
    "InMemoryStatsReceiver",
    "SafepointStats",
    "StatsReceiver",
    "normalize_name",
    "register",
    "registered_gauges",
]
