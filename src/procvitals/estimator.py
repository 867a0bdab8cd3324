"""
Allocation and safepoint estimation.

Young-generation allocation and global pause accounting are not part of
any portable management interface. ``AllocationEstimator`` probes the
runtime's diagnostic counters once and reports what it can derive; a
reading it cannot derive is reported as unavailable (eden) or as zero
(safepoints, application time, tenuring threshold), never guessed.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from procvitals.runtime.diagnostics import (
    APPLICATION_TIME,
    EDEN_ALLOCATED,
    EDEN_USED,
    METASPACE_MAX_CAPACITY,
    SAFEPOINT_COUNT,
    SAFEPOINT_SYNC_TIME,
    SAFEPOINT_TOTAL_TIME,
    TENURING_THRESHOLD,
    CollectionEvent,
    Counter,
    DiagnosticCounters,
)
from procvitals.stats.receiver import Gauge, StatsReceiver

logger = structlog.get_logger()


@dataclass(frozen=True)
class SafepointStats:
    """Cumulative global pause accounting."""

    sync_time_millis: int
    total_time_millis: int
    count: int


def _zero() -> int:
    return 0


class AllocationEstimator:
    """
    Derives eden allocation and safepoint readings from diagnostic counters.

    Eden bytes are tracked from, in order of preference:

    1. a cumulative allocation counter, which is also published on the
       given stats receiver as a counter-like gauge;
    2. young-collection events plus a current eden usage counter: every
       young collection adds what it reclaimed to a running total, and the
       reading is that total plus what eden holds now.

    Call ``start()`` exactly once before reading.
    """

    def __init__(self, stats: StatsReceiver, diagnostics: DiagnosticCounters) -> None:
        self._stats = stats
        self._diagnostics = diagnostics
        self._eden: Counter | None = None
        self._reclaimed = 0
        self._sync_time: Counter = _zero
        self._total_time: Counter = _zero
        self._count: Counter = _zero
        self._application_time: Counter = _zero
        self._tenuring_threshold: Counter = _zero
        self._metaspace_max_capacity: Counter | None = None
        # Keeps the published allocation gauge alive
        self._gauges: list[Gauge] = []

    def start(self) -> None:
        find = self._diagnostics.find

        eden_source = None
        direct = find(EDEN_ALLOCATED)
        if direct is not None:
            eden_source = "counter"
            self._eden = direct
            self._gauges.append(
                self._stats.add_gauge("eden", "allocated_bytes", fn=direct, counterish=True)
            )
        else:
            eden_used = find(EDEN_USED)
            if eden_used is not None and self._diagnostics.add_collection_listener(
                self._on_collection
            ):
                self._eden = lambda: self._reclaimed + eden_used()
                eden_source = "collections"

        self._sync_time = find(SAFEPOINT_SYNC_TIME) or _zero
        self._total_time = find(SAFEPOINT_TOTAL_TIME) or _zero
        self._count = find(SAFEPOINT_COUNT) or _zero
        self._application_time = find(APPLICATION_TIME) or _zero
        self._tenuring_threshold = find(TENURING_THRESHOLD) or _zero
        self._metaspace_max_capacity = find(METASPACE_MAX_CAPACITY)

        logger.debug(
            "allocation_estimator_started",
            tracking_eden=self.tracking_eden,
            eden_source=eden_source,
            tracking_metaspace=self.tracking_metaspace,
        )

    def _on_collection(self, event: CollectionEvent) -> None:
        if not event.young:
            return
        # Single writer: the runtime publishes collection events one at a time
        self._reclaimed += event.eden_before - event.eden_after

    @property
    def gauges(self) -> tuple[Gauge, ...]:
        """Gauges published on the stats receiver by ``start()``."""
        return tuple(self._gauges)

    @property
    def tracking_eden(self) -> bool:
        return self._eden is not None

    @property
    def tracking_metaspace(self) -> bool:
        return self._metaspace_max_capacity is not None

    def eden(self) -> int | None:
        """Bytes allocated into the young generation since start, if tracked."""
        if self._eden is None:
            return None
        return self._eden()

    def safepoint(self) -> SafepointStats:
        return SafepointStats(
            sync_time_millis=self._sync_time(),
            total_time_millis=self._total_time(),
            count=self._count(),
        )

    def application_time(self) -> int:
        """Nanoseconds spent outside safepoints."""
        return self._application_time()

    def tenuring_threshold(self) -> int:
        return self._tenuring_threshold()

    def metaspace_max_capacity(self) -> int | None:
        if self._metaspace_max_capacity is None:
            return None
        return self._metaspace_max_capacity()
