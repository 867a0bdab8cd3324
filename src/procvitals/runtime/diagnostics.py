"""
Vendor-specific diagnostic counters.

Runtimes expose allocation and pause accounting through internal,
non-portable interfaces, if at all. ``DiagnosticCounters`` narrows that to
a lookup by counter name plus an optional collection-notification hook.
``NoDiagnostics`` is the fallback for runtimes that expose nothing.

For CPython, ``GcPauseTracker`` hooks ``gc.callbacks``: a collection holds
the interpreter, so each one is treated as a global pause.
"""

from __future__ import annotations

import gc
import time
from dataclasses import dataclass, replace
from typing import Any, Callable, Protocol

import structlog

logger = structlog.get_logger()

Counter = Callable[[], int]

# Cumulative bytes allocated into the young generation
EDEN_ALLOCATED = "gc.eden.allocated_bytes"
# Bytes currently in use in the young generation
EDEN_USED = "gc.eden.used_bytes"
SAFEPOINT_SYNC_TIME = "rt.safepoint.sync_time_ms"
SAFEPOINT_TOTAL_TIME = "rt.safepoint.total_time_ms"
SAFEPOINT_COUNT = "rt.safepoint.count"
APPLICATION_TIME = "rt.application_time_ns"
TENURING_THRESHOLD = "gc.policy.tenuring_threshold"
METASPACE_MAX_CAPACITY = "gc.metaspace.max_capacity"


@dataclass(frozen=True)
class CollectionEvent:
    """Published by a runtime after each collection."""

    collector: str
    young: bool
    eden_before: int
    eden_after: int


CollectionListener = Callable[[CollectionEvent], None]


class DiagnosticCounters(Protocol):
    def find(self, name: str) -> Counter | None:
        """Return a reader for the named counter, or None if absent."""
        ...

    def add_collection_listener(self, listener: CollectionListener) -> bool:
        """Subscribe to collection events; False if none are published."""
        ...


class NoDiagnostics:
    """Diagnostics for a runtime that exposes no internal counters."""

    def find(self, name: str) -> Counter | None:
        return None

    def add_collection_listener(self, listener: CollectionListener) -> bool:
        return False


@dataclass(frozen=True)
class _PauseState:
    collections: int
    total_ns: int
    per_generation_ns: tuple[int, ...]
    per_generation_count: tuple[int, ...]
    started_ns: int | None
    generation: int | None


class GcPauseTracker:
    """
    Times every collection via ``gc.callbacks``.

    State is an immutable snapshot replaced in one assignment per GC phase,
    so readers on other threads see either the old or the new state.
    """

    def __init__(self, generations: int = 3) -> None:
        self._generations = generations
        self._installed_ns = time.perf_counter_ns()
        self._state = _PauseState(
            collections=0,
            total_ns=0,
            per_generation_ns=(0,) * generations,
            per_generation_count=(0,) * generations,
            started_ns=None,
            generation=None,
        )
        self._installed = False

    @property
    def installed(self) -> bool:
        return self._installed

    def install(self) -> None:
        if self._installed:
            return
        gc.callbacks.append(self._on_gc)
        self._installed = True
        logger.debug("gc_pause_tracker_installed", generations=self._generations)

    def uninstall(self) -> None:
        if not self._installed:
            return
        gc.callbacks.remove(self._on_gc)
        self._installed = False

    def _on_gc(self, phase: str, info: dict[str, Any]) -> None:
        state = self._state
        now = time.perf_counter_ns()
        if phase == "start":
            self._state = replace(state, started_ns=now, generation=info.get("generation"))
            return
        if state.started_ns is None:
            return
        elapsed = now - state.started_ns
        per_gen = list(state.per_generation_ns)
        per_count = list(state.per_generation_count)
        generation = state.generation
        if generation is not None and 0 <= generation < self._generations:
            per_gen[generation] += elapsed
            per_count[generation] += 1
        self._state = _PauseState(
            collections=state.collections + 1,
            total_ns=state.total_ns + elapsed,
            per_generation_ns=tuple(per_gen),
            per_generation_count=tuple(per_count),
            started_ns=None,
            generation=None,
        )

    def collections(self) -> int:
        return self._state.collections

    def total_pause_ms(self) -> int:
        return self._state.total_ns // 1_000_000

    def generation_pause_ms(self, generation: int) -> int:
        return self._state.per_generation_ns[generation] // 1_000_000

    def generation_collections(self, generation: int) -> int:
        return self._state.per_generation_count[generation]

    def application_time_ns(self) -> int:
        """Time since install spent outside collections."""
        state = self._state
        now = time.perf_counter_ns()
        paused = state.total_ns
        if state.started_ns is not None:
            paused += now - state.started_ns
        return now - self._installed_ns - paused


class GcPauseDiagnostics:
    """Publishes the pause tracker's readings as diagnostic counters."""

    def __init__(self, tracker: GcPauseTracker) -> None:
        self._counters: dict[str, Counter] = {
            SAFEPOINT_TOTAL_TIME: tracker.total_pause_ms,
            SAFEPOINT_COUNT: tracker.collections,
            APPLICATION_TIME: tracker.application_time_ns,
        }

    def find(self, name: str) -> Counter | None:
        return self._counters.get(name)

    def add_collection_listener(self, listener: CollectionListener) -> bool:
        return False
