"""
Runtime adapter for the host CPython process.

Maps the management-interface view onto what CPython and the OS expose:

- heap / non-heap: resident and virtual memory (psutil)
- threads: ``threading`` module, with a tracked peak
- class loading: module loading (``sys.modules``)
- memory pools: GC generation counters and thresholds
- collectors: one per GC generation (``gc.get_stats``)
- file descriptors: POSIX only
"""

from __future__ import annotations

import gc
import platform
import sys
import threading
import time

import psutil
import structlog

from procvitals.runtime.diagnostics import (
    DiagnosticCounters,
    GcPauseDiagnostics,
    GcPauseTracker,
    NoDiagnostics,
)
from procvitals.runtime.models import (
    COMPILER_PROPERTY,
    BufferPool,
    CompilationSource,
    FileDescriptorSource,
    GarbageCollector,
    MemoryPool,
    MemoryUsage,
)

try:
    import resource
except ImportError:  # Windows has no resource module
    resource = None  # type: ignore[assignment]

logger = structlog.get_logger()

GENERATIONS = 3


def _soft_limit(name: str) -> int:
    """Soft rlimit for ``name``, or -1 when unlimited or unknown."""
    if resource is None or not hasattr(resource, name):
        return -1
    soft, _ = resource.getrlimit(getattr(resource, name))
    if soft == resource.RLIM_INFINITY:
        return -1
    return soft


class ProcessMemory:
    def __init__(self, process: psutil.Process) -> None:
        self._process = process
        info = process.memory_info()
        self._init_rss = info.rss
        self._init_vms = info.vms

    def heap_usage(self) -> MemoryUsage:
        rss = self._process.memory_info().rss
        return MemoryUsage(
            init=self._init_rss, used=rss, committed=rss, max=_soft_limit("RLIMIT_DATA")
        )

    def non_heap_usage(self) -> MemoryUsage:
        vms = self._process.memory_info().vms
        return MemoryUsage(
            init=self._init_vms, used=vms, committed=vms, max=_soft_limit("RLIMIT_AS")
        )


class Threads:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._peak = threading.active_count()

    def count(self) -> int:
        current = threading.active_count()
        with self._lock:
            if current > self._peak:
                self._peak = current
        return current

    def peak_count(self) -> int:
        current = threading.active_count()
        with self._lock:
            if current > self._peak:
                self._peak = current
            return self._peak

    def daemon_count(self) -> int:
        return sum(1 for t in threading.enumerate() if t.daemon)


class ProcessInfo:
    def __init__(self, process: psutil.Process) -> None:
        self._process = process
        self._create_time = process.create_time()

    def uptime(self) -> int:
        return int((time.time() - self._create_time) * 1000)

    def start_time(self) -> int:
        return int(self._create_time * 1000)

    def available_processors(self) -> int:
        if hasattr(self._process, "cpu_affinity"):
            return len(self._process.cpu_affinity())
        return psutil.cpu_count() or 1


class ModuleLoading:
    """
    Module loading reported as class loading.

    ``total_loaded`` counts every module name seen since the adapter was
    created, so it never goes down; ``unloaded`` is the share of those no
    longer in ``sys.modules``.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._seen: set[str] = set(sys.modules)

    def _observe(self) -> tuple[int, int]:
        current = list(sys.modules)
        with self._lock:
            self._seen.update(current)
            return len(self._seen), len(current)

    def loaded_count(self) -> int:
        return len(sys.modules)

    def total_loaded(self) -> int:
        total, _ = self._observe()
        return total

    def unloaded(self) -> int:
        total, current = self._observe()
        return total - current


class GenerationPool:
    """
    A GC generation as a memory pool.

    ``used`` is the generation's collection counter from ``gc.get_count()``:
    allocations minus deallocations since the last collection for generation
    0, collections of the next younger generation for the older ones. ``max``
    is the threshold at which that counter triggers a collection. CPython
    resets the counter when the generation is collected, so there is no
    meaningful post-collection figure.
    """

    def __init__(self, generation: int) -> None:
        self.name = f"generation {generation}"
        self._generation = generation

    def usage(self) -> MemoryUsage:
        used = gc.get_count()[self._generation]
        threshold = gc.get_threshold()[self._generation]
        return MemoryUsage(init=0, used=used, committed=used, max=threshold)

    def collection_usage(self) -> MemoryUsage | None:
        return None


class PermanentGenerationPool:
    """Objects moved out of collection by ``gc.freeze()``."""

    name = "permanent generation"

    def usage(self) -> MemoryUsage:
        frozen = gc.get_freeze_count()
        return MemoryUsage(init=0, used=frozen, committed=frozen, max=-1)

    def collection_usage(self) -> MemoryUsage | None:
        return None


class GenerationCollector:
    def __init__(self, generation: int, tracker: GcPauseTracker | None) -> None:
        self.name = f"gc generation {generation}"
        self._generation = generation
        self._tracker = tracker

    def collection_count(self) -> int:
        return gc.get_stats()[self._generation]["collections"]

    def collection_time(self) -> int:
        if self._tracker is None:
            return -1
        return self._tracker.generation_pause_ms(self._generation)


class PosixFileDescriptors:
    def __init__(self, process: psutil.Process) -> None:
        self._process = process

    def open_count(self) -> int:
        return self._process.num_fds()

    def max_count(self) -> int:
        return _soft_limit("RLIMIT_NOFILE")


class CPythonRuntime:
    """Runtime view of the current interpreter process."""

    def __init__(self, tracker: GcPauseTracker | None = None) -> None:
        self._process = psutil.Process()
        self._tracker = tracker
        self.memory = ProcessMemory(self._process)
        self.threads = Threads()
        self.process = ProcessInfo(self._process)
        self.classes = ModuleLoading()
        self._properties = {
            "python.implementation": platform.python_implementation(),
            "python.version": platform.python_version(),
        }
        if platform.python_implementation() == "GraalVM":
            self._properties[COMPILER_PROPERTY] = "graal"
        logger.debug(
            "runtime_detected",
            implementation=self._properties["python.implementation"],
            pause_tracking=tracker is not None,
        )

    def memory_pools(self) -> list[MemoryPool]:
        pools: list[MemoryPool] = [
            GenerationPool(generation) for generation in range(GENERATIONS)
        ]
        if hasattr(gc, "get_freeze_count"):
            pools.append(PermanentGenerationPool())
        return pools

    def garbage_collectors(self) -> list[GarbageCollector]:
        if not hasattr(gc, "get_stats"):
            return []
        return [
            GenerationCollector(generation, self._tracker)
            for generation in range(len(gc.get_stats()))
        ]

    def buffer_pools(self) -> list[BufferPool] | None:
        return None

    def file_descriptors(self) -> FileDescriptorSource | None:
        if not hasattr(self._process, "num_fds"):
            return None
        return PosixFileDescriptors(self._process)

    def compilation(self) -> CompilationSource | None:
        return None

    def get_property(self, name: str) -> str | None:
        return self._properties.get(name)

    def diagnostics(self) -> DiagnosticCounters:
        if self._tracker is None or not self._tracker.installed:
            return NoDiagnostics()
        return GcPauseDiagnostics(self._tracker)


_pause_tracker: GcPauseTracker | None = None


def get_pause_tracker() -> GcPauseTracker | None:
    """Process-wide pause tracker, installed on first use."""
    global _pause_tracker
    if _pause_tracker is None and hasattr(gc, "callbacks"):
        _pause_tracker = GcPauseTracker(generations=GENERATIONS)
        _pause_tracker.install()
    return _pause_tracker
