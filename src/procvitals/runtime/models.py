"""
Read-only view of a runtime's management interfaces.

Everything here is a getter. Optional sources are returned as ``None``
when the runtime does not have them; callers branch on that once, at
registration time.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from procvitals.runtime.diagnostics import DiagnosticCounters

# Runtime property naming the JIT compiler in use
COMPILER_PROPERTY = "compiler.name"


@dataclass(frozen=True)
class MemoryUsage:
    """Point-in-time memory snapshot in bytes. ``max`` is -1 when undefined."""

    init: int
    used: int
    committed: int
    max: int


class MemorySource(Protocol):
    def heap_usage(self) -> MemoryUsage:
        ...

    def non_heap_usage(self) -> MemoryUsage:
        ...


class ThreadSource(Protocol):
    def count(self) -> int:
        ...

    def peak_count(self) -> int:
        ...

    def daemon_count(self) -> int:
        ...


class ProcessSource(Protocol):
    def uptime(self) -> int:
        """Milliseconds since the process started."""
        ...

    def start_time(self) -> int:
        """Process start, milliseconds since the epoch."""
        ...

    def available_processors(self) -> int:
        ...


class ClassLoadingSource(Protocol):
    def loaded_count(self) -> int:
        ...

    def total_loaded(self) -> int:
        ...

    def unloaded(self) -> int:
        ...


class MemoryPool(Protocol):
    """
    A runtime-managed memory area.

    ``usage`` and ``collection_usage`` are separate snapshots; two calls
    can observe different moments.
    """

    name: str

    def usage(self) -> MemoryUsage | None:
        ...

    def collection_usage(self) -> MemoryUsage | None:
        ...


class GarbageCollector(Protocol):
    """Cumulative collector counters. Negative values mean unsupported."""

    name: str

    def collection_count(self) -> int:
        ...

    def collection_time(self) -> int:
        ...


class BufferPool(Protocol):
    name: str

    def count(self) -> int:
        ...

    def memory_used(self) -> int:
        ...

    def total_capacity(self) -> int:
        ...


class FileDescriptorSource(Protocol):
    def open_count(self) -> int:
        ...

    def max_count(self) -> int:
        ...


class CompilationSource(Protocol):
    def total_time(self) -> int:
        """Milliseconds spent compiling."""
        ...


class Runtime(Protocol):
    """Everything the registry reads from a runtime."""

    memory: MemorySource
    threads: ThreadSource
    process: ProcessSource
    classes: ClassLoadingSource

    def memory_pools(self) -> list[MemoryPool]:
        ...

    def garbage_collectors(self) -> list[GarbageCollector]:
        ...

    def buffer_pools(self) -> list[BufferPool] | None:
        ...

    def file_descriptors(self) -> FileDescriptorSource | None:
        ...

    def compilation(self) -> CompilationSource | None:
        ...

    def get_property(self, name: str) -> str | None:
        ...

    def diagnostics(self) -> DiagnosticCounters:
        ...
