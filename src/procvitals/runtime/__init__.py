"""
Runtime introspection adapters.

``detect_runtime`` picks the adapter for the current interpreter.
"""

from __future__ import annotations

from procvitals.config import Settings, get_settings
from procvitals.runtime.diagnostics import (
    CollectionEvent,
    DiagnosticCounters,
    GcPauseDiagnostics,
    GcPauseTracker,
    NoDiagnostics,
)
from procvitals.runtime.models import (
    COMPILER_PROPERTY,
    BufferPool,
    ClassLoadingSource,
    CompilationSource,
    FileDescriptorSource,
    GarbageCollector,
    MemoryPool,
    MemorySource,
    MemoryUsage,
    ProcessSource,
    Runtime,
    ThreadSource,
)
from procvitals.runtime.python import CPythonRuntime, get_pause_tracker


def detect_runtime(settings: Settings | None = None) -> Runtime:
    """Build the runtime adapter for this process."""
    settings = settings or get_settings()
    tracker = get_pause_tracker() if settings.track_gc_pauses else None
    return CPythonRuntime(tracker=tracker)


__all__ = [
    "COMPILER_PROPERTY",
    "BufferPool",
    "CPythonRuntime",
    "ClassLoadingSource",
    "CollectionEvent",
    "CompilationSource",
    "DiagnosticCounters",
    "FileDescriptorSource",
    "GarbageCollector",
    "GcPauseDiagnostics",
    "GcPauseTracker",
    "MemoryPool",
    "MemorySource",
    "MemoryUsage",
    "NoDiagnostics",
    "ProcessSource",
    "Runtime",
    "ThreadSource",
    "detect_runtime",
    "get_pause_tracker",
]
