"""Root test configuration."""

import logging

import pytest
import structlog

from procvitals.config import Settings
from procvitals.runtime.diagnostics import NoDiagnostics
from procvitals.runtime.models import MemoryUsage
from procvitals.stats.receiver import InMemoryStatsReceiver


def pytest_configure(config):
    """Configure structlog for tests to suppress debug/info output."""
    logging.basicConfig(level=logging.WARNING, force=True)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


def usage(used: int, max_: int = -1, committed: int | None = None) -> MemoryUsage:
    return MemoryUsage(
        init=0, used=used, committed=used if committed is None else committed, max=max_
    )


class StubMemory:
    def __init__(self) -> None:
        self.heap = usage(100, max_=1000, committed=200)
        self.non_heap = usage(50, max_=-1, committed=60)

    def heap_usage(self) -> MemoryUsage:
        return self.heap

    def non_heap_usage(self) -> MemoryUsage:
        return self.non_heap


class StubThreads:
    def __init__(self) -> None:
        self.current = 7
        self.peak = 9
        self.daemons = 3

    def count(self) -> int:
        return self.current

    def peak_count(self) -> int:
        return self.peak

    def daemon_count(self) -> int:
        return self.daemons


class StubProcess:
    def uptime(self) -> int:
        return 12_345

    def start_time(self) -> int:
        return 1_700_000_000_000

    def available_processors(self) -> int:
        return 4


class StubClasses:
    def __init__(self) -> None:
        self.loaded = 900
        self.total = 1000
        self.gone = 100

    def loaded_count(self) -> int:
        return self.loaded

    def total_loaded(self) -> int:
        return self.total

    def unloaded(self) -> int:
        return self.gone


class StubPool:
    def __init__(self, name, current, post_gc) -> None:
        self.name = name
        self.current = current
        self.post_gc = post_gc
        self.usage_calls = 0
        self.collection_usage_calls = 0

    def usage(self):
        self.usage_calls += 1
        return self.current

    def collection_usage(self):
        self.collection_usage_calls += 1
        return self.post_gc


class StubCollector:
    def __init__(self, name, count, time) -> None:
        self.name = name
        self.count = count
        self.time = time

    def collection_count(self) -> int:
        return self.count

    def collection_time(self) -> int:
        return self.time


class StubBufferPool:
    def __init__(self, name, count, used, capacity) -> None:
        self.name = name
        self._count = count
        self.used = used
        self.capacity = capacity

    def count(self) -> int:
        return self._count

    def memory_used(self) -> int:
        return self.used

    def total_capacity(self) -> int:
        return self.capacity


class StubFileDescriptors:
    def open_count(self) -> int:
        return 42

    def max_count(self) -> int:
        return 1024


class StubCompilation:
    def total_time(self) -> int:
        return 321


class StubRuntime:
    def __init__(
        self,
        pools=(),
        collectors=(),
        buffer_pools=None,
        file_descriptors=None,
        compilation=None,
        properties=None,
        diagnostics=None,
    ) -> None:
        self.memory = StubMemory()
        self.threads = StubThreads()
        self.process = StubProcess()
        self.classes = StubClasses()
        self.pools = [StubPool(*p) for p in pools]
        self.collectors = [StubCollector(*c) for c in collectors]
        self.buffers = (
            None if buffer_pools is None else [StubBufferPool(*b) for b in buffer_pools]
        )
        self.fds = file_descriptors
        self.compiler = compilation
        self.properties = properties or {}
        self.diag = diagnostics or NoDiagnostics()

    def memory_pools(self):
        return self.pools

    def garbage_collectors(self):
        return self.collectors

    def buffer_pools(self):
        return self.buffers

    def file_descriptors(self):
        return self.fds

    def compilation(self):
        return self.compiler

    def get_property(self, name):
        return self.properties.get(name)

    def diagnostics(self):
        return self.diag


@pytest.fixture
def make_runtime():
    """Factory for stub runtimes; pools and collectors are given as tuples."""
    return StubRuntime


@pytest.fixture
def full_runtime():
    """A runtime exposing every optional source."""
    return StubRuntime(
        pools=[
            ("PS Eden Space", usage(300, max_=4000), usage(0, max_=4000)),
            ("PS Old Gen", usage(700, max_=8000), usage(650, max_=8000)),
            ("Metaspace", usage(80, max_=-1), None),
        ],
        collectors=[("PS Scavenge", 10, 120), ("PS MarkSweep", 2, 300)],
        buffer_pools=[("direct", 5, 4096, 8192), ("mapped - 'non-volatile memory'", 1, 10, 10)],
        file_descriptors=StubFileDescriptors(),
        compilation=StubCompilation(),
        properties={"compiler.name": "graal"},
    )


@pytest.fixture
def bare_runtime():
    """A runtime with none of the optional sources."""
    return StubRuntime()


@pytest.fixture
def receiver():
    return InMemoryStatsReceiver()


@pytest.fixture
def settings():
    return Settings(root_scope="jvm", track_gc_pauses=False)
