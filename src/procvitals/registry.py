"""
Runtime gauge registration.

``register`` walks every metric source the runtime exposes and installs a
live gauge for each reading. Gauges re-query their source on every read;
nothing is cached.

Stats receivers typically hold gauges weakly, so every gauge created here
is also appended to a process-lifetime list. Without it the gauges would
be collected as soon as ``register`` returns.

Paths follow ``<root>.<category>.[<subcategory>.]<metric>``, with pool and
collector names normalized to ``[A-Za-z0-9_]``.
"""

from __future__ import annotations

import re
from contextlib import contextmanager
from typing import Iterator

import structlog

from procvitals.config import DEFAULT_ROOT_SCOPE, ROOT_SCOPE_PATTERN, Settings, get_settings
from procvitals.estimator import AllocationEstimator
from procvitals.runtime import COMPILER_PROPERTY, MemoryUsage, Runtime, detect_runtime
from procvitals.stats.expressions import ROLE_LABEL, Expression, ExpressionSchema, Unit
from procvitals.stats.receiver import Gauge, GaugeFn, StatsReceiver

logger = structlog.get_logger()

_NON_WORD = re.compile(r"\W", re.ASCII)
_VALID_SCOPE = re.compile(ROOT_SCOPE_PATTERN)

# Every gauge ever registered; appended to during registration only
_gauges: list[Gauge] = []


def normalize_name(name: str) -> str:
    """Replace every character outside ``[A-Za-z0-9_]`` with ``_``."""
    return _NON_WORD.sub("_", name)


def registered_gauges() -> tuple[Gauge, ...]:
    """Every gauge created by ``register`` in this process."""
    return tuple(_gauges)


@contextmanager
def _source(name: str) -> Iterator[None]:
    """Skip a source that fails during discovery instead of failing startup."""
    try:
        yield
    except Exception as exc:
        logger.warning("runtime_source_skipped", source=name, error=str(exc))


def _register_expression(stats: StatsReceiver, schema: ExpressionSchema) -> None:
    try:
        stats.register_expression(schema)
    except Exception as exc:
        logger.warning("expression_registration_failed", expression=schema.name, error=str(exc))


def _resolve_settings(settings: Settings | None) -> Settings:
    if settings is None:
        try:
            settings = get_settings()
        except Exception as exc:
            logger.warning("invalid_settings_ignored", error=str(exc))
            settings = Settings.model_construct()
    if not _VALID_SCOPE.match(settings.root_scope):
        logger.warning(
            "invalid_root_scope_ignored",
            root_scope=settings.root_scope,
            fallback=DEFAULT_ROOT_SCOPE,
        )
        settings = settings.model_copy(update={"root_scope": DEFAULT_ROOT_SCOPE})
    return settings


def register(
    stats_receiver: StatsReceiver,
    runtime: Runtime | None = None,
    settings: Settings | None = None,
) -> None:
    """
    Register runtime gauges on ``stats_receiver``.

    Call once per process. Sources the runtime does not have are skipped.

    Never raises. Invalid settings fall back to the defaults, and a runtime
    that cannot be detected leaves the receiver without gauges; both are
    logged as warnings.

    Args:
        stats_receiver: Sink to register gauges and expressions on
        runtime: Runtime to read from (defaults to the current process)
        settings: Settings (defaults to environment settings)
    """
    settings = _resolve_settings(settings)
    root = settings.root_scope
    if runtime is None:
        try:
            runtime = detect_runtime(settings)
        except Exception as exc:
            logger.warning("runtime_detection_failed", error=str(exc))
            return

    gauges = _gauges
    count_before = len(gauges)
    stats = stats_receiver.scope(root)

    def add(scope: StatsReceiver, *name: str, fn: GaugeFn, counterish: bool = False) -> Gauge:
        gauge = scope.add_gauge(*name, fn=fn, counterish=counterish)
        gauges.append(gauge)
        return gauge

    with _source("heap"):
        heap_stats = stats.scope("heap")
        heap_fn = runtime.memory.heap_usage
        add(heap_stats, "committed", fn=lambda f=heap_fn: f().committed)
        add(heap_stats, "max", fn=lambda f=heap_fn: f().max)
        add(heap_stats, "used", fn=lambda f=heap_fn: f().used)

    with _source("nonheap"):
        non_heap_stats = stats.scope("nonheap")
        non_heap_fn = runtime.memory.non_heap_usage
        add(non_heap_stats, "committed", fn=lambda f=non_heap_fn: f().committed)
        add(non_heap_stats, "max", fn=lambda f=non_heap_fn: f().max)
        add(non_heap_stats, "used", fn=lambda f=non_heap_fn: f().used)

    with _source("thread"):
        threads = runtime.threads
        thread_stats = stats.scope("thread")
        add(thread_stats, "daemon_count", fn=threads.daemon_count)
        add(thread_stats, "count", fn=threads.count)
        add(thread_stats, "peak_count", fn=threads.peak_count)

    uptime: Gauge | None = None
    with _source("process"):
        process = runtime.process
        uptime = add(stats, "uptime", fn=process.uptime)
        add(stats, "start_time", fn=process.start_time)
        add(stats, "num_cpus", fn=process.available_processors)

    if uptime is not None:
        _register_expression(
            stats,
            ExpressionSchema(
                name=f"{root}_uptime",
                expression=Expression.of(uptime),
                labels={ROLE_LABEL: root},
                unit=Unit.MILLISECONDS,
                description=f"The uptime of the {root} in MS",
            ),
        )

    with _source("file_descriptors"):
        fds = runtime.file_descriptors()
        if fds is not None:
            add(stats, "fd_count", fn=fds.open_count)
            add(stats, "fd_limit", fn=fds.max_count)

    with _source("compiler"):
        add(
            stats.scope("compiler"),
            "graal",
            fn=lambda: 1 if runtime.get_property(COMPILER_PROPERTY) == "graal" else 0,
        )

    with _source("compilation"):
        compilation = runtime.compilation()
        if compilation is not None:
            add(stats.scope("compilation"), "time_msec", fn=compilation.total_time)

    with _source("classes"):
        classes = runtime.classes
        class_stats = stats.scope("classes")
        add(class_stats, "total_loaded", fn=classes.total_loaded)
        add(class_stats, "total_unloaded", fn=classes.unloaded)
        add(class_stats, "current_loaded", fn=classes.loaded_count)

    mem_stats = stats.scope("mem")
    with _source("memory_pools"):
        pools = list(runtime.memory_pools())
        current_mem = mem_stats.scope("current")
        post_gc_stats = mem_stats.scope("postGC")
        for pool in pools:
            name = normalize_name(pool.name)
            # Each accessor call is a fresh snapshot; never reuse one across gauges
            if pool.collection_usage() is not None:
                add(post_gc_stats, name, "used", fn=lambda p=pool: _used(p.collection_usage()))
            if pool.usage() is not None:
                add(current_mem, name, "used", fn=lambda p=pool: _used(p.usage()))
                add(current_mem, name, "max", fn=lambda p=pool: _max(p.usage()))

        add(post_gc_stats, "used", fn=lambda: sum(_used(p.collection_usage()) for p in pools))
        add(current_mem, "used", fn=lambda: sum(_used(p.usage()) for p in pools))

    with _source("buffer_pools"):
        buffer_pools = runtime.buffer_pools()
        if buffer_pools is not None:
            buffer_stats = mem_stats.scope("buffer")
            for bp in buffer_pools:
                name = normalize_name(bp.name)
                add(buffer_stats, name, "count", fn=bp.count)
                add(buffer_stats, name, "used", fn=bp.memory_used)
                add(buffer_stats, name, "max", fn=bp.total_capacity)

    gc_stats = stats.scope("gc")
    with _source("garbage_collectors"):
        collectors = list(runtime.garbage_collectors())
        for collector in collectors:
            name = normalize_name(collector.name)
            pool_cycles = add(
                gc_stats, name, "cycles", fn=collector.collection_count, counterish=True
            )
            pool_msec = add(gc_stats, name, "msec", fn=collector.collection_time, counterish=True)
            _register_expression(
                stats,
                ExpressionSchema(
                    name="gc_cycles",
                    expression=Expression.of(pool_cycles),
                    labels={ROLE_LABEL: root, "gc_pool": name},
                    description=(
                        f"The total number of collections that have occurred for the {name} gc pool"
                    ),
                ),
            )
            _register_expression(
                stats,
                ExpressionSchema(
                    name="gc_latency",
                    expression=Expression.of(pool_msec),
                    labels={ROLE_LABEL: root, "gc_pool": name},
                    unit=Unit.MILLISECONDS,
                    description=(
                        f"The total elapsed time spent doing collections for the {name} gc pool"
                    ),
                ),
            )

        # Collectors report -1 for what they do not support; keep it out of the sums
        cycles = add(
            gc_stats,
            "cycles",
            fn=lambda: sum(n for n in (c.collection_count() for c in collectors) if n > 0),
        )
        msec = add(
            gc_stats,
            "msec",
            fn=lambda: sum(n for n in (c.collection_time() for c in collectors) if n > 0),
        )

        _register_expression(
            stats,
            ExpressionSchema(
                name="gc_cycles",
                expression=Expression.of(cycles),
                labels={ROLE_LABEL: root},
                description="The total number of collections that have occurred",
            ),
        )
        _register_expression(
            stats,
            ExpressionSchema(
                name="gc_latency",
                expression=Expression.of(msec),
                labels={ROLE_LABEL: root},
                unit=Unit.MILLISECONDS,
                description="The total elapsed time spent doing collections",
            ),
        )

    with _source("allocations"):
        estimator = AllocationEstimator(gc_stats, runtime.diagnostics())
        estimator.start()
        # Gauges the estimator published on its own, e.g. gc.eden.allocated_bytes
        gauges.extend(estimator.gauges)

        if estimator.tracking_metaspace:
            add(
                mem_stats.scope("metaspace"),
                "max_capacity",
                fn=estimator.metaspace_max_capacity,
            )

        if estimator.tracking_eden:
            add(mem_stats.scope("allocations", "eden"), "bytes", fn=estimator.eden)

        safepoint_stats = stats.scope("safepoint")
        add(safepoint_stats, "sync_time_millis", fn=lambda: estimator.safepoint().sync_time_millis)
        add(
            safepoint_stats,
            "total_time_millis",
            fn=lambda: estimator.safepoint().total_time_millis,
        )
        add(safepoint_stats, "count", fn=lambda: estimator.safepoint().count)

        # Milliseconds from nanoseconds, keeping the fraction
        add(stats, "application_time_millis", fn=lambda: estimator.application_time() / 1_000_000)
        add(stats, "tenuring_threshold", fn=estimator.tenuring_threshold)

    logger.info("runtime_gauges_registered", root=root, gauges=len(gauges) - count_before)


def _used(usage: MemoryUsage | None) -> int:
    return usage.used if usage is not None else 0


def _max(usage: MemoryUsage | None) -> int:
    return usage.max if usage is not None else 0
