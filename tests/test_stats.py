"""
Tests for stats receivers and expressions.
"""

import gc

import pytest
from prometheus_client import CollectorRegistry

from procvitals.stats.expressions import ROLE_LABEL, Expression, ExpressionSchema, Unit
from procvitals.stats.prometheus import PrometheusStatsReceiver, metric_name
from procvitals.stats.receiver import InMemoryStatsReceiver, ScopedStatsReceiver


class TestInMemoryStatsReceiver:
    """Tests for the in-memory receiver."""

    def test_add_and_read(self):
        receiver = InMemoryStatsReceiver()
        gauge = receiver.add_gauge("requests", fn=lambda: 3)

        assert gauge.path == ("requests",)
        assert gauge.name == "requests"
        assert receiver.read("requests") == 3

    def test_scope_prefixes_path(self):
        receiver = InMemoryStatsReceiver()
        scoped = receiver.scope("jvm").scope("heap")
        gauge = scoped.add_gauge("used", fn=lambda: 1)

        assert isinstance(scoped, ScopedStatsReceiver)
        assert scoped.namespace == ("jvm", "heap")
        assert gauge.path == ("jvm", "heap", "used")
        assert receiver.read("jvm", "heap", "used") == 1

    def test_empty_scope_is_identity(self):
        receiver = InMemoryStatsReceiver()

        assert receiver.scope() is receiver

    def test_multi_segment_scope(self):
        receiver = InMemoryStatsReceiver()
        gauge = receiver.scope("mem", "allocations", "eden").add_gauge("bytes", fn=lambda: 0)

        assert gauge.name == "mem.allocations.eden.bytes"

    def test_counterish_flag(self):
        receiver = InMemoryStatsReceiver()
        gauge = receiver.add_gauge("cycles", fn=lambda: 0, counterish=True)

        assert gauge.counterish

    def test_gauges_held_weakly(self):
        receiver = InMemoryStatsReceiver()
        kept = receiver.add_gauge("kept", fn=lambda: 1)
        receiver.add_gauge("dropped", fn=lambda: 2)

        gc.collect()

        assert [g.name for g in receiver.gauges()] == ["kept"]
        assert kept.read() == 1

    def test_duplicate_path_last_wins(self):
        receiver = InMemoryStatsReceiver()
        first = receiver.add_gauge("dup", fn=lambda: 1)
        second = receiver.add_gauge("dup", fn=lambda: 2)

        assert receiver.gauge("dup") is second
        assert first.read() == 1
        assert receiver.read("dup") == 2

    def test_read_unknown_raises(self):
        receiver = InMemoryStatsReceiver()

        with pytest.raises(KeyError):
            receiver.read("missing")

    def test_snapshot(self):
        receiver = InMemoryStatsReceiver()
        a = receiver.scope("a").add_gauge("x", fn=lambda: 1)
        b = receiver.scope("b").add_gauge("y", fn=lambda: 2.5)

        assert receiver.snapshot() == {"a.x": 1, "b.y": 2.5}
        assert a and b

    def test_scoped_expressions_reach_root(self):
        receiver = InMemoryStatsReceiver()
        gauge = receiver.add_gauge("uptime", fn=lambda: 0)
        schema = ExpressionSchema(name="uptime", expression=Expression.of(gauge))

        receiver.scope("jvm").register_expression(schema)

        assert receiver.expressions == [schema]


class TestExpressionSchema:
    """Tests for expression metadata."""

    def test_of_references_gauge_paths(self):
        receiver = InMemoryStatsReceiver()
        a = receiver.add_gauge("jvm", "gc", "cycles", fn=lambda: 0)
        b = receiver.add_gauge("jvm", "gc", "msec", fn=lambda: 0)

        assert Expression.of(a, b).metrics == (("jvm", "gc", "cycles"), ("jvm", "gc", "msec"))

    def test_defaults(self):
        schema = ExpressionSchema(name="x", expression=Expression(metrics=()))

        assert schema.unit == Unit.UNSPECIFIED
        assert schema.labels == {}
        assert schema.description == ""

    def test_to_dict(self):
        schema = ExpressionSchema(
            name="gc_latency",
            expression=Expression(metrics=(("jvm", "gc", "msec"),)),
            labels={ROLE_LABEL: "jvm"},
            unit=Unit.MILLISECONDS,
            description="The total elapsed time spent doing collections",
        )

        assert schema.to_dict() == {
            "name": "gc_latency",
            "metrics": ["jvm.gc.msec"],
            "labels": {"role": "jvm"},
            "unit": "milliseconds",
            "description": "The total elapsed time spent doing collections",
        }


class TestPrometheusStatsReceiver:
    """Tests for the prometheus_client adapter."""

    @pytest.fixture
    def setup(self):
        registry = CollectorRegistry()
        receiver = PrometheusStatsReceiver()
        registry.register(receiver)
        return registry, receiver

    def test_metric_name(self):
        assert metric_name(("jvm", "mem", "current", "PS_Eden_Space", "used")) == (
            "jvm_mem_current_PS_Eden_Space_used"
        )
        assert metric_name(("jvm", "mem", "postGC", "used")) == "jvm_mem_postGC_used"
        assert metric_name(("1st", "x-y")) == "_1st_x_y"

    def test_gauge_exported(self, setup):
        registry, receiver = setup
        value = {"used": 10}
        gauge = receiver.scope("jvm", "heap").add_gauge("used", fn=lambda: value["used"])

        assert registry.get_sample_value("jvm_heap_used") == 10
        value["used"] = 20
        assert registry.get_sample_value("jvm_heap_used") == 20
        assert gauge

    def test_counterish_exported_as_counter(self, setup):
        registry, receiver = setup
        gauge = receiver.scope("jvm", "gc", "young").add_gauge(
            "cycles", fn=lambda: 4, counterish=True
        )

        assert registry.get_sample_value("jvm_gc_young_cycles_total") == 4
        assert gauge

    def test_negative_counterish_exported_as_gauge(self, setup):
        registry, receiver = setup
        gauge = receiver.scope("jvm", "gc", "gc_generation_0").add_gauge(
            "msec", fn=lambda: -1, counterish=True
        )

        families = {m.name: m.type for m in registry.collect()}
        assert families["jvm_gc_gc_generation_0_msec"] == "gauge"
        assert registry.get_sample_value("jvm_gc_gc_generation_0_msec") == -1
        assert registry.get_sample_value("jvm_gc_gc_generation_0_msec_total") is None
        assert gauge

    def test_expression_description_used_as_help(self, setup):
        registry, receiver = setup
        gauge = receiver.scope("jvm").add_gauge("uptime", fn=lambda: 1)
        receiver.register_expression(
            ExpressionSchema(
                name="jvm_uptime",
                expression=Expression.of(gauge),
                description="The uptime of the jvm in MS",
            )
        )

        docs = {m.name: m.documentation for m in registry.collect()}
        assert docs["jvm_uptime"] == "The uptime of the jvm in MS"

    def test_help_defaults_to_dotted_name(self, setup):
        registry, receiver = setup
        gauge = receiver.scope("jvm").add_gauge("num_cpus", fn=lambda: 8)

        docs = {m.name: m.documentation for m in registry.collect()}
        assert docs["jvm_num_cpus"] == "jvm.num_cpus"
        assert gauge

    def test_dropped_gauges_not_exported(self, setup):
        registry, receiver = setup
        receiver.add_gauge("gone", fn=lambda: 1)

        gc.collect()

        assert registry.get_sample_value("gone") is None
