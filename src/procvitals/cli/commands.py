"""
CLI commands for inspecting runtime gauges.

Commands:
    procvitals snapshot                    - Read every gauge once
    procvitals snapshot --prefix jvm.gc    - Only gauges under a prefix
    procvitals snapshot --format json      - Output as JSON
    procvitals expressions                 - List descriptive expressions
"""

from __future__ import annotations

import json

from procvitals.cli.ux import console, header, info, print_table
from procvitals.config import Settings
from procvitals.registry import register
from procvitals.stats.receiver import InMemoryStatsReceiver


def _registered_receiver(settings: Settings) -> InMemoryStatsReceiver:
    receiver = InMemoryStatsReceiver()
    register(receiver, settings=settings)
    return receiver


def _format_value(value: float) -> str:
    if isinstance(value, float):
        return f"{value:.3f}"
    return str(value)


def snapshot_command(
    settings: Settings,
    output_format: str = "table",
    prefix: str | None = None,
) -> int:
    """
    Register the current process and print one reading of every gauge.

    Args:
        settings: Settings used for registration
        output_format: Output format ("table", "json")
        prefix: Only show gauges whose dotted name starts with this

    Returns:
        Exit code
    """
    receiver = _registered_receiver(settings)
    values = receiver.snapshot()
    if prefix:
        values = {name: value for name, value in values.items() if name.startswith(prefix)}

    if output_format == "json":
        console.print_json(json.dumps(values))
        return 0

    header("Runtime Gauges")
    counterish = {g.name for g in receiver.gauges() if g.counterish}
    rows = [
        [name, _format_value(value), "counter" if name in counterish else "gauge"]
        for name, value in values.items()
    ]
    print_table("Gauges", ["Name", "Value", "Kind"], rows)
    info(f"{len(rows)} gauges")
    return 0


def expressions_command(settings: Settings, output_format: str = "table") -> int:
    """List the descriptive expressions registration produces."""
    receiver = _registered_receiver(settings)
    schemas = [schema.to_dict() for schema in receiver.expressions]

    if output_format == "json":
        console.print_json(json.dumps(schemas))
        return 0

    header("Expressions")
    rows = [
        [
            schema["name"],
            ", ".join(schema["metrics"]),
            ", ".join(f"{k}={v}" for k, v in schema["labels"].items()),
            schema["unit"],
            schema["description"],
        ]
        for schema in schemas
    ]
    print_table("Expressions", ["Name", "Metrics", "Labels", "Unit", "Description"], rows)
    return 0
