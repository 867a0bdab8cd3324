"""
Command line interface for procvitals.
"""

from __future__ import annotations

import argparse
import sys
from typing import Sequence

from pydantic import ValidationError

from procvitals.cli.commands import expressions_command, snapshot_command
from procvitals.config import Settings, get_settings
from procvitals.core.errors import ConfigurationError, main_with_error_handling
from procvitals.logging import configure_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="procvitals", description="Runtime gauge inspection")
    subparsers = parser.add_subparsers(dest="command")

    snapshot_parser = subparsers.add_parser("snapshot", help="Read every runtime gauge once")
    snapshot_parser.add_argument("--format", choices=["table", "json"], default="table")
    snapshot_parser.add_argument("--prefix", help="Only show gauges under this dotted prefix")

    expressions_parser = subparsers.add_parser("expressions", help="List descriptive expressions")
    expressions_parser.add_argument("--format", choices=["table", "json"], default="table")

    return parser


def load_settings() -> Settings:
    """Load settings, turning validation failures into a configuration error."""
    try:
        return get_settings()
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        raise ConfigurationError("Invalid settings", {"fields": fields}) from e


@main_with_error_handling()
def run(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = load_settings()
    configure_logging(settings.log_level, renderer=settings.log_renderer)

    if args.command == "snapshot":
        return snapshot_command(settings, output_format=args.format, prefix=args.prefix)
    if args.command == "expressions":
        return expressions_command(settings, output_format=args.format)

    parser.print_help()
    return 0


def main(argv: Sequence[str] | None = None) -> None:
    sys.exit(run(argv))


__all__ = ["build_parser", "main", "run"]
