"""Command-line entry for noticecal.

Two sub-commands mirror the two entry points of the recurrence engine:
``parse`` turns a recurrence phrase into a stored rule, ``expand`` previews
the occurrences a rule produces for a given first event.
"""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import date, datetime
from typing import NoReturn, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from . import _init_logging
from .cal_logging import configure_logging
from .config_loader import Config, load_config
from .config_manager import ConfigManager
from .datetime_utils import coerce_datetime
from .recurrence_exceptions import RecurrenceError
from .recurrence_expander import ExpanderConfig, iter_occurrences
from .recurrence_models import RecurrenceRule
from .recurrence_parser import parse
from .recurrence_validation import validate_max_instances

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_NOT_RECOGNIZED = 1
EXIT_INVALID = 2


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for the noticecal CLI.

    Returns:
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="noticecal",
        description="noticecal - recurrence rules for announcement-driven calendars",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m noticecal parse "每周二和周四，持续4周"
  python -m noticecal expand --start 2024-03-04T14:00 --end 2024-03-04T15:00 \\
      --rule '{"frequency": "daily", "interval": 2, "endType": "count", "count": 3}'
  python -m noticecal expand --start 2024-01-31T09:00 --end 2024-01-31T10:00 --text "每月31号"
        """,
    )
    parser.add_argument("--config", metavar="PATH", help="YAML config file (default: ./noticecal.yaml)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    parse_cmd = subparsers.add_parser("parse", help="Recognize a recurrence phrase")
    parse_cmd.add_argument("text", help="Free-text recurrence description")
    parse_cmd.add_argument(
        "--reference",
        type=date.fromisoformat,
        metavar="YYYY-MM-DD",
        help="Date supplying the year for year-less end dates (default: today)",
    )
    parse_cmd.set_defaults(handler=_cmd_parse)

    expand_cmd = subparsers.add_parser("expand", help="List the occurrences of a rule")
    expand_cmd.add_argument("--start", required=True, help="First occurrence start (ISO-8601)")
    expand_cmd.add_argument("--end", required=True, help="First occurrence end (ISO-8601)")
    source = expand_cmd.add_mutually_exclusive_group(required=True)
    source.add_argument("--rule", metavar="JSON", help="Rule in its stored JSON form")
    source.add_argument("--text", help="Recurrence phrase to parse first")
    expand_cmd.add_argument(
        "--max-instances", type=int, metavar="N", help="Cap on generated occurrences"
    )
    expand_cmd.add_argument("--timezone", metavar="TZ", help="IANA zone for naive start/end values")
    expand_cmd.set_defaults(handler=_cmd_expand)

    return parser


def _load_settings(config_path: Optional[str]) -> Config:
    overrides = ConfigManager().load_full_config()
    settings = load_config(config_path or overrides.get("config_path"))
    return settings.with_overrides(overrides)


def _cmd_parse(args: argparse.Namespace, settings: Config) -> int:
    rule = parse(args.text, reference=args.reference)
    if rule is None:
        print("Recurrence not recognized; configure the rule manually.", file=sys.stderr)
        return EXIT_NOT_RECOGNIZED
    print(rule.to_json())
    return EXIT_OK


def _localize(value: datetime, zone: ZoneInfo) -> datetime:
    return value.replace(tzinfo=zone) if value.tzinfo is None else value


def _cmd_expand(args: argparse.Namespace, settings: Config) -> int:
    if args.text is not None:
        rule = parse(args.text)
        if rule is None:
            print(f"Recurrence not recognized: {args.text}", file=sys.stderr)
            return EXIT_NOT_RECOGNIZED
    else:
        try:
            rule = RecurrenceRule.from_storage(args.rule)
        except RecurrenceError as exc:
            print(f"Invalid rule: {exc}", file=sys.stderr)
            return EXIT_INVALID

    tz_name = args.timezone or settings.default_timezone
    try:
        zone = ZoneInfo(tz_name)
        start = _localize(coerce_datetime(args.start), zone)
        end = _localize(coerce_datetime(args.end), zone)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        print(f"Invalid start/end or timezone: {exc}", file=sys.stderr)
        return EXIT_INVALID

    config = ExpanderConfig.from_settings(settings)
    max_instances = args.max_instances if args.max_instances is not None else config.max_instances
    base_event = {"start_time": start, "end_time": end}

    try:
        cap = validate_max_instances(max_instances)
        # One extra occurrence tells a natural end apart from the cap.
        probe = list(iter_occurrences(base_event, rule, cap + 1))
    except RecurrenceError as exc:
        print(f"Invalid rule: {exc}", file=sys.stderr)
        return EXIT_INVALID
    occurrences, truncated = probe[:cap], len(probe) > cap

    print(f"# {rule.describe()}")
    for occurrence in occurrences:
        print(
            f"{occurrence.index + 1:>3}. "
            f"{occurrence.start_time.strftime(settings.date_format)} - "
            f"{occurrence.end_time.strftime(settings.date_format)}"
        )
    if truncated:
        print(f"Series capped at {max_instances} occurrences.", file=sys.stderr)
    return EXIT_OK


def run(argv: Optional[list[str]] = None) -> int:
    """Parse arguments, configure logging and dispatch to a sub-command."""
    parser = _create_parser()
    args = parser.parse_args(argv)

    try:
        settings = _load_settings(args.config)
    except ValueError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return EXIT_INVALID

    _init_logging(settings.log_level)
    configure_logging(debug_mode=args.debug or settings.log_level == "DEBUG")
    logger.debug("Running %s with max_instances=%d", args.command, settings.max_instances)
    return args.handler(args, settings)


def main() -> NoReturn:
    """Run the noticecal CLI."""
    sys.exit(run())


if __name__ == "__main__":
    main()
