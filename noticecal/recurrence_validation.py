"""Rule validation helpers shared by the expander, the parser and the CLI."""

import logging
from collections.abc import Iterable
from datetime import datetime
from typing import Any, Optional

from .datetime_utils import align_to_anchor, coerce_datetime
from .recurrence_exceptions import RecurrenceExpansionError, RecurrenceValidationError
from .recurrence_models import EndType, Frequency, RecurrenceRule

logger = logging.getLogger(__name__)

DEFAULT_MAX_INSTANCES = 100


def validate_days_of_week(days: Optional[Iterable[int]], required: bool = False) -> Optional[tuple[int, ...]]:
    """Check a weekday collection and return it as a sorted tuple.

    Raises:
        RecurrenceValidationError: on out-of-range values, duplicates, or an
            empty set when ``required`` is True
    """
    if days is None:
        if required:
            raise RecurrenceValidationError("At least one weekday must be selected", field="daysOfWeek")
        return None

    values = list(days)
    if required and not values:
        raise RecurrenceValidationError("At least one weekday must be selected", field="daysOfWeek")
    for day in values:
        if isinstance(day, bool) or not isinstance(day, int) or not 0 <= day <= 6:
            raise RecurrenceValidationError(
                f"Weekday values must be integers 0-6, got {day!r}", field="daysOfWeek"
            )
    if len(set(values)) != len(values):
        raise RecurrenceValidationError(
            f"Weekday set contains duplicates: {values}", field="daysOfWeek"
        )
    return tuple(sorted(values))


def validate_max_instances(max_instances: Any) -> int:
    """Return the instance cap as an int, rejecting values below 1."""
    if isinstance(max_instances, bool) or not isinstance(max_instances, int):
        raise RecurrenceValidationError(
            f"max_instances must be an integer, got {max_instances!r}", field="max_instances"
        )
    if max_instances < 1:
        raise RecurrenceValidationError(
            f"max_instances must be at least 1, got {max_instances}", field="max_instances"
        )
    return max_instances


def validate_rule(rule: RecurrenceRule, anchor: Optional[datetime] = None) -> None:
    """Re-check every structural invariant of ``rule`` against ``anchor``.

    Rules built through ``RecurrenceRule(...)`` already satisfy the
    anchor-independent checks; this also covers rules created with
    ``model_construct`` and adds the anchor-dependent end-date check.

    Raises:
        RecurrenceValidationError: describing the first violated invariant
    """
    if not isinstance(rule, RecurrenceRule):
        raise RecurrenceValidationError(f"Expected a RecurrenceRule, got {type(rule).__name__}")

    try:
        frequency = Frequency(rule.frequency)
        end_type = EndType(rule.end_type)
    except ValueError as exc:
        raise RecurrenceValidationError(str(exc), field="frequency") from exc

    if isinstance(rule.interval, bool) or not isinstance(rule.interval, int) or rule.interval < 1:
        raise RecurrenceValidationError(
            f"Interval must be at least 1, got {rule.interval!r}", field="interval"
        )

    validate_days_of_week(rule.days_of_week, required=frequency is Frequency.CUSTOM)
    if frequency is Frequency.WEEKLY and rule.days_of_week is not None and not rule.days_of_week:
        raise RecurrenceValidationError("At least one weekday must be selected", field="daysOfWeek")

    if end_type is EndType.COUNT:
        if isinstance(rule.count, bool) or not isinstance(rule.count, int) or rule.count < 1:
            raise RecurrenceValidationError(
                f"Occurrence count must be at least 1, got {rule.count!r}", field="count"
            )

    if end_type is EndType.DATE:
        if rule.end_date is None:
            raise RecurrenceValidationError("An end date is required", field="endDate")
        if anchor is not None and align_to_anchor(rule.end_date, anchor) <= anchor:
            raise RecurrenceValidationError(
                f"End date {rule.end_date.isoformat()} must be after the first "
                f"occurrence {anchor.isoformat()}",
                field="endDate",
            )


def _read_field(source: Any, *names: str) -> Any:
    for name in names:
        if isinstance(source, dict):
            if name in source:
                return source[name]
        elif hasattr(source, name):
            return getattr(source, name)
    return None


def extract_anchor(base_event: Any) -> tuple[datetime, datetime]:
    """Pull ``(start, end)`` from an event object or mapping.

    Accepts attributes or keys named ``start_time``/``end_time`` as well as
    the camelCase ``startTime``/``endTime``. Values may be datetimes or
    ISO-8601 strings.

    Raises:
        RecurrenceExpansionError: if either time is missing or unparseable, or
            the end precedes the start
    """
    raw_start = _read_field(base_event, "start_time", "startTime")
    raw_end = _read_field(base_event, "end_time", "endTime")

    try:
        start = coerce_datetime(raw_start)
        end = coerce_datetime(raw_end)
    except ValueError as exc:
        raise RecurrenceExpansionError(f"Base event has an unreadable time: {exc}") from exc

    if start is None or end is None:
        raise RecurrenceExpansionError("Base event must have both a start time and an end time")

    end = align_to_anchor(end, start)
    if end < start:
        raise RecurrenceExpansionError(
            f"Base event ends ({end.isoformat()}) before it starts ({start.isoformat()})"
        )
    return start, end
