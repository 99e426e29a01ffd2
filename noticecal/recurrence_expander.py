"""Recurrence expansion: turn a base event and a rule into concrete occurrences."""

import logging
import time
import uuid
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime, timedelta
from itertools import count as _count
from typing import Any, Callable, Optional

from dateutil.rrule import DAILY, WEEKLY, SU, rrule, weekday

from .config_manager import get_config_value
from .datetime_utils import add_months, align_to_anchor
from .recurrence_models import CalendarEvent, EndType, Frequency, Occurrence, RecurrenceRule
from .recurrence_validation import (
    DEFAULT_MAX_INSTANCES,
    extract_anchor,
    validate_max_instances,
    validate_rule,
)

logger = logging.getLogger(__name__)


@dataclass
class ExpanderConfig:
    """Configuration for recurrence expansion.

    The expansion functions never read configuration themselves; callers
    build this from settings and pass ``max_instances`` explicitly.
    """

    max_instances: int = DEFAULT_MAX_INSTANCES

    @classmethod
    def from_settings(cls, settings: Any) -> "ExpanderConfig":
        """Extract expansion configuration from a settings object or mapping.

        Args:
            settings: Config dataclass, namespace or dict

        Returns:
            ExpanderConfig with values from settings or defaults
        """
        return cls(
            max_instances=int(get_config_value(settings, "max_instances", DEFAULT_MAX_INSTANCES)),
        )


def _to_rrule_weekday(day: int) -> weekday:
    """Map 0 = Sunday .. 6 = Saturday onto dateutil's Monday-based weekdays."""
    return weekday((day - 1) % 7)


def _rrule_starts(anchor: datetime, **kwargs: Any) -> Iterator[datetime]:
    # rrule drops microseconds from dtstart; carry them over so every start
    # keeps the anchor's exact time of day.
    micro = timedelta(microseconds=anchor.microsecond)
    for value in rrule(dtstart=anchor.replace(microsecond=0), wkst=SU, **kwargs):
        yield value + micro


def _daily_starts(anchor: datetime, rule: RecurrenceRule) -> Iterator[datetime]:
    return _rrule_starts(anchor, freq=DAILY, interval=rule.interval)


def _weekly_starts(anchor: datetime, rule: RecurrenceRule) -> Iterator[datetime]:
    if not rule.days_of_week:
        return _rrule_starts(anchor, freq=WEEKLY, interval=rule.interval)
    return _weekday_set_starts(anchor, rule)


def _weekday_set_starts(anchor: datetime, rule: RecurrenceRule) -> Iterator[datetime]:
    """Anchor first, then each selected weekday in every interval-th week.

    Weeks start on Sunday. In the anchor's own week only weekdays after the
    anchor are emitted; the anchor counts even when its weekday is not in
    the set.
    """
    yield anchor
    byweekday = [_to_rrule_weekday(day) for day in rule.days_of_week or ()]
    for value in _rrule_starts(anchor, freq=WEEKLY, interval=rule.interval, byweekday=byweekday):
        if value > anchor:
            yield value


def _monthly_starts(anchor: datetime, rule: RecurrenceRule) -> Iterator[datetime]:
    # Always step from the anchor so a clamped month does not drag the
    # day-of-month down for the rest of the series.
    for k in _count():
        yield add_months(anchor, k * rule.interval)


_GENERATORS: dict[Frequency, Callable[[datetime, RecurrenceRule], Iterator[datetime]]] = {
    Frequency.DAILY: _daily_starts,
    Frequency.WEEKLY: _weekly_starts,
    Frequency.CUSTOM: _weekly_starts,
    Frequency.MONTHLY: _monthly_starts,
}


def iter_occurrences(
    base_event: Any,
    rule: RecurrenceRule,
    max_instances: int = DEFAULT_MAX_INSTANCES,
) -> Iterator[Occurrence]:
    """Lazily generate the occurrences of ``rule`` anchored at ``base_event``.

    The rule and base event are validated before the iterator is returned.
    Each call returns a fresh iterator, so the sequence can be restarted.

    Args:
        base_event: object or mapping with ``start_time``/``end_time``
        rule: recurrence rule to expand
        max_instances: hard cap on the number of occurrences

    Returns:
        Iterator of Occurrence in strictly ascending start order

    Raises:
        RecurrenceValidationError: if the rule or cap is invalid
        RecurrenceExpansionError: if the base event cannot anchor a series
    """
    cap = validate_max_instances(max_instances)
    start, end = extract_anchor(base_event)
    validate_rule(rule, start)

    end_type = EndType(rule.end_type)
    limit = cap
    if end_type is EndType.COUNT and rule.count is not None:
        limit = min(rule.count, cap)
    end_date: Optional[datetime] = None
    if end_type is EndType.DATE and rule.end_date is not None:
        end_date = align_to_anchor(rule.end_date, start)

    return _generate(start, end - start, rule, limit, end_date)


def _generate(
    start: datetime,
    duration: timedelta,
    rule: RecurrenceRule,
    limit: int,
    end_date: Optional[datetime],
) -> Iterator[Occurrence]:
    starts = _GENERATORS[Frequency(rule.frequency)](start, rule)
    for index, occurrence_start in enumerate(starts):
        if index >= limit:
            return
        if end_date is not None and occurrence_start > end_date:
            return
        yield Occurrence(
            index=index,
            start_time=occurrence_start,
            end_time=occurrence_start + duration,
        )


def expand(
    base_event: Any,
    rule: RecurrenceRule,
    max_instances: int = DEFAULT_MAX_INSTANCES,
) -> list[Occurrence]:
    """Expand ``rule`` into a list of occurrences starting at the base event.

    The base event's own start is always occurrence #1. Generation stops at
    ``max_instances``, at ``rule.count`` occurrences, or at the last start on
    or before ``rule.end_date``, whichever comes first. Reaching the cap is
    not an error; callers compare ``len(result)`` with ``max_instances`` or
    use ``expansion_truncated`` to warn that the series was capped.

    Raises:
        RecurrenceValidationError: if the rule or cap is invalid
        RecurrenceExpansionError: if the base event cannot anchor a series
    """
    started = time.perf_counter()
    cap = validate_max_instances(max_instances)

    # One extra step tells a natural end apart from truncation.
    probe = list(iter_occurrences(base_event, rule, cap + 1))
    occurrences = probe[:cap]
    if len(probe) > cap:
        logger.info(
            "Recurrence expansion capped at %d occurrences (%s)", cap, rule.describe()
        )

    logger.debug(
        "Expanded %s into %d occurrences in %.2fms",
        rule.describe(),
        len(occurrences),
        (time.perf_counter() - started) * 1000,
    )
    return occurrences


def expansion_truncated(
    base_event: Any,
    rule: RecurrenceRule,
    max_instances: int = DEFAULT_MAX_INSTANCES,
) -> bool:
    """Return True when the cap, not the rule's end condition, ends the series."""
    cap = validate_max_instances(max_instances)
    extra = iter_occurrences(base_event, rule, cap + 1)
    return sum(1 for _ in extra) > cap


def materialize_series(
    base_event: Any,
    rule: RecurrenceRule,
    max_instances: int = DEFAULT_MAX_INSTANCES,
    recurrence_id: Optional[str] = None,
) -> list[CalendarEvent]:
    """Expand ``rule`` into full event records sharing one recurrence group.

    Every returned event is a copy of the base event with its times shifted
    to the occurrence, ``is_recurring`` set, the rule attached, and the same
    ``recurrence_id`` (a new UUID unless one is supplied).

    Args:
        base_event: CalendarEvent or a mapping accepted by CalendarEvent
        rule: recurrence rule to expand
        max_instances: hard cap on the number of events
        recurrence_id: optional existing group identifier to reuse

    Returns:
        List of CalendarEvent in ascending start order
    """
    template = (
        base_event
        if isinstance(base_event, CalendarEvent)
        else CalendarEvent.model_validate(base_event)
    )
    group_id = recurrence_id or str(uuid.uuid4())

    events = []
    for occurrence in expand(template, rule, max_instances):
        instance_id = f"{group_id}_{occurrence.start_time.strftime('%Y%m%dT%H%M%S')}"
        events.append(
            template.model_copy(
                update={
                    "id": instance_id,
                    "start_time": occurrence.start_time,
                    "end_time": occurrence.end_time,
                    "tag_ids": list(template.tag_ids),
                    "recurrence_rule": rule,
                    "recurrence_id": group_id,
                    "is_recurring": True,
                }
            )
        )

    logger.debug("Materialized %d events for recurrence group %s", len(events), group_id)
    return events
