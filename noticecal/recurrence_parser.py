"""Recognize informal recurrence phrases and turn them into RecurrenceRule objects.

The parser is a flat, ordered table of PatternRule entries rather than a
grammar. Each entry pairs one or more regular expressions with a builder
that turns the match into rule fields; the first entry that produces
fields wins. End conditions ("持续4周", "until May 1") are scanned
separately and layered on top of whatever cadence matched.

Anything that is not recognized returns None so the caller can fall back to
manual configuration.
"""

import logging
import math
import re
import unicodedata
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Optional

from .datetime_utils import NUMBER_PATTERN, end_of_day, parse_date_phrase, parse_number
from .recurrence_exceptions import RecurrenceValidationError
from .recurrence_models import EndType, Frequency, RecurrenceRule

logger = logging.getLogger(__name__)

RuleFields = dict[str, Any]

# Weekday vocabulary, 0 = Sunday .. 6 = Saturday.
CN_WEEKDAYS = {"日": 0, "天": 0, "一": 1, "二": 2, "三": 3, "四": 4, "五": 5, "六": 6}
EN_WEEKDAYS = {
    "sunday": 0,
    "monday": 1,
    "tuesday": 2,
    "wednesday": 3,
    "thursday": 4,
    "friday": 5,
    "saturday": 6,
}
WEEKEND = (0, 6)
WORKDAYS = (1, 2, 3, 4, 5)

EN_NUMBERS = {
    "one": 1,
    "two": 2,
    "three": 3,
    "four": 4,
    "five": 5,
    "six": 6,
    "seven": 7,
    "eight": 8,
    "nine": 9,
    "ten": 10,
    "eleven": 11,
    "twelve": 12,
}

NUM = NUMBER_PATTERN
EN_NUM = r"other|\d{1,3}|" + "|".join(EN_NUMBERS)

# A weekday character counts only when it is not the start of a quantity
# such as 一次 (once), 三点 (three o'clock) or 五天 (five days), nor part of
# a date such as 六月 (June) or 五号 (the 5th).
CN_DAY = r"[一二三四五六日天](?![次个遍回点时天月号])"
CN_WEEK = r"(?:周|星期|礼拜)"
CN_SEP = r"\s*(?:以及|和|与|及|跟|或|、|,|/|&|到|至|~|-)?\s*"
CN_RANGE_MARKERS = ("到", "至", "~", "-")

EN_DAY = r"(?:sun|mon|tues|wednes|thurs|fri|satur)days?\b"
EN_SEP = r"(?:\s*(?:,\s*and|,|and|&|/|or|to|through|thru|-)\s*|\s+)"
EN_RANGE_MARKERS = ("to", "through", "thru", "-")

_CN_DAY_TOKENS = re.compile(r"(到|至|~|-)|([一二三四五六日天])")
_EN_DAY_TOKENS = re.compile(r"\b(to|through|thru)\b|(-)|(sun|mon|tues|wednes|thurs|fri|satur)day")


@dataclass(frozen=True)
class PatternRule:
    """One entry of the ordered pattern table.

    Only the first match of each pattern is considered. ``build`` receives
    it and returns rule fields, or None to reject it (for example a
    single-day rule seeing two weekdays in the clause).
    """

    name: str
    patterns: tuple[re.Pattern[str], ...]
    build: Callable[[re.Match[str]], Optional[RuleFields]]

    def apply(self, text: str) -> Optional[RuleFields]:
        for pattern in self.patterns:
            match = pattern.search(text)
            if match is None:
                continue
            fields = self.build(match)
            if fields is not None:
                return fields
        return None


def normalize_text(text: str) -> str:
    """Fold full-width characters, lowercase ASCII and collapse whitespace."""
    folded = unicodedata.normalize("NFKC", text)
    return re.sub(r"\s+", " ", folded).strip().lower()


def _interval(raw: Optional[str], skip: bool = False) -> Optional[int]:
    """Resolve an interval token; ``skip`` marks 每隔N (every N+1)."""
    if raw is None:
        value = 1
    elif raw == "other":
        value = 2
    elif raw in EN_NUMBERS:
        value = EN_NUMBERS[raw]
    else:
        parsed = parse_number(raw)
        if parsed is None:
            return None
        value = parsed
    return value + 1 if skip else value


def _expand_range(start: int, end: int) -> list[int]:
    # Walk Monday-first so 周一到周日 covers the whole week.
    first, last = (start - 1) % 7, (end - 1) % 7
    span = (last - first) % 7
    return [((first + offset) % 7 + 1) % 7 for offset in range(span + 1)]


def _collect_days(tokens: list[tuple[Optional[str], Optional[int]]]) -> list[int]:
    """Turn (range-marker, day) tokens into a sorted, de-duplicated day list."""
    days: list[int] = []
    pending_range = False
    for marker, day in tokens:
        if marker is not None:
            pending_range = bool(days)
            continue
        if day is None:
            continue
        if pending_range:
            days.extend(_expand_range(days[-1], day))
            pending_range = False
        else:
            days.append(day)
    return sorted(set(days))


def cn_days(fragment: str) -> list[int]:
    tokens = [
        (marker or None, CN_WEEKDAYS[day] if day else None)
        for marker, day in _CN_DAY_TOKENS.findall(fragment)
    ]
    return _collect_days(tokens)


def en_days(fragment: str) -> list[int]:
    tokens: list[tuple[Optional[str], Optional[int]]] = []
    for word_marker, dash, stem in _EN_DAY_TOKENS.findall(fragment):
        if word_marker or dash:
            tokens.append((word_marker or dash, None))
        else:
            tokens.append((None, EN_WEEKDAYS[stem + "day"]))
    return _collect_days(tokens)


def _days_for(match: re.Match[str]) -> list[int]:
    fragment = match.group("days")
    return en_days(fragment) if match.re in _EN_CLAUSES else cn_days(fragment)


# --- daily -----------------------------------------------------------------

_DAILY_PATTERNS = (
    re.compile(rf"每(?P<skip>隔)?(?P<n>{NUM})?(?:个)?[天日]"),
    re.compile(r"天天"),
    re.compile(rf"\bevery (?P<n>{EN_NUM}) days?\b"),
    re.compile(r"\bevery ?day\b|\beach day\b|\bdaily\b"),
)


def _build_daily(match: re.Match[str]) -> Optional[RuleFields]:
    groups = match.groupdict()
    interval = _interval(groups.get("n"), skip=bool(groups.get("skip")))
    if interval is None:
        return None
    return {"frequency": Frequency.DAILY, "interval": interval}


# --- weekday clauses --------------------------------------------------------

_CN_CLAUSE = re.compile(
    rf"每(?P<skip>隔)?(?P<n>{NUM})?(?:个)?{CN_WEEK}(?:的)?"
    rf"(?P<days>{CN_WEEK}?{CN_DAY}(?:{CN_SEP}{CN_WEEK}?{CN_DAY})*)"
)
_EN_CLAUSE = re.compile(
    rf"\b(?:every|each|weekly on) (?:(?P<n>{EN_NUM}) )?(?:weeks? on )?"
    rf"(?P<days>{EN_DAY}(?:{EN_SEP}{EN_DAY})*)"
)
_EN_CLAUSES = (_EN_CLAUSE,)


def _build_single_weekly(match: re.Match[str]) -> Optional[RuleFields]:
    days = _days_for(match)
    interval = _interval(match.group("n"), skip=bool(match.groupdict().get("skip")))
    if len(days) != 1 or interval is None:
        return None
    return {"frequency": Frequency.WEEKLY, "interval": interval, "days_of_week": days}


_GROUP_PATTERNS = (
    re.compile(r"每(?:个)?(?:周末|星期末)|\b(?:every|each) weekend\b"),
    re.compile(r"每(?:个)?工作日|\b(?:every|each) weekday\b"),
)


def _build_multi_weekly(match: re.Match[str]) -> Optional[RuleFields]:
    if match.re is _GROUP_PATTERNS[0]:
        return {"frequency": Frequency.CUSTOM, "interval": 1, "days_of_week": list(WEEKEND)}
    if match.re is _GROUP_PATTERNS[1]:
        return {"frequency": Frequency.CUSTOM, "interval": 1, "days_of_week": list(WORKDAYS)}

    days = _days_for(match)
    interval = _interval(match.group("n"), skip=bool(match.groupdict().get("skip")))
    if len(days) < 2 or interval is None:
        return None
    return {"frequency": Frequency.CUSTOM, "interval": interval, "days_of_week": days}


# --- monthly ----------------------------------------------------------------

_ORDINAL = r"(?:st|nd|rd|th)?"
_MONTHLY_PATTERNS = (
    re.compile(rf"每(?P<skip>隔)?(?P<n>{NUM})?(?:个)?月(?:的)?(?:第)?(?P<day>{NUM}) ?(?:号|日)"),
    re.compile(rf"\bevery (?:(?P<n>{EN_NUM}) )?months? on (?:the )?(?:day )?(?P<day>\d{{1,2}}){_ORDINAL}\b"),
    re.compile(rf"\bmonthly on (?:the )?(?:day )?(?P<day>\d{{1,2}}){_ORDINAL}\b"),
    re.compile(rf"\bon (?:the )?(?P<day>\d{{1,2}}){_ORDINAL} (?:day )?of (?:every|each) month\b"),
)


def _build_monthly(match: re.Match[str]) -> Optional[RuleFields]:
    groups = match.groupdict()
    day = parse_number(groups["day"])
    if day is None or not 1 <= day <= 31:
        return None
    interval = _interval(groups.get("n"), skip=bool(groups.get("skip")))
    if interval is None:
        return None
    # The day of month comes from the anchor at expansion time.
    return {"frequency": Frequency.MONTHLY, "interval": interval}


# --- bare weekly -------------------------------------------------------------

_WEEKLY_PATTERNS = (
    re.compile(rf"每(?P<skip>隔)?(?P<n>{NUM})?(?:个)?{CN_WEEK}(?![一二三四五六七八九十两零〇\d日天末])"),
    re.compile(rf"\bevery (?:(?P<n>{EN_NUM}) )?weeks?\b"),
    re.compile(r"\bweekly\b"),
)


def _build_weekly(match: re.Match[str]) -> Optional[RuleFields]:
    groups = match.groupdict()
    interval = _interval(groups.get("n"), skip=bool(groups.get("skip")))
    if interval is None:
        return None
    return {"frequency": Frequency.WEEKLY, "interval": interval}


# First match wins; order resolves overlaps between the patterns.
PATTERN_RULES: tuple[PatternRule, ...] = (
    PatternRule("daily", _DAILY_PATTERNS, _build_daily),
    PatternRule("single_weekly", (_CN_CLAUSE, _EN_CLAUSE), _build_single_weekly),
    PatternRule("multi_weekly", (_CN_CLAUSE, _EN_CLAUSE) + _GROUP_PATTERNS, _build_multi_weekly),
    PatternRule("monthly_by_date", _MONTHLY_PATTERNS, _build_monthly),
    PatternRule("weekly", _WEEKLY_PATTERNS, _build_weekly),
)


# --- end conditions ------------------------------------------------------------

_COUNT_PATTERNS = (
    re.compile(rf"持续 ?(?P<n>{NUM}) ?(?:个)? ?(?P<unit>天|日|周|星期|礼拜|月|次)"),
    re.compile(rf"(?:一共|总共|共|重复) ?(?P<n>{NUM}) ?(?P<unit>次)"),
    re.compile(
        rf"\bfor (?:the next )?(?P<n>{EN_NUM}) "
        r"(?P<unit>days?|weeks?|months?|times|occurrences|sessions)\b"
    ),
    re.compile(rf"\b(?P<n>{EN_NUM}) (?P<unit>times|occurrences)\b"),
)

_UNITS = {
    "天": "day",
    "日": "day",
    "day": "day",
    "days": "day",
    "周": "week",
    "星期": "week",
    "礼拜": "week",
    "week": "week",
    "weeks": "week",
    "月": "month",
    "month": "month",
    "months": "month",
    "次": "occurrence",
    "times": "occurrence",
    "occurrences": "occurrence",
    "sessions": "occurrence",
}

_CN_NUMERAL = "[一二三四五六七八九十]"
_CN_DATE = (
    r"\d{4} ?年 ?\d{1,2} ?月 ?\d{1,2} ?[日号]?|\d{1,2} ?月 ?\d{1,2} ?[日号]|\d{4}[-/.]\d{1,2}[-/.]\d{1,2}"
    rf"|{_CN_NUMERAL}{{1,2}} ?月 ?{_CN_NUMERAL}{{1,3}} ?[日号]"
)
_EN_DATE = (
    r"(?:jan|feb|mar|apr|may|jun|jul|aug|sep|sept|oct|nov|dec)[a-z]*\.? \d{1,2}"
    + _ORDINAL
    + r"(?:,? \d{4})?|\d{1,2}"
    + _ORDINAL
    + r" (?:jan|feb|mar|apr|may|jun|jul|aug|sep|sept|oct|nov|dec)[a-z]*(?:,? \d{4})?"
    r"|\d{4}-\d{1,2}-\d{1,2}"
)
_UNTIL_PATTERNS = (
    re.compile(rf"(?:一直到|直到|截止到|截止|截至|到|至) ?(?P<date>{_CN_DATE})"),
    re.compile(rf"(?P<date>{_CN_DATE}) ?(?:为止|截止|结束|止)"),
    re.compile(rf"\b(?:until|till|til|through|thru|ending on|ends on|ending|ends) (?P<date>{_EN_DATE})"),
)


def count_for_span(fields: RuleFields, amount: int, unit: str) -> Optional[int]:
    """Convert "for N <unit>" into an occurrence count for the matched cadence.

    ``次``/times map directly to N. Otherwise the count is the number of
    occurrences the cadence yields over the span: daily over N weeks is
    7N / interval (so 每天，持续4周 is 28), weekly over N weeks is
    N / interval times the number of selected weekdays, monthly over N
    months is N / interval; fractions round up. Combinations with no exact
    conversion (daily over months, monthly over weeks ...) return None.

    The count includes the anchor, which is always occurrence #1. A weekly
    rule whose anchor falls on another weekday than the selected one therefore
    ends one selected day early: 每周二，持续4周 anchored on a Monday yields the
    Monday plus three Tuesdays.
    """
    if amount < 1:
        return None
    if unit == "occurrence":
        return amount

    frequency = fields["frequency"]
    interval = fields.get("interval", 1)
    if frequency is Frequency.DAILY:
        days = {"day": amount, "week": amount * 7}.get(unit)
        return math.ceil(days / interval) if days is not None else None
    if frequency in (Frequency.WEEKLY, Frequency.CUSTOM) and unit == "week":
        per_week = len(fields.get("days_of_week") or ()) or 1
        return math.ceil(amount / interval) * per_week
    if frequency is Frequency.MONTHLY and unit == "month":
        return math.ceil(amount / interval)
    return None


def _scan_count(text: str, fields: RuleFields) -> Optional[RuleFields]:
    for pattern in _COUNT_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue
        amount = _interval(match.group("n"))
        unit = _UNITS.get(match.group("unit"))
        if amount is None or unit is None:
            continue
        occurrences = count_for_span(fields, amount, unit)
        if occurrences is None:
            logger.debug(
                "No exact count for %s over %d %s(s); leaving series open-ended",
                fields["frequency"].value,
                amount,
                unit,
            )
            return None
        return {"end_type": EndType.COUNT, "count": occurrences}
    return None


def _scan_until(text: str, reference: Optional[date]) -> Optional[RuleFields]:
    for pattern in _UNTIL_PATTERNS:
        for match in pattern.finditer(text):
            raw = re.sub(r"(\d)(?:st|nd|rd|th)\b", r"\1", match.group("date"))
            parsed = parse_date_phrase(raw, reference)
            if parsed is not None:
                return {"end_type": EndType.DATE, "end_date": end_of_day(parsed)}
    return None


def scan_end_condition(text: str, fields: RuleFields, reference: Optional[date] = None) -> RuleFields:
    """Return end-condition fields found in ``text``; empty when open-ended.

    Count phrases take precedence over "until" phrases.
    """
    return _scan_count(text, fields) or _scan_until(text, reference) or {}


def match_cadence(text: str) -> Optional[tuple[str, RuleFields]]:
    """Return ``(rule name, fields)`` for the first pattern rule that matches."""
    for pattern_rule in PATTERN_RULES:
        fields = pattern_rule.apply(text)
        if fields is not None:
            return pattern_rule.name, fields
    return None


def parse(text: Any, reference: Optional[date] = None) -> Optional[RecurrenceRule]:
    """Translate a natural-language recurrence phrase into a RecurrenceRule.

    Args:
        text: free text such as "每周二和周四，持续4周" or "every monday until may 1"
        reference: date supplying the year for year-less "until" dates
            (defaults to today)

    Returns:
        RecurrenceRule on success, None when no cadence is recognized. A
        recognizable end condition without a cadence also returns None.
    """
    if not isinstance(text, str) or not text.strip():
        return None

    normalized = normalize_text(text)
    matched = match_cadence(normalized)
    if matched is None:
        logger.debug("No recurrence pattern recognized in %r", text)
        return None

    name, fields = matched
    fields = {**fields, "end_type": EndType.NEVER}
    fields.update(scan_end_condition(normalized, fields, reference))

    try:
        rule = RecurrenceRule(**fields)
    except RecurrenceValidationError as exc:
        logger.debug("Pattern %s matched %r but produced an invalid rule: %s", name, text, exc)
        return None

    logger.debug("Pattern %s matched %r -> %s", name, text, rule.describe())
    return rule
