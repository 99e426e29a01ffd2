"""Wall-clock date helpers for the recurrence engine.

All arithmetic here is local wall-clock arithmetic: an aware datetime keeps
its tzinfo and its time of day, a naive datetime stays naive. No timezone
database conversion is performed.
"""

import calendar
import logging
import re
from datetime import date, datetime, time
from typing import Any, Optional

from dateutil import parser as dateutil_parser
from dateutil.relativedelta import relativedelta

logger = logging.getLogger(__name__)

_CN_DIGITS = {
    "零": 0,
    "〇": 0,
    "一": 1,
    "二": 2,
    "两": 2,
    "三": 3,
    "四": 4,
    "五": 5,
    "六": 6,
    "七": 7,
    "八": 8,
    "九": 9,
}

# Matches Arabic digits or a Chinese numeral below one hundred.
NUMBER_PATTERN = r"\d{1,3}|[零〇一二两三四五六七八九十]{1,3}"

_CN_FULL_DATE = re.compile(
    r"(?P<year>\d{4})\s*年\s*(?P<month>\d{1,2})\s*月\s*(?P<day>\d{1,2})\s*[日号]?"
)
_CN_MONTH_DAY = re.compile(r"(?P<month>\d{1,2})\s*月\s*(?P<day>\d{1,2})\s*[日号]")
_CN_NUMERAL_MONTH_DAY = re.compile(
    r"(?P<month>[一二三四五六七八九十]{1,2})\s*月\s*(?P<day>[一二三四五六七八九十]{1,3})\s*[日号]"
)
_NUMERIC_DATE = re.compile(r"(?P<year>\d{4})[-/.](?P<month>\d{1,2})[-/.](?P<day>\d{1,2})")


def sunday_weekday(value: date) -> int:
    """Return the weekday with 0 = Sunday ... 6 = Saturday."""
    return (value.weekday() + 1) % 7


def last_day_of_month(year: int, month: int) -> int:
    """Return the number of days in the given month."""
    return calendar.monthrange(year, month)[1]


def add_months(value: datetime, months: int) -> datetime:
    """Advance by calendar months, clamping the day to the target month's last day.

    relativedelta never rolls over into the following month, so an anchor on
    the 31st lands on the 30th (or the 28th/29th) in shorter months.
    """
    return value + relativedelta(months=months)


def end_of_day(value: date) -> datetime:
    """Return the last second of the given calendar day as a naive datetime."""
    return datetime.combine(value, time(23, 59, 59))


def align_to_anchor(value: datetime, anchor: datetime) -> datetime:
    """Give ``value`` the same awareness as ``anchor`` so they can be compared.

    A naive value is interpreted in the anchor's timezone. An aware value
    compared against a naive anchor keeps its wall-clock reading.
    """
    if anchor.tzinfo is not None and value.tzinfo is None:
        return value.replace(tzinfo=anchor.tzinfo)
    if anchor.tzinfo is None and value.tzinfo is not None:
        return value.replace(tzinfo=None)
    return value


def coerce_datetime(value: Any) -> Optional[datetime]:
    """Coerce a datetime, date or ISO-8601 string into a datetime.

    Returns None for None and raises ValueError for unparseable input.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time())
    if isinstance(value, str):
        return dateutil_parser.isoparse(value.strip())
    raise ValueError(f"Unsupported datetime value: {value!r}")


def parse_number(token: str) -> Optional[int]:
    """Parse Arabic digits or a Chinese numeral below one hundred.

    >>> parse_number("12"), parse_number("两"), parse_number("十五"), parse_number("二十")
    (12, 2, 15, 20)
    """
    token = token.strip()
    if not token:
        return None
    if token.isdigit():
        return int(token)

    if "十" in token:
        tens_part, _, units_part = token.partition("十")
        if tens_part and tens_part not in _CN_DIGITS:
            return None
        if units_part and units_part not in _CN_DIGITS:
            return None
        tens = _CN_DIGITS[tens_part] if tens_part else 1
        units = _CN_DIGITS[units_part] if units_part else 0
        return tens * 10 + units

    if len(token) == 1 and token in _CN_DIGITS:
        return _CN_DIGITS[token]
    return None


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        logger.debug("Ignoring impossible date %04d-%02d-%02d", year, month, day)
        return None


def parse_date_phrase(text: str, reference: Optional[date] = None) -> Optional[date]:
    """Parse a date written the way announcements write them.

    Supports ``2024年3月15日``, ``3月15号`` and ``六月三十日`` (year taken
    from ``reference``), ``2024-03-15`` / ``2024/3/15`` / ``2024.3.15`` and
    English dates such as ``May 1, 2024`` via dateutil. Returns None when nothing parses.
    """
    if not text or not text.strip():
        return None
    reference = reference or date.today()
    stripped = text.strip()

    match = _CN_FULL_DATE.search(stripped)
    if match:
        return _safe_date(int(match["year"]), int(match["month"]), int(match["day"]))

    match = _NUMERIC_DATE.search(stripped)
    if match:
        return _safe_date(int(match["year"]), int(match["month"]), int(match["day"]))

    match = _CN_MONTH_DAY.search(stripped)
    if match:
        return _safe_date(reference.year, int(match["month"]), int(match["day"]))

    match = _CN_NUMERAL_MONTH_DAY.search(stripped)
    if match:
        month, day = parse_number(match["month"]), parse_number(match["day"])
        if month is None or day is None:
            return None
        return _safe_date(reference.year, month, day)

    # English month names; dateutil fills missing parts from the default.
    if not re.search(r"[a-z]", stripped, re.IGNORECASE):
        return None
    try:
        default = datetime.combine(reference, time())
        return dateutil_parser.parse(stripped, default=default).date()
    except (ValueError, OverflowError):
        logger.debug("dateutil could not parse date phrase %r", stripped)
        return None
