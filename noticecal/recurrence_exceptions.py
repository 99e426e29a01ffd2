"""Custom exception hierarchy for recurrence rule errors.

Only structurally invalid input is an error here. Hitting the instance cap
and failing to recognize a recurrence phrase are ordinary outcomes and are
reported through return values instead.
"""

from typing import Optional


class RecurrenceError(Exception):
    """Base exception for all recurrence engine errors."""


class RecurrenceValidationError(RecurrenceError, ValueError):
    """A recurrence rule is structurally invalid.

    Raised when:
    - interval or count is below 1
    - days_of_week is empty where a weekday set is required
    - days_of_week holds values outside 0..6 or duplicates
    - end_date is missing for an end_type of "date", or not after the anchor
    - stored rule data cannot be decoded

    Raised before any occurrence is generated; callers surface ``str(exc)``
    to the user and ask for a corrected rule.
    """

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class RecurrenceExpansionError(RecurrenceError):
    """The base event cannot anchor a series.

    Raised when:
    - the base event has no start or end time
    - the end time is before the start time
    """
