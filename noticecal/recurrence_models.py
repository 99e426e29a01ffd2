"""Data models for recurrence rules and the events they expand into."""

import json
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_serializer,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from .recurrence_exceptions import RecurrenceValidationError

WEEKDAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")

# Error fields are reported under their storage keys.
_STORAGE_KEYS = {"days_of_week": "daysOfWeek", "end_type": "endType", "end_date": "endDate"}


class Frequency(str, Enum):
    """Base cadence of a recurrence rule."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    CUSTOM = "custom"


class EndType(str, Enum):
    """How a recurring series stops."""

    NEVER = "never"
    DATE = "date"
    COUNT = "count"


def _validation_error_from(exc: ValidationError) -> RecurrenceValidationError:
    """Collapse a pydantic ValidationError into a single user-facing error."""
    first = exc.errors()[0]
    loc = first.get("loc") or ()
    field = _STORAGE_KEYS.get(str(loc[0]), str(loc[0])) if loc else None
    ctx_error = (first.get("ctx") or {}).get("error")
    message = str(ctx_error) if ctx_error is not None else first.get("msg", str(exc))
    if field and ctx_error is None:
        message = f"{field}: {message}"
    return RecurrenceValidationError(message, field=field)


class RecurrenceRule(BaseModel):
    """Immutable description of a recurring series.

    Python attribute names are snake_case; the storage representation
    (``to_storage`` / ``from_storage``) uses the camelCase keys
    ``frequency``, ``interval``, ``daysOfWeek``, ``endType``, ``endDate`` and
    ``count``. Fields that do not belong to the active end type are dropped
    at construction, so ``end_date`` is only ever set for ``EndType.DATE`` and
    ``count`` only for ``EndType.COUNT``.

    Construction raises RecurrenceValidationError for structurally invalid
    rules. Checks that need the anchor (``end_date`` after the first start)
    live in ``recurrence_validation.validate_rule``.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    frequency: Frequency
    interval: int = Field(default=1, description="Spacing in units of frequency")
    days_of_week: Optional[tuple[int, ...]] = Field(
        default=None, alias="daysOfWeek", description="Weekdays, 0 = Sunday .. 6 = Saturday"
    )
    end_type: EndType = Field(default=EndType.NEVER, alias="endType")
    end_date: Optional[datetime] = Field(default=None, alias="endDate")
    count: Optional[int] = Field(default=None, description="Total occurrences including the first")

    def __init__(self, **data: Any):
        try:
            super().__init__(**data)
        except ValidationError as exc:
            raise _validation_error_from(exc) from exc

    @model_validator(mode="before")
    @classmethod
    def _drop_inactive_end_fields(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        raw_end_type = data.get("end_type", data.get("endType", EndType.NEVER))
        try:
            end_type = EndType(raw_end_type)
        except ValueError:
            # Leave it for the field validator to report.
            return data

        cleaned = dict(data)
        if end_type is not EndType.DATE:
            cleaned.pop("end_date", None)
            cleaned.pop("endDate", None)
        if end_type is not EndType.COUNT:
            cleaned.pop("count", None)
        return cleaned

    @field_validator("interval")
    @classmethod
    def _check_interval(cls, value: int) -> int:
        if value < 1:
            raise ValueError(f"interval must be at least 1, got {value}")
        return value

    @field_validator("count")
    @classmethod
    def _check_count(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and value < 1:
            raise ValueError(f"count must be at least 1, got {value}")
        return value

    @field_validator("days_of_week", mode="before")
    @classmethod
    def _normalize_days(cls, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, (str, bytes)) or not hasattr(value, "__iter__"):
            raise ValueError("daysOfWeek must be a list of integers 0-6")
        days = list(value)
        for day in days:
            if isinstance(day, bool) or not isinstance(day, int) or not 0 <= day <= 6:
                raise ValueError(f"daysOfWeek values must be integers 0-6, got {day!r}")
        if len(set(days)) != len(days):
            raise ValueError(f"daysOfWeek must not contain duplicates: {days}")
        return tuple(sorted(days))

    @model_validator(mode="after")
    def _check_required_fields(self) -> "RecurrenceRule":
        if self.end_type is EndType.DATE and self.end_date is None:
            raise ValueError("endDate is required when endType is 'date'")
        if self.end_type is EndType.COUNT and self.count is None:
            raise ValueError("count is required when endType is 'count'")
        if self.frequency is Frequency.CUSTOM and not self.days_of_week:
            raise ValueError("custom recurrence requires at least one day in daysOfWeek")
        if self.frequency is Frequency.WEEKLY and self.days_of_week == ():
            raise ValueError("weekly recurrence with explicit days needs at least one day")
        return self

    @field_serializer("end_date", when_used="unless-none")
    def _serialize_end_date(self, value: datetime) -> str:
        return value.isoformat()

    @property
    def has_explicit_days(self) -> bool:
        return bool(self.days_of_week)

    def to_storage(self) -> dict[str, Any]:
        """Return the JSON-compatible storage representation."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def to_json(self) -> str:
        return json.dumps(self.to_storage(), ensure_ascii=False)

    @classmethod
    def from_storage(cls, data: Union[str, bytes, dict[str, Any]]) -> "RecurrenceRule":
        """Rebuild a rule from ``to_storage`` output or its JSON text.

        Raises:
            RecurrenceValidationError: if the data is not a valid rule
        """
        if isinstance(data, (str, bytes)):
            try:
                data = json.loads(data)
            except json.JSONDecodeError as exc:
                raise RecurrenceValidationError(f"Stored rule is not valid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise RecurrenceValidationError("Stored rule must be a JSON object")
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise _validation_error_from(exc) from exc

    def describe(self) -> str:
        """Short English description used in previews and logs."""
        unit = {
            Frequency.DAILY: "day",
            Frequency.WEEKLY: "week",
            Frequency.MONTHLY: "month",
            Frequency.CUSTOM: "week",
        }[Frequency(self.frequency)]
        cadence = f"every {unit}" if self.interval == 1 else f"every {self.interval} {unit}s"
        if self.days_of_week:
            cadence += " on " + ", ".join(WEEKDAY_NAMES[d] for d in self.days_of_week)

        end_type = EndType(self.end_type)
        if end_type is EndType.COUNT:
            return f"{cadence}, {self.count} times"
        if end_type is EndType.DATE and self.end_date is not None:
            return f"{cadence}, until {self.end_date.date().isoformat()}"
        return cadence


class CalendarEvent(BaseModel):
    """A calendar event record as the rest of the application stores it.

    Accepts both snake_case and the camelCase keys produced by the
    announcement import pipeline (``startTime``, ``isAllDay`` ...).
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: Optional[str] = Field(default=None, description="Event ID")
    title: str = Field(default="", description="Event title")
    start_time: datetime = Field(..., description="Event start time")
    end_time: datetime = Field(..., description="Event end time")
    is_all_day: bool = Field(default=False, description="All-day event flag")
    location: Optional[str] = Field(default=None, description="Event location")
    description: Optional[str] = Field(default=None, description="Notes or description")
    original_text: Optional[str] = Field(
        default=None, description="Announcement text the event was extracted from"
    )
    tag_ids: list[str] = Field(default_factory=list, description="Attached tag IDs")
    is_completed: bool = Field(default=False, description="Completion status")

    # Recurrence group bookkeeping
    recurrence_rule: Optional[RecurrenceRule] = Field(
        default=None, description="Rule the series was generated from"
    )
    recurrence_id: Optional[str] = Field(
        default=None, description="Identifier shared by every event in a series"
    )
    is_recurring: bool = Field(default=False, description="Member of a recurring series")

    @property
    def duration(self) -> timedelta:
        return self.end_time - self.start_time

    @field_serializer("start_time", "end_time")
    def serialize_datetime(self, dt: datetime) -> str:
        """Serialize datetime fields to ISO format."""
        return dt.isoformat()


class Occurrence(BaseModel):
    """One concrete instance produced by expanding a rule."""

    model_config = ConfigDict(frozen=True)

    index: int = Field(..., description="Zero-based position in the series")
    start_time: datetime
    end_time: datetime

    @property
    def duration(self) -> timedelta:
        return self.end_time - self.start_time
