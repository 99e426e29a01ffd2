"""Unit tests for noticecal.recurrence_validation."""

from datetime import datetime, timedelta
from types import SimpleNamespace
from zoneinfo import ZoneInfo

import pytest

from noticecal.recurrence_exceptions import RecurrenceExpansionError, RecurrenceValidationError
from noticecal.recurrence_models import EndType, Frequency, RecurrenceRule
from noticecal.recurrence_validation import (
    extract_anchor,
    validate_days_of_week,
    validate_max_instances,
    validate_rule,
)

pytestmark = [pytest.mark.unit, pytest.mark.fast]


class TestValidateDaysOfWeek:
    def test_validate_days_of_week_when_valid_then_sorted_tuple(self) -> None:
        assert validate_days_of_week([5, 0, 3]) == (0, 3, 5)

    def test_validate_days_of_week_when_none_and_optional_then_none(self) -> None:
        assert validate_days_of_week(None) is None

    @pytest.mark.parametrize("days", [None, [], ()])
    def test_validate_days_of_week_when_required_and_empty_then_error(self, days) -> None:
        with pytest.raises(RecurrenceValidationError) as excinfo:
            validate_days_of_week(days, required=True)

        assert excinfo.value.field == "daysOfWeek"

    @pytest.mark.parametrize("days", [[-1], [7], [1, 1], ["1"], [True]])
    def test_validate_days_of_week_when_bad_values_then_error(self, days) -> None:
        with pytest.raises(RecurrenceValidationError):
            validate_days_of_week(days)


class TestValidateMaxInstances:
    def test_validate_max_instances_when_positive_int_then_returned(self) -> None:
        assert validate_max_instances(25) == 25

    @pytest.mark.parametrize("value", [0, -1, 2.5, "5", None, False])
    def test_validate_max_instances_when_invalid_then_error(self, value) -> None:
        with pytest.raises(RecurrenceValidationError):
            validate_max_instances(value)


class TestValidateRule:
    def test_validate_rule_when_valid_then_no_error(self) -> None:
        rule = RecurrenceRule(frequency="daily", end_type="date", end_date=datetime(2024, 3, 10))

        validate_rule(rule, datetime(2024, 3, 4, 9, 0))

    def test_validate_rule_when_end_date_not_after_anchor_then_error(self) -> None:
        rule = RecurrenceRule(frequency="daily", end_type="date", end_date=datetime(2024, 3, 4, 9, 0))

        with pytest.raises(RecurrenceValidationError):
            validate_rule(rule, datetime(2024, 3, 4, 9, 0))

    def test_validate_rule_when_naive_end_date_and_aware_anchor_then_compared_in_anchor_zone(self) -> None:
        zone = ZoneInfo("Asia/Shanghai")
        rule = RecurrenceRule(frequency="daily", end_type="date", end_date=datetime(2024, 3, 4, 10, 0))

        validate_rule(rule, datetime(2024, 3, 4, 9, 0, tzinfo=zone))

    def test_validate_rule_when_not_a_rule_then_error(self) -> None:
        with pytest.raises(RecurrenceValidationError):
            validate_rule({"frequency": "daily"})

    @pytest.mark.parametrize(
        "fields",
        [
            {"frequency": Frequency.DAILY, "interval": 0},
            {"frequency": Frequency.DAILY, "end_type": EndType.COUNT, "count": None},
            {"frequency": Frequency.DAILY, "end_type": EndType.DATE, "end_date": None},
            {"frequency": Frequency.WEEKLY, "days_of_week": ()},
            {"frequency": "hourly"},
        ],
    )
    def test_validate_rule_when_constructed_unchecked_then_error(self, fields) -> None:
        rule = RecurrenceRule.model_construct(**fields)

        with pytest.raises(RecurrenceValidationError):
            validate_rule(rule)


class TestExtractAnchor:
    def test_extract_anchor_when_object_then_start_and_end(self) -> None:
        start = datetime(2024, 3, 4, 9, 0)
        event = SimpleNamespace(start_time=start, end_time=start + timedelta(hours=1))

        assert extract_anchor(event) == (start, start + timedelta(hours=1))

    def test_extract_anchor_when_aware_start_and_naive_end_then_end_localized(self) -> None:
        zone = ZoneInfo("Asia/Shanghai")
        start = datetime(2024, 3, 4, 9, 0, tzinfo=zone)

        _, end = extract_anchor({"start_time": start, "end_time": datetime(2024, 3, 4, 10, 0)})

        assert end.tzinfo is zone

    def test_extract_anchor_when_unparseable_time_then_expansion_error(self) -> None:
        with pytest.raises(RecurrenceExpansionError):
            extract_anchor({"start_time": "next tuesday", "end_time": "2024-03-04T10:00"})

    def test_extract_anchor_when_end_missing_then_expansion_error(self) -> None:
        with pytest.raises(RecurrenceExpansionError):
            extract_anchor({"startTime": "2024-03-04T09:00"})
