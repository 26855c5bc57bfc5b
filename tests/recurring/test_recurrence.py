"""
Tests for ledger_recurring.domain.recurrence -- pure next-date evaluation.

Covers month-end clamping, leap years, anchor days, intervals, frequency
coercion and the bounded occurrence listing used by previews.
"""

from datetime import date

import pytest

from ledger_kernel.exceptions import InvalidRecurrenceError

from ledger_recurring.domain.recurrence import (
    add_months,
    add_years,
    clamp_day,
    coerce_frequency,
    iter_occurrences,
    next_occurrence,
    occurrences_between,
    validate_interval,
)
from ledger_recurring.domain.types import RecurrenceFrequency


class TestDailyWeekly:
    def test_daily_adds_interval_days(self):
        assert next_occurrence(date(2024, 2, 28), "DAILY", 1) == date(2024, 2, 29)
        assert next_occurrence(date(2024, 2, 28), "DAILY", 3) == date(2024, 3, 2)

    def test_weekly_adds_seven_days_per_interval(self):
        assert next_occurrence(date(2024, 12, 30), "WEEKLY", 1) == date(2025, 1, 6)
        assert next_occurrence(date(2024, 1, 1), "WEEKLY", 2) == date(2024, 1, 15)


class TestMonthly:
    def test_leap_year_clamps_to_feb_29(self):
        assert next_occurrence(date(2024, 1, 31), "MONTHLY", 1) == date(2024, 2, 29)

    def test_non_leap_year_clamps_to_feb_28(self):
        assert next_occurrence(date(2023, 1, 31), "MONTHLY", 1) == date(2023, 2, 28)

    def test_without_anchor_uses_current_day(self):
        assert next_occurrence(date(2024, 2, 29), "MONTHLY", 1) == date(2024, 3, 29)

    def test_anchor_restores_month_end(self):
        assert next_occurrence(
            date(2024, 2, 29), "MONTHLY", 1, anchor_day=31,
        ) == date(2024, 3, 31)

    def test_anchored_series_from_jan_31(self):
        dates = occurrences_between(
            date(2024, 1, 31), "MONTHLY", 1, until=None, limit=5, anchor_day=31,
        )
        assert dates == [
            date(2024, 1, 31),
            date(2024, 2, 29),
            date(2024, 3, 31),
            date(2024, 4, 30),
            date(2024, 5, 31),
        ]

    def test_interval_crosses_year_boundary(self):
        assert next_occurrence(date(2024, 11, 15), "MONTHLY", 3) == date(2025, 2, 15)

    def test_large_interval(self):
        assert next_occurrence(date(2024, 1, 31), "MONTHLY", 25) == date(2026, 2, 28)


class TestYearly:
    def test_feb_29_to_non_leap_year(self):
        assert next_occurrence(date(2024, 2, 29), "YEARLY", 3) == date(2027, 2, 28)

    def test_feb_29_to_leap_year(self):
        assert next_occurrence(date(2024, 2, 29), "YEARLY", 4) == date(2028, 2, 29)

    def test_anchor_restores_feb_29(self):
        assert next_occurrence(
            date(2027, 2, 28), "YEARLY", 1, anchor_day=29,
        ) == date(2028, 2, 29)

    def test_ordinary_date(self):
        assert next_occurrence(date(2023, 7, 4), "YEARLY", 1) == date(2024, 7, 4)


class TestHelpers:
    def test_clamp_day(self):
        assert clamp_day(2023, 2, 31) == date(2023, 2, 28)
        assert clamp_day(2023, 4, 31) == date(2023, 4, 30)
        assert clamp_day(2023, 5, 31) == date(2023, 5, 31)

    def test_add_months_negative(self):
        assert add_months(date(2024, 3, 31), -1) == date(2024, 2, 29)

    def test_add_years(self):
        assert add_years(date(2024, 2, 29), 1) == date(2025, 2, 28)

    def test_iter_occurrences_starts_with_start(self):
        it = iter_occurrences(date(2024, 1, 1), "DAILY", 2)
        assert [next(it) for _ in range(3)] == [
            date(2024, 1, 1), date(2024, 1, 3), date(2024, 1, 5),
        ]


class TestValidation:
    @pytest.mark.parametrize("value", ["monthly", " Weekly ", "DAILY"])
    def test_frequency_names_are_case_insensitive(self, value):
        assert isinstance(coerce_frequency(value), RecurrenceFrequency)

    def test_unknown_frequency_rejected(self):
        with pytest.raises(InvalidRecurrenceError) as exc_info:
            next_occurrence(date(2024, 1, 1), "HOURLY", 1)
        assert exc_info.value.field == "frequency"
        assert exc_info.value.code == "INVALID_RECURRENCE"

    @pytest.mark.parametrize("interval", [0, -1, True, 1.5, "2"])
    def test_bad_interval_rejected(self, interval):
        with pytest.raises(InvalidRecurrenceError) as exc_info:
            validate_interval(interval)
        assert exc_info.value.field == "interval"

    @pytest.mark.parametrize("anchor", [0, 32])
    def test_bad_anchor_rejected(self, anchor):
        with pytest.raises(InvalidRecurrenceError):
            next_occurrence(date(2024, 1, 1), "MONTHLY", 1, anchor_day=anchor)


class TestOccurrencesBetween:
    def test_stops_at_until_inclusive(self):
        dates = occurrences_between(
            date(2024, 1, 1), "WEEKLY", 1, until=date(2024, 1, 15), limit=10,
        )
        assert dates == [date(2024, 1, 1), date(2024, 1, 8), date(2024, 1, 15)]

    def test_bounded_by_limit(self):
        dates = occurrences_between(date(2024, 1, 1), "DAILY", 1, until=None, limit=4)
        assert len(dates) == 4

    def test_until_before_start_is_empty(self):
        assert occurrences_between(
            date(2024, 1, 10), "DAILY", 1, until=date(2024, 1, 9), limit=5,
        ) == []

    def test_zero_limit_is_empty(self):
        assert occurrences_between(date(2024, 1, 1), "DAILY", 1, None, 0) == []

    def test_negative_limit_rejected(self):
        with pytest.raises(ValueError):
            occurrences_between(date(2024, 1, 1), "DAILY", 1, None, -1)
