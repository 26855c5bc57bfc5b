"""
Pure recurrence evaluation.

Contract:
    ``next_occurrence(current, frequency, interval)`` is PURE, total and
    deterministic -- no I/O, no clock, no state.  The materializer uses it to
    compute the advanced cursor inside its compare-and-swap.

Calendar rules:
    DAILY    current + interval days
    WEEKLY   current + 7 * interval days
    MONTHLY  + interval calendar months, day clamped to the month's last day
    YEARLY   + interval years, Feb 29 clamped to Feb 28 in non-leap years

    MONTHLY and YEARLY target ``anchor_day`` when given (the definition's
    start day), so a series started on the 31st returns to the 31st after a
    short month: Jan 31 -> Feb 29 -> Mar 31 -> Apr 30.  Without an anchor
    the current date's day is used.

Guarantees:
    ``next_occurrence(d, ...) > d`` for every frequency, interval >= 1 and
    anchor; iterating therefore never revisits a date.
"""

from __future__ import annotations

import calendar
from datetime import date, timedelta
from typing import Iterator

from ledger_kernel.exceptions import InvalidRecurrenceError

from ledger_recurring.domain.types import RecurrenceFrequency


def coerce_frequency(value: RecurrenceFrequency | str) -> RecurrenceFrequency:
    """Return ``value`` as a RecurrenceFrequency (case-insensitive names accepted).

    Raises:
        InvalidRecurrenceError: If the name is not in the closed set.
    """
    if isinstance(value, RecurrenceFrequency):
        return value
    try:
        return RecurrenceFrequency(str(value).strip().upper())
    except ValueError:
        allowed = ", ".join(f.value for f in RecurrenceFrequency)
        raise InvalidRecurrenceError(
            "frequency", f"'{value}' is not one of {allowed}",
        ) from None


def validate_interval(interval: int) -> int:
    """Raise InvalidRecurrenceError unless ``interval`` is an integer >= 1."""
    if isinstance(interval, bool) or not isinstance(interval, int):
        raise InvalidRecurrenceError("interval", f"must be an integer, got {interval!r}")
    if interval < 1:
        raise InvalidRecurrenceError("interval", f"must be at least 1, got {interval}")
    return interval


def clamp_day(year: int, month: int, day: int) -> date:
    """``date(year, month, day)`` with ``day`` clamped to the month's length."""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(max(day, 1), last_day))


def add_months(current: date, months: int, anchor_day: int | None = None) -> date:
    """Shift ``current`` by ``months`` calendar months, clamping the day."""
    total = current.year * 12 + (current.month - 1) + months
    year, month = divmod(total, 12)
    return clamp_day(year, month + 1, anchor_day or current.day)


def add_years(current: date, years: int, anchor_day: int | None = None) -> date:
    """Shift ``current`` by ``years``; Feb 29 becomes Feb 28 off leap years."""
    return clamp_day(current.year + years, current.month, anchor_day or current.day)


def next_occurrence(
    current: date,
    frequency: RecurrenceFrequency | str,
    interval: int = 1,
    anchor_day: int | None = None,
) -> date:
    """Return the occurrence following ``current``.

    Args:
        current: The occurrence date just materialized (the old cursor).
        frequency: DAILY, WEEKLY, MONTHLY or YEARLY.
        interval: Positive multiplier of the frequency's base cycle.
        anchor_day: Day-of-month targeted by MONTHLY/YEARLY (1..31).

    Raises:
        InvalidRecurrenceError: On an unknown frequency, interval < 1, or an
            anchor_day outside 1..31.
    """
    frequency = coerce_frequency(frequency)
    validate_interval(interval)
    if anchor_day is not None and not 1 <= anchor_day <= 31:
        raise InvalidRecurrenceError("anchor_day", f"must be within 1..31, got {anchor_day}")

    if frequency == RecurrenceFrequency.DAILY:
        return current + timedelta(days=interval)
    if frequency == RecurrenceFrequency.WEEKLY:
        return current + timedelta(weeks=interval)
    if frequency == RecurrenceFrequency.MONTHLY:
        return add_months(current, interval, anchor_day)
    return add_years(current, interval, anchor_day)


def iter_occurrences(
    start: date,
    frequency: RecurrenceFrequency | str,
    interval: int = 1,
    anchor_day: int | None = None,
) -> Iterator[date]:
    """Yield ``start`` and every following occurrence, forever."""
    current = start
    while True:
        yield current
        current = next_occurrence(current, frequency, interval, anchor_day)


def occurrences_between(
    start: date,
    frequency: RecurrenceFrequency | str,
    interval: int,
    until: date | None,
    limit: int,
    anchor_day: int | None = None,
) -> list[date]:
    """List the schedule from ``start`` through ``until`` (inclusive).

    Bounded by ``limit`` so an open-ended schedule stays finite.
    """
    if limit < 0:
        raise ValueError(f"limit must be non-negative, got {limit}")

    result: list[date] = []
    for occurrence in iter_occurrences(start, frequency, interval, anchor_day):
        if len(result) >= limit:
            break
        if until is not None and occurrence > until:
            break
        result.append(occurrence)
    return result
