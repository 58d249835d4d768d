"""
Calendar and Week Resolution

Two week schemes coexist and must not be conflated:

- Sunday-anchored weeks (`week_start`) group sessions, daily completions
  and weekly objectives: a week runs from Sunday 00:00 inclusive to the next
  Sunday exclusive.
- ISO-8601 weeks (`iso_week_number`, `iso_year_week`) are Monday based and
  resolve year boundaries with the nearest-Thursday rule. They only label
  sessions ("week 5") and key weekly submissions.

A Sunday belongs to the Sunday-anchored week it starts, but to the ISO week
that ends on it, so the two numbers differ for every Sunday.

Periods are half-open date ranges [start, end).
"""

import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Optional, Union

from hifz.enums.progress import TimeScope
from hifz.middleware.error_handling import ValidationError

# Filtering sentinel for all-time windows when a learner has no records yet
FAR_PAST = date(1970, 1, 1)

DateLike = Union[date, datetime]


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on read)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def to_date(value: DateLike) -> date:
    """Truncate a datetime to its UTC calendar date; dates pass through."""
    if isinstance(value, datetime):
        return ensure_utc(value).astimezone(timezone.utc).date()
    return value


def week_start(value: DateLike) -> date:
    """Return the Sunday on or before the given day."""
    day = to_date(value)
    # weekday(): Monday=0 ... Sunday=6
    return day - timedelta(days=(day.weekday() + 1) % 7)


def iso_week_number(value: DateLike) -> int:
    """ISO-8601 week number (1..53)."""
    return to_date(value).isocalendar()[1]


def iso_year_week(value: DateLike) -> tuple[int, int]:
    """ISO-8601 (year, week) pair; the year may differ from the calendar year."""
    iso = to_date(value).isocalendar()
    return iso[0], iso[1]


@dataclass(frozen=True)
class PeriodBounds:
    """Half-open window [start, end) for one statistics scope."""

    scope: TimeScope
    start: date
    end: date

    @property
    def days(self) -> int:
        return (self.end - self.start).days

    def contains(self, value: DateLike) -> bool:
        return self.start <= to_date(value) < self.end


def add_months(day: date, months: int) -> date:
    """First day of the month `months` away from `day`'s month."""
    index = day.year * 12 + (day.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def period_bounds(
    scope: TimeScope,
    today: date,
    year: Optional[int] = None,
    month: Optional[int] = None,
    week_offset: int = 0,
    earliest: Optional[date] = None,
) -> PeriodBounds:
    """
    Resolve the window for a scope.

    Args:
        scope: Selected time scope.
        today: Reference day (UTC).
        year: Calendar year for month/year scopes; defaults to today's.
        month: Calendar month (1-12) for the month scope; defaults to today's.
        week_offset: Weeks relative to the current Sunday-anchored week
            (0 = current, -1 = previous).
        earliest: Earliest relevant record date for the all-time scope.

    Raises:
        ValidationError: On a month outside 1..12 or a year outside 2..9998.
    """
    target_year = year if year is not None else today.year
    if not 2 <= target_year <= 9998:
        raise ValidationError(f"Invalid year {target_year}", details={"year": target_year})

    if scope == TimeScope.DAY:
        return PeriodBounds(scope, today, today + timedelta(days=1))

    if scope == TimeScope.WEEK:
        start = week_start(today) + timedelta(weeks=week_offset)
        return PeriodBounds(scope, start, start + timedelta(days=7))

    if scope == TimeScope.MONTH:
        target_month = month if month is not None else today.month
        if not 1 <= target_month <= 12:
            raise ValidationError(
                f"Invalid month {target_month}", details={"month": target_month}
            )
        start = date(target_year, target_month, 1)
        return PeriodBounds(scope, start, add_months(start, 1))

    if scope == TimeScope.YEAR:
        return PeriodBounds(scope, date(target_year, 1, 1), date(target_year + 1, 1, 1))

    return PeriodBounds(TimeScope.ALL, earliest or FAR_PAST, today + timedelta(days=1))


def previous_period_bounds(bounds: PeriodBounds) -> PeriodBounds:
    """
    Window the current period is compared against.

    Day, month and year shift back by one unit. Week and all-time return the
    same window, which makes their trend degenerate.
    """
    if bounds.scope == TimeScope.DAY:
        return PeriodBounds(bounds.scope, bounds.start - timedelta(days=1), bounds.start)
    if bounds.scope == TimeScope.MONTH:
        return PeriodBounds(bounds.scope, add_months(bounds.start, -1), bounds.start)
    if bounds.scope == TimeScope.YEAR:
        return PeriodBounds(
            bounds.scope, date(bounds.start.year - 1, 1, 1), bounds.start
        )
    return bounds


def weeks_in_period(
    bounds: PeriodBounds,
    today: date,
    first_record: Optional[date] = None,
    adoption: Optional[date] = None,
) -> int:
    """
    Number of weeks a rate is divided by.

    Regular scopes use the period length. All-time spans from the first
    record to today. Either way the start is clamped to the Sunday of the
    learner's adoption date, so weeks before they started do not count.
    """
    start = bounds.start
    end = bounds.end
    if bounds.scope == TimeScope.ALL:
        start = first_record or bounds.start
        if start == FAR_PAST:
            return 0
        end = today + timedelta(days=1)

    if adoption is not None:
        start = max(start, week_start(adoption))

    days = (end - start).days
    if days <= 0:
        return 0
    return math.ceil(days / 7)
