"""
Period bucketing: calendar alignment for every series.

Splits [start_date, end_date] into contiguous daily, weekly (Monday-based)
or monthly buckets. Partial first/last weeks and months are clipped to the
requested range, never dropped, so the buckets always cover the range
exactly.
"""

from datetime import date, timedelta
from typing import List

import structlog

from exceptions import InvalidRangeError
from models.series import Granularity, PeriodBucket

logger = structlog.get_logger(__name__)

# Days of usage one projected bucket represents
DAYS_PER_BUCKET = {
    Granularity.DAILY: 1,
    Granularity.WEEKLY: 7,
    Granularity.MONTHLY: 30,
}


def days_per_bucket(granularity: Granularity) -> int:
    """Nominal bucket length in days (monthly counts as 30)."""
    return DAYS_PER_BUCKET[granularity]


def week_start(day: date) -> date:
    """Monday of the week containing day."""
    return day - timedelta(days=day.weekday())


def month_start(day: date) -> date:
    return day.replace(day=1)


def next_month_start(day: date) -> date:
    """First day of the month after the one containing day."""
    if day.month == 12:
        return date(day.year + 1, 1, 1)
    return date(day.year, day.month + 1, 1)


def shift_years(day: date, years: int) -> date:
    """Same calendar day in another year; Feb 29 falls back to Feb 28."""
    try:
        return day.replace(year=day.year + years)
    except ValueError:
        return day.replace(year=day.year + years, day=28)


def _next_boundary(day: date, granularity: Granularity) -> date:
    if granularity == Granularity.DAILY:
        return day + timedelta(days=1)
    if granularity == Granularity.WEEKLY:
        return week_start(day) + timedelta(days=7)
    return next_month_start(day)


def _natural_start(day: date, granularity: Granularity) -> date:
    if granularity == Granularity.DAILY:
        return day
    if granularity == Granularity.WEEKLY:
        return week_start(day)
    return month_start(day)


def build_buckets(
    start_date: date,
    end_date: date,
    granularity: Granularity,
) -> List[PeriodBucket]:
    """
    Build the ordered buckets covering [start_date, end_date].

    Args:
        start_date: First day covered (inclusive)
        end_date: Last day covered (inclusive)
        granularity: daily, weekly or monthly

    Returns:
        Contiguous, non-overlapping buckets; the first starts on start_date
        and the last ends the day after end_date

    Raises:
        InvalidRangeError: If start_date is after end_date
    """
    if start_date > end_date:
        raise InvalidRangeError(
            "start_date must be on or before end_date",
            start_date=start_date,
            end_date=end_date,
        )

    range_end = end_date + timedelta(days=1)
    buckets: List[PeriodBucket] = []
    cursor = start_date

    while cursor < range_end:
        boundary = _next_boundary(cursor, granularity)
        period_end = min(boundary, range_end)
        is_partial = (
            cursor != _natural_start(cursor, granularity)
            or period_end != boundary
        )
        buckets.append(PeriodBucket(
            period_start=cursor,
            period_end=period_end,
            granularity=granularity,
            is_partial=is_partial,
        ))
        cursor = period_end

    logger.debug(
        "buckets_built",
        granularity=granularity.value,
        start_date=start_date.isoformat(),
        end_date=end_date.isoformat(),
        count=len(buckets),
    )
    return buckets
