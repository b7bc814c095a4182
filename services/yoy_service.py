"""
Year-over-year comparison service.

Compares a calendar-year window (optionally year-to-date) with the same
window one year earlier, month by month.
"""

from datetime import date
from typing import List, Optional, Sequence, Tuple

import structlog

from config.settings import Settings, get_settings
from exceptions import InvalidRangeError
from models.requests import AnalyticsDefaults, AnalyticsFilters
from models.series import Granularity, HistoricalRecord, Series
from models.trends import DateWindow, Metric, PeriodComparison, YoYComparison
from services.period_service import shift_years
from services.series_service import build_metric_series, select_metric_records, validate_filters
from utils.decimal_utils import percent_change

logger = structlog.get_logger(__name__)


def year_windows(year: int, through: Optional[date] = None) -> Tuple[DateWindow, DateWindow]:
    """
    Current and prior windows for a year.

    Args:
        year: Calendar year being compared
        through: Last day to include (year-to-date); must fall inside year

    Raises:
        InvalidRangeError: If through is outside the year
    """
    start = date(year, 1, 1)
    end = date(year, 12, 31)

    if through is not None:
        if not start <= through <= end:
            raise InvalidRangeError(
                f"through must fall within {year}",
                start_date=start,
                end_date=through,
            )
        end = through

    current = DateWindow(start_date=start, end_date=end)
    prior = DateWindow(start_date=shift_years(start, -1), end_date=shift_years(end, -1))
    return current, prior


def align_series(current: Series, prior: Series) -> List[PeriodComparison]:
    """Pair buckets position by position."""
    comparisons = []
    for position, (cur, pri) in enumerate(zip(current.points, prior.points), start=1):
        comparisons.append(PeriodComparison(
            position=position,
            current_bucket=cur.bucket,
            prior_bucket=pri.bucket,
            current_value=cur.value,
            prior_value=pri.value,
            change=cur.value - pri.value,
            percent_change=percent_change(cur.value, pri.value),
        ))
    return comparisons


class YoYService:
    """Year-over-year business logic."""

    def __init__(self, app_settings: Optional[Settings] = None):
        self.settings = app_settings or get_settings()
        self.defaults = AnalyticsDefaults.from_settings(self.settings)

    def compare_year_over_year(
        self,
        company_id: str,
        metric: Metric,
        year: int,
        records: Sequence[HistoricalRecord],
        through: Optional[date] = None,
        recipe_ids: Optional[List[str]] = None,
        ingredient_ids: Optional[List[str]] = None,
        category_id: Optional[str] = None,
    ) -> YoYComparison:
        """
        Compare a metric for year against the year before.

        A prior year with no data is not an error: prior_value is 0 and
        percent_change is None.

        Returns:
            YoYComparison with one breakdown entry per month
        """
        filters = AnalyticsFilters(
            company_id=company_id,
            recipe_ids=recipe_ids,
            ingredient_ids=ingredient_ids,
            category_id=category_id,
        )
        validate_filters(filters, self.defaults.max_batch_entities)

        current_window, prior_window = year_windows(year, through)
        scoped = select_metric_records(records, filters, metric)

        current = build_metric_series(
            scoped, metric, current_window.start_date, current_window.end_date, Granularity.MONTHLY
        )
        prior = build_metric_series(
            scoped, metric, prior_window.start_date, prior_window.end_date, Granularity.MONTHLY
        )

        current_value = current.total
        prior_value = prior.total

        logger.info(
            "yoy_compared",
            company_id=company_id,
            metric=metric.value,
            year=year,
            through=through.isoformat() if through else None,
            has_prior_data=prior_value != 0,
        )

        return YoYComparison(
            metric=metric,
            year=year,
            current_period=current_window,
            prior_period=prior_window,
            current_value=current_value,
            prior_value=prior_value,
            percent_change=percent_change(current_value, prior_value),
            breakdown=align_series(current, prior),
        )


# Singleton instance
_yoy_service: Optional[YoYService] = None


def get_yoy_service() -> YoYService:
    """Get or create YoYService instance."""
    global _yoy_service
    if _yoy_service is None:
        _yoy_service = YoYService()
    return _yoy_service
