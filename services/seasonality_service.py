"""
Seasonality service: recurring demand by weekday and month.

Buckets a long range of history, groups bucket values by their position
in the cycle and averages them. A cycle that is not fully covered by the
range yields no patterns at all.
"""

from collections import defaultdict
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, List, Optional, Sequence

import structlog

from config.settings import Settings, get_settings
from models.requests import AnalyticsDefaults, AnalyticsFilters
from models.series import Granularity, HistoricalRecord, Series
from models.trends import CycleType, Metric, SeasonalPattern, SeasonalSignal
from services.period_service import shift_years
from services.series_service import (
    build_metric_series,
    select_metric_records,
    validate_filters,
)
from utils.decimal_utils import mean, safe_divide

logger = structlog.get_logger(__name__)

WEEKDAY_NAMES = [
    "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday",
]

MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]

CYCLE_GRANULARITY = {
    CycleType.DAY_OF_WEEK: Granularity.DAILY,
    CycleType.MONTH_OF_YEAR: Granularity.MONTHLY,
}


def covers_full_cycle(start_date: date, end_date: date, cycle: CycleType) -> bool:
    """At least 7 days for day-of-week, at least one year for month-of-year."""
    if cycle == CycleType.DAY_OF_WEEK:
        return (end_date - start_date).days + 1 >= 7
    return end_date >= shift_years(start_date, 1) - timedelta(days=1)


def _position(day: date, cycle: CycleType) -> int:
    if cycle == CycleType.DAY_OF_WEEK:
        return day.weekday()
    return day.month


def _position_name(index: int, cycle: CycleType) -> str:
    if cycle == CycleType.DAY_OF_WEEK:
        return WEEKDAY_NAMES[index]
    return MONTH_NAMES[index - 1]


def classify_multiplier(
    multiplier: Optional[Decimal],
    peak: Decimal = Decimal("1.2"),
    trough: Decimal = Decimal("0.8"),
) -> SeasonalSignal:
    if multiplier is None:
        return SeasonalSignal.NORMAL
    if multiplier >= peak:
        return SeasonalSignal.PEAK
    if multiplier <= trough:
        return SeasonalSignal.TROUGH
    return SeasonalSignal.NORMAL


def patterns_from_series(
    series: Series,
    cycle: CycleType,
    min_sample_size: int = 2,
    peak_multiplier: Decimal = Decimal("1.2"),
    trough_multiplier: Decimal = Decimal("0.8"),
) -> List[SeasonalPattern]:
    """
    Average series values by cyclic position.

    Positions are keyed on each bucket's start date, so a clipped first
    or last month still counts towards its month.
    """
    grouped: Dict[int, List[Decimal]] = defaultdict(list)
    for point in series.points:
        grouped[_position(point.bucket.period_start, cycle)].append(point.value)

    overall = mean(series.values)

    patterns = []
    for index in sorted(grouped):
        values = grouped[index]
        average = mean(values)
        multiplier = safe_divide(average, overall) if overall is not None else None
        patterns.append(SeasonalPattern(
            cycle=cycle,
            cycle_position=_position_name(index, cycle),
            position_index=index,
            average_value=average,
            sample_size=len(values),
            is_reliable=len(values) >= min_sample_size,
            demand_multiplier=multiplier,
            signal=classify_multiplier(multiplier, peak_multiplier, trough_multiplier),
        ))
    return patterns


class SeasonalityService:
    """Seasonality business logic."""

    def __init__(self, app_settings: Optional[Settings] = None):
        self.settings = app_settings or get_settings()
        self.defaults = AnalyticsDefaults.from_settings(self.settings)

    def detect_seasonal_patterns(
        self,
        company_id: str,
        records: Sequence[HistoricalRecord],
        recipe_ids: Optional[List[str]] = None,
        cycle: Optional[CycleType] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        metric: Metric = Metric.SALES_VOLUME,
    ) -> List[SeasonalPattern]:
        """
        Detect recurring patterns in recipe demand.

        Args:
            company_id: Tenant to analyse
            records: Historical records
            recipe_ids: Optional allow-list
            cycle: One cycle, or both when None
            start_date: Range start; defaults to the earliest record
            end_date: Range end; defaults to the latest record
            metric: Recipe metric to analyse (sales volume by default)

        Returns:
            Patterns ordered by cycle, then position. Empty for any cycle the
            range does not fully cover.
        """
        filters = AnalyticsFilters(
            company_id=company_id,
            recipe_ids=recipe_ids,
            start_date=start_date,
            end_date=end_date,
        )
        validate_filters(filters, self.defaults.max_batch_entities)

        scoped = select_metric_records(records, filters, metric)
        if not scoped and (start_date is None or end_date is None):
            logger.info("seasonality_no_data", company_id=company_id)
            return []

        start = start_date or min(r.occurred_on for r in scoped)
        end = end_date or max(r.occurred_on for r in scoped)

        cycles = [cycle] if cycle is not None else list(CycleType)
        patterns: List[SeasonalPattern] = []

        for current in cycles:
            if not covers_full_cycle(start, end, current):
                logger.info(
                    "seasonality_cycle_not_covered",
                    company_id=company_id,
                    cycle=current.value,
                    start_date=start.isoformat(),
                    end_date=end.isoformat(),
                )
                continue

            series = build_metric_series(
                scoped, metric, start, end, CYCLE_GRANULARITY[current]
            )
            patterns.extend(patterns_from_series(
                series,
                current,
                min_sample_size=self.settings.seasonal_min_sample_size,
                peak_multiplier=self.settings.seasonal_peak_multiplier,
                trough_multiplier=self.settings.seasonal_trough_multiplier,
            ))

        logger.info(
            "seasonal_patterns_detected",
            company_id=company_id,
            patterns=len(patterns),
            unreliable=sum(1 for p in patterns if not p.is_reliable),
        )
        return patterns


# Singleton instance
_seasonality_service: Optional[SeasonalityService] = None


def get_seasonality_service() -> SeasonalityService:
    """Get or create SeasonalityService instance."""
    global _seasonality_service
    if _seasonality_service is None:
        _seasonality_service = SeasonalityService()
    return _seasonality_service
