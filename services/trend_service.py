"""
Trend calculation service.

Period-over-period change for revenue, production volume and ingredient
cost exposure, with an overall direction and volatility summary.
"""

from datetime import date
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple

import structlog

from config.settings import Settings, get_settings
from exceptions import GranularityRequiredError
from models.profitability import RecipeCostSnapshot
from models.requests import AnalyticsDefaults, AnalyticsFilters
from models.series import EntityType, HistoricalRecord, RecordKind, Series
from models.trends import Metric, TrendAnalysis, TrendDirection, TrendPoint
from services.forecast_service import expand_ingredient_usage
from services.series_service import (
    build_metric_series,
    resolve_date_range,
    select_metric_records,
    select_records,
    validate_filters,
)
from utils.decimal_utils import mean, percent_change, population_std_dev

logger = structlog.get_logger(__name__)


def build_trend_points(series: Series) -> List[TrendPoint]:
    """
    Turn a series into trend points.

    The first point has no baseline; a point after a zero bucket has a
    change but no percent change.
    """
    points: List[TrendPoint] = []
    previous = None

    for point in series.points:
        points.append(TrendPoint(
            bucket=point.bucket,
            value=point.value,
            change=point.value - previous if previous is not None else None,
            percent_change_from_previous=percent_change(point.value, previous),
        ))
        previous = point.value

    return points


def classify_trend(
    average_change_pct: Optional[Decimal], threshold: Decimal = Decimal("5")
) -> TrendDirection:
    """
    Direction from the average % change.

    - UP: average > threshold
    - DOWN: average < -threshold
    - FLAT: otherwise, or no defined changes
    """
    if average_change_pct is None:
        return TrendDirection.FLAT
    if average_change_pct > threshold:
        return TrendDirection.UP
    if average_change_pct < -threshold:
        return TrendDirection.DOWN
    return TrendDirection.FLAT


class TrendService:
    """
    Trend business logic.

    Every analysis requires an explicit granularity.
    """

    def __init__(self, app_settings: Optional[Settings] = None):
        self.settings = app_settings or get_settings()
        self.defaults = AnalyticsDefaults.from_settings(self.settings)

    # ==================
    # SHARED
    # ==================

    def _scoped(
        self,
        filters: AnalyticsFilters,
        records: Sequence[HistoricalRecord],
        metric: Metric,
    ) -> List[HistoricalRecord]:
        return select_metric_records(records, filters, metric)

    def _range(
        self,
        filters: AnalyticsFilters,
        records: Sequence[HistoricalRecord],
        analysis: str,
    ) -> Tuple[date, date]:
        if filters.granularity is None:
            raise GranularityRequiredError(analysis)
        validate_filters(filters, self.defaults.max_batch_entities)
        return resolve_date_range(filters, records, self.defaults.lookback_days)

    def analyze_metric(
        self,
        filters: AnalyticsFilters,
        records: Sequence[HistoricalRecord],
        metric: Metric,
    ) -> TrendAnalysis:
        """
        Trend of any metric over the filtered records.

        Raises:
            GranularityRequiredError: If filters.granularity is missing
            InvalidRangeError: If the range is inverted
        """
        scoped = self._scoped(filters, records, metric)
        return self._analyze(filters, scoped, metric)

    def _analyze(
        self,
        filters: AnalyticsFilters,
        scoped: Sequence[HistoricalRecord],
        metric: Metric,
    ) -> TrendAnalysis:
        start, end = self._range(filters, scoped, f"{metric.value} trends")

        series = build_metric_series(scoped, metric, start, end, filters.granularity)
        points = build_trend_points(series)

        changes = [
            p.percent_change_from_previous for p in points
            if p.percent_change_from_previous is not None
        ]
        average_change = mean(changes)
        direction = classify_trend(average_change, self.settings.trend_change_threshold_pct)

        logger.info(
            "trend_calculated",
            company_id=filters.company_id,
            metric=metric.value,
            granularity=filters.granularity.value,
            points=len(points),
            direction=direction.value,
        )

        return TrendAnalysis(
            metric=metric,
            granularity=filters.granularity,
            start_date=start,
            end_date=end,
            points=points,
            direction=direction,
            average_change_percent=average_change,
            volatility=population_std_dev(changes),
        )

    # ==================
    # ANALYSES
    # ==================

    def analyze_revenue_trends(
        self,
        filters: AnalyticsFilters,
        records: Sequence[HistoricalRecord],
    ) -> TrendAnalysis:
        """Revenue (quantity × unit_revenue of sales) per bucket."""
        return self.analyze_metric(filters, records, Metric.REVENUE)

    def analyze_production_trends(
        self,
        filters: AnalyticsFilters,
        records: Sequence[HistoricalRecord],
    ) -> TrendAnalysis:
        """Batches produced per bucket."""
        return self.analyze_metric(filters, records, Metric.PRODUCTION)

    def analyze_ingredient_cost_trends(
        self,
        filters: AnalyticsFilters,
        records: Sequence[HistoricalRecord],
        snapshots: Sequence[RecipeCostSnapshot] = (),
    ) -> TrendAnalysis:
        """
        Ingredient spend (usage × unit_cost) per bucket.

        Without recorded usage, usage is derived from production batches
        and the current recipe compositions.
        """
        scoped = self._scoped(filters, records, Metric.INGREDIENT_COST)
        if not scoped and snapshots:
            production = [
                r for r in select_records(
                    records,
                    filters.model_copy(update={"ingredient_ids": None}),
                    RecordKind.PRODUCTION,
                )
                if r.entity_type == EntityType.RECIPE
            ]
            derived = expand_ingredient_usage(
                production, [s for s in snapshots if s.company_id == filters.company_id]
            )
            scoped = self._scoped(filters, derived, Metric.INGREDIENT_COST)

        return self._analyze(filters, scoped, Metric.INGREDIENT_COST)


# Singleton instance
_trend_service: Optional[TrendService] = None


def get_trend_service() -> TrendService:
    """Get singleton instance of TrendService."""
    global _trend_service
    if _trend_service is None:
        _trend_service = TrendService()
    return _trend_service
