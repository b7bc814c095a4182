"""
Forecasting service: demand and usage projection.

Projects one bucket value `horizon` buckets ahead:

    projected = weighted_moving_average(window) + slope(window) × horizon

where window is the trailing N buckets, weights rise linearly towards the
most recent bucket and slope is an ordinary least squares fit on bucket
index. Series with too little non-zero history fall back to a flat
average with LOW confidence.
"""

from decimal import Decimal
from typing import Dict, List, Optional, Sequence

import structlog

from config.settings import Settings, get_settings
from exceptions import GranularityRequiredError, InsufficientDataError, UnitConversionError
from models.forecast import (
    ForecastBasis,
    ForecastResult,
    ForecastTarget,
    IngredientUsageForecast,
)
from models.profitability import RecipeCostSnapshot
from models.requests import AnalyticsDefaults, AnalyticsFilters
from models.series import EntityType, HistoricalRecord, RecordKind, Series
from models.trends import ConfidenceLevel, Metric, TrendDirection
from services.period_service import build_buckets, days_per_bucket
from services.series_service import (
    build_entity_series,
    build_series,
    metric_selector,
    resolve_date_range,
    select_records,
    validate_filters,
)
from utils.decimal_utils import ZERO, mean
from utils.units import convert_quantity

logger = structlog.get_logger(__name__)

DEFAULT_WINDOW_BUCKETS = 12
DEFAULT_MIN_NONZERO_BUCKETS = 3
DEFAULT_HIGH_CONFIDENCE_BUCKETS = 12
DEFAULT_SLOPE_EPSILON = Decimal("0.01")


# ===================
# CALCULATIONS
# ===================

def weighted_moving_average(values: Sequence[Decimal]) -> Decimal:
    """
    Linearly weighted average, oldest weight 1 and newest weight n.

    Returns 0 for an empty input.
    """
    if not values:
        return ZERO
    weighted = sum((Decimal(i + 1) * v for i, v in enumerate(values)), ZERO)
    total_weight = Decimal(len(values) * (len(values) + 1) // 2)
    return weighted / total_weight


def linear_trend_slope(values: Sequence[Decimal]) -> Decimal:
    """
    OLS slope of value against bucket index (0, 1, 2, ...).

    Returns 0 with fewer than 2 points.
    """
    n = len(values)
    if n < 2:
        return ZERO

    x_mean = Decimal(n - 1) / 2
    y_mean = sum(values, ZERO) / n

    numerator = ZERO
    denominator = ZERO
    for i, y in enumerate(values):
        dx = Decimal(i) - x_mean
        numerator += dx * (y - y_mean)
        denominator += dx * dx

    if denominator == 0:
        return ZERO
    return numerator / denominator


def classify_slope(
    slope: Decimal,
    level: Decimal,
    epsilon: Decimal = DEFAULT_SLOPE_EPSILON,
) -> TrendDirection:
    """
    Direction of a slope relative to the series level.

    A slope within ±epsilon × level per bucket is FLAT, so the threshold
    scales with the size of the numbers involved.
    """
    if level <= 0:
        return TrendDirection.FLAT

    relative = slope / level
    if relative > epsilon:
        return TrendDirection.UP
    if relative < -epsilon:
        return TrendDirection.DOWN
    return TrendDirection.FLAT


def _slope_is_stable(window: Sequence[Decimal], level: Decimal, epsilon: Decimal) -> bool:
    """Both half windows point the same way."""
    half = len(window) // 2
    if half < 2:
        return False
    first = classify_slope(linear_trend_slope(window[:half]), level, epsilon)
    second = classify_slope(linear_trend_slope(window[half:]), level, epsilon)
    return first == second


def forecast(
    series: Series,
    horizon_buckets: int,
    window_buckets: int = DEFAULT_WINDOW_BUCKETS,
    min_nonzero_buckets: int = DEFAULT_MIN_NONZERO_BUCKETS,
    high_confidence_buckets: int = DEFAULT_HIGH_CONFIDENCE_BUCKETS,
    slope_epsilon: Decimal = DEFAULT_SLOPE_EPSILON,
) -> ForecastResult:
    """
    Project a series forward.

    Args:
        series: Historical series (gapless, one point per bucket)
        horizon_buckets: How many buckets past the last one to project
        window_buckets: Trailing buckets used for average and slope
        min_nonzero_buckets: Below this, use the flat-average fallback
        high_confidence_buckets: Non-zero buckets required for HIGH
        slope_epsilon: Relative slope per bucket treated as flat

    Returns:
        ForecastResult with projected_value >= 0

    Raises:
        InsufficientDataError: If the series has no buckets at all
    """
    if not series.points:
        raise InsufficientDataError(
            "Cannot forecast an empty series",
            details={"entity_id": series.entity_id},
        )

    values = series.values
    nonzero_buckets = series.nonzero_count()

    if nonzero_buckets < min_nonzero_buckets:
        fallback = mean(v for v in values if v != 0) or ZERO
        return ForecastResult(
            entity_id=series.entity_id,
            projected_value=max(ZERO, fallback),
            trend_direction=TrendDirection.FLAT,
            confidence=ConfidenceLevel.LOW,
            basis=ForecastBasis(
                granularity=series.granularity,
                window_start=series.start_date,
                window_end=series.end_date,
                window_buckets=len(values),
                nonzero_buckets=nonzero_buckets,
                horizon_buckets=horizon_buckets,
            ),
        )

    window_points = series.points[-window_buckets:]
    window = [p.value for p in window_points]

    average = weighted_moving_average(window)
    slope = linear_trend_slope(window)
    projected = max(ZERO, average + slope * horizon_buckets)

    level = sum(window, ZERO) / len(window)
    direction = classify_slope(slope, level, slope_epsilon)

    if nonzero_buckets >= high_confidence_buckets and _slope_is_stable(window, level, slope_epsilon):
        confidence = ConfidenceLevel.HIGH
    else:
        confidence = ConfidenceLevel.MEDIUM

    return ForecastResult(
        entity_id=series.entity_id,
        projected_value=projected,
        trend_direction=direction,
        confidence=confidence,
        basis=ForecastBasis(
            granularity=series.granularity,
            window_start=window_points[0].bucket.period_start,
            window_end=window_points[-1].bucket.last_day,
            window_buckets=len(window),
            nonzero_buckets=nonzero_buckets,
            horizon_buckets=horizon_buckets,
            weighted_average=average,
            slope=slope,
        ),
    )


def expand_ingredient_usage(
    production_records: Sequence[HistoricalRecord],
    snapshots: Sequence[RecipeCostSnapshot],
) -> List[HistoricalRecord]:
    """
    Turn recipe production batches into ingredient usage records.

    Each batch uses line.quantity of every ingredient on the recipe,
    converted to the ingredient's pack unit. Lines whose unit cannot be
    converted are skipped and logged.
    """
    by_recipe: Dict[str, RecipeCostSnapshot] = {s.recipe_id: s for s in snapshots}
    usage: List[HistoricalRecord] = []

    for record in production_records:
        if record.kind != RecordKind.PRODUCTION:
            continue
        snapshot = by_recipe.get(record.entity_id)
        if snapshot is None:
            continue

        for line in snapshot.lines:
            try:
                per_batch = convert_quantity(
                    line.quantity,
                    line.unit,
                    line.pack_unit,
                    density_g_per_ml=line.density_g_per_ml,
                    ingredient_id=line.ingredient_id,
                )
            except UnitConversionError as e:
                logger.warning(
                    "usage_line_skipped",
                    recipe_id=snapshot.recipe_id,
                    ingredient_id=line.ingredient_id,
                    error=e.code,
                )
                continue

            usage.append(HistoricalRecord(
                entity_id=line.ingredient_id,
                entity_type=EntityType.INGREDIENT,
                kind=RecordKind.USAGE,
                occurred_on=record.occurred_on,
                quantity=per_batch * record.quantity,
                unit_cost=line.pack_price / line.pack_quantity,
                company_id=record.company_id,
            ))

    return usage


# ===================
# SERVICE
# ===================

class ForecastService:
    """
    Forecast business logic.

    Stateless apart from settings; safe to share between requests.
    """

    def __init__(self, app_settings: Optional[Settings] = None):
        self.settings = app_settings or get_settings()
        self.defaults = AnalyticsDefaults.from_settings(self.settings)

    def forecast_series(self, series: Series, horizon_buckets: Optional[int] = None) -> ForecastResult:
        """Forecast one series using configured thresholds."""
        return forecast(
            series,
            horizon_buckets if horizon_buckets is not None else self.defaults.horizon_buckets,
            window_buckets=self.settings.forecast_window_buckets,
            min_nonzero_buckets=self.settings.forecast_min_nonzero_buckets,
            high_confidence_buckets=self.settings.forecast_high_confidence_buckets,
            slope_epsilon=self.settings.trend_slope_epsilon,
        )

    def _target_records(
        self,
        filters: AnalyticsFilters,
        records: Sequence[HistoricalRecord],
        target: ForecastTarget,
        snapshots: Sequence[RecipeCostSnapshot],
    ) -> List[HistoricalRecord]:
        if target == ForecastTarget.RECIPE_SALES:
            return [
                r for r in select_records(records, filters, RecordKind.SALE)
                if r.entity_type == EntityType.RECIPE
            ]

        usage = [
            r for r in select_records(records, filters, RecordKind.USAGE)
            if r.entity_type == EntityType.INGREDIENT
        ]
        if usage or not snapshots:
            return usage

        # No usage recorded directly: derive it from production batches
        production = [
            r for r in select_records(records, filters.model_copy(update={"ingredient_ids": None}),
                                      RecordKind.PRODUCTION)
            if r.entity_type == EntityType.RECIPE
        ]
        company_snapshots = [s for s in snapshots if s.company_id == filters.company_id]
        derived = expand_ingredient_usage(production, company_snapshots)
        logger.info(
            "usage_derived_from_production",
            company_id=filters.company_id,
            production_records=len(production),
            usage_records=len(derived),
        )
        return select_records(derived, filters, RecordKind.USAGE)

    def forecast_entities(
        self,
        filters: AnalyticsFilters,
        records: Sequence[HistoricalRecord],
        snapshots: Sequence[RecipeCostSnapshot] = (),
    ) -> List[ForecastResult]:
        """
        Forecast every ingredient's usage or every recipe's sales.

        Entities named in the allow-list but without records still get a
        (zero, LOW confidence) forecast.

        Args:
            filters: Request filters; granularity is required
            records: Historical records for the company
            snapshots: Recipe compositions, used to derive usage from production

        Returns:
            List of ForecastResult sorted by projected value, highest first

        Raises:
            GranularityRequiredError: If filters.granularity is missing
            InvalidRangeError: If the range is inverted or an allow-list is empty
        """
        if filters.granularity is None:
            raise GranularityRequiredError("forecast")
        validate_filters(filters, self.defaults.max_batch_entities)

        target = filters.forecast_target or self.defaults.forecast_target
        horizon = filters.horizon_buckets if filters.horizon_buckets is not None \
            else self.defaults.horizon_buckets

        target_records = self._target_records(filters, records, target, snapshots)
        start, end = resolve_date_range(filters, target_records, self.defaults.lookback_days)
        buckets = build_buckets(start, end, filters.granularity)

        metric = Metric.SALES_VOLUME if target == ForecastTarget.RECIPE_SALES \
            else Metric.INGREDIENT_USAGE
        series_by_entity = build_entity_series(target_records, buckets, metric_selector(metric))

        allow_list = filters.recipe_ids if target == ForecastTarget.RECIPE_SALES \
            else filters.ingredient_ids
        for entity_id in allow_list or []:
            if entity_id not in series_by_entity:
                series_by_entity[entity_id] = build_series([], buckets, metric_selector(metric),
                                                           entity_id=entity_id)

        logger.info(
            "forecasting_entities",
            company_id=filters.company_id,
            target=target.value,
            granularity=filters.granularity.value,
            start_date=start.isoformat(),
            end_date=end.isoformat(),
            entities=len(series_by_entity),
        )

        results = [self.forecast_series(s, horizon) for s in series_by_entity.values()]
        results.sort(key=lambda f: (-f.projected_value, f.entity_id or ""))

        logger.info("forecasts_calculated", count=len(results))
        return results

    def usage_forecasts(
        self,
        filters: AnalyticsFilters,
        records: Sequence[HistoricalRecord],
        snapshots: Sequence[RecipeCostSnapshot] = (),
    ) -> List[IngredientUsageForecast]:
        """Ingredient usage forecasts paired with the days each projection covers."""
        usage_filters = filters.model_copy(
            update={"forecast_target": ForecastTarget.INGREDIENT_USAGE}
        )
        forecasts = self.forecast_entities(usage_filters, records, snapshots)
        horizon_days = days_per_bucket(filters.granularity)
        return [
            IngredientUsageForecast(
                ingredient_id=f.entity_id,
                forecast=f,
                forecast_horizon_days=horizon_days,
            )
            for f in forecasts
            if f.entity_id is not None
        ]


# Singleton instance
_forecast_service: Optional[ForecastService] = None


def get_forecast_service() -> ForecastService:
    """Get or create ForecastService instance."""
    global _forecast_service
    if _forecast_service is None:
        _forecast_service = ForecastService()
    return _forecast_service
