"""
Reorder service: stock against forecast usage.

For each ingredient with a usage forecast:

    daily_rate = projected_value / forecast_horizon_days
    days_until_stockout = current_stock / daily_rate

A suggestion is emitted when the ingredient runs out within the lookahead
window. Ingredients with no projected usage never run out and are skipped.
"""

from datetime import date, timedelta
from decimal import ROUND_FLOOR, Decimal
from typing import Dict, List, Optional, Sequence

import structlog

from config.settings import Settings, get_settings
from exceptions import InsufficientDataError, InvalidRangeError
from models.forecast import IngredientUsageForecast, ReorderReason, ReorderSuggestion
from models.profitability import RecipeCostSnapshot
from models.requests import AnalyticsDefaults, AnalyticsFilters
from models.series import HistoricalRecord
from services.forecast_service import ForecastService, get_forecast_service
from utils.decimal_utils import ZERO, round_up_quantity

logger = structlog.get_logger(__name__)


def calculate_reorder_quantity(
    daily_rate: Decimal,
    current_stock: Decimal,
    max_days_lookahead: int,
    horizon_days: int,
    safety_margin_cycles: Decimal = Decimal("1"),
) -> Decimal:
    """
    Quantity that covers the lookahead window plus a safety margin.

    The margin is expressed in forecast cycles (one cycle = horizon_days of
    usage). Never negative; rounded up to 0.01.
    """
    cover_days = Decimal(max_days_lookahead) + safety_margin_cycles * Decimal(horizon_days)
    needed = daily_rate * cover_days - max(current_stock, ZERO)
    return round_up_quantity(max(needed, ZERO))


def generate_reorder_suggestions(
    company_id: str,
    usage_forecasts: Sequence[IngredientUsageForecast],
    stock_levels: Dict[str, Decimal],
    max_days_lookahead: int,
    as_of: date,
    safety_margin_cycles: Decimal = Decimal("1"),
    lead_time_days: int = 0,
) -> List[ReorderSuggestion]:
    """
    Suggest reorders for ingredients that run out within the lookahead.

    Args:
        company_id: Tenant the forecasts belong to (used for logging)
        usage_forecasts: One forecast per ingredient
        stock_levels: ingredient_id → current stock; missing means 0
        max_days_lookahead: Inclusive window in days
        as_of: Reference date for stockout and order-by dates
        safety_margin_cycles: Extra forecast cycles to order beyond the window
        lead_time_days: Order this many days before the projected stockout

    Returns:
        Suggestions sorted by days until stockout, most urgent first

    Raises:
        InvalidRangeError: If max_days_lookahead is negative
    """
    if max_days_lookahead < 0:
        raise InvalidRangeError(
            "max_days_lookahead must not be negative",
            details={"max_days_lookahead": max_days_lookahead},
        )

    suggestions: List[ReorderSuggestion] = []
    skipped_no_usage = 0

    for usage in usage_forecasts:
        projected = usage.forecast.projected_value
        if projected <= 0:
            skipped_no_usage += 1
            continue

        daily_rate = projected / Decimal(usage.forecast_horizon_days)
        stock = stock_levels.get(usage.ingredient_id, ZERO)

        if stock <= 0:
            days_until = ZERO
            reason = ReorderReason.OUT_OF_STOCK
        else:
            days_until = stock / daily_rate
            reason = ReorderReason.LOW_STOCK_RELATIVE_TO_FORECAST

        if days_until > max_days_lookahead:
            continue

        stockout_date = as_of + timedelta(
            days=int(days_until.to_integral_value(rounding=ROUND_FLOOR))
        )
        order_by = max(as_of, stockout_date - timedelta(days=lead_time_days))

        suggestions.append(ReorderSuggestion(
            ingredient_id=usage.ingredient_id,
            recommended_quantity=calculate_reorder_quantity(
                daily_rate,
                stock,
                max_days_lookahead,
                usage.forecast_horizon_days,
                safety_margin_cycles,
            ),
            recommended_by_date=order_by,
            reason=reason,
            projected_stockout_date=stockout_date,
            current_stock=stock,
            daily_usage_rate=daily_rate,
            days_until_stockout=days_until,
            confidence=usage.forecast.confidence,
        ))

    suggestions.sort(key=lambda s: (s.days_until_stockout, s.ingredient_id))

    logger.info(
        "reorder_suggestions_generated",
        company_id=company_id,
        ingredients=len(usage_forecasts),
        suggestions=len(suggestions),
        skipped_no_usage=skipped_no_usage,
        max_days_lookahead=max_days_lookahead,
    )
    return suggestions


class ReorderService:
    """
    Reorder business logic.

    Forecasts ingredient usage, then compares it with current stock.
    """

    def __init__(
        self,
        forecast_service: Optional[ForecastService] = None,
        app_settings: Optional[Settings] = None,
    ):
        self.settings = app_settings or get_settings()
        self.forecast_service = forecast_service or get_forecast_service()
        self.defaults = AnalyticsDefaults.from_settings(self.settings)

    def suggest(
        self,
        filters: AnalyticsFilters,
        records: Sequence[HistoricalRecord],
        stock_levels: Dict[str, Decimal],
        snapshots: Sequence[RecipeCostSnapshot] = (),
    ) -> List[ReorderSuggestion]:
        """
        Forecast usage for the filtered ingredients and suggest reorders.

        as_of falls back to end_date, then to the latest record date.
        """
        usage_forecasts = self.forecast_service.usage_forecasts(filters, records, snapshots)

        as_of = filters.as_of or filters.end_date or max(
            (r.occurred_on for r in records if r.company_id == filters.company_id),
            default=None,
        )
        if as_of is None:
            raise InsufficientDataError(
                "No as_of date given and no records to infer one",
                details={"company_id": filters.company_id},
            )

        lookahead = filters.max_days_lookahead if filters.max_days_lookahead is not None \
            else self.defaults.max_days_lookahead

        return generate_reorder_suggestions(
            filters.company_id,
            usage_forecasts,
            stock_levels,
            lookahead,
            as_of,
            safety_margin_cycles=self.settings.reorder_safety_margin_cycles,
            lead_time_days=self.settings.reorder_lead_time_days,
        )


# Singleton instance
_reorder_service: Optional[ReorderService] = None


def get_reorder_service() -> ReorderService:
    """Get or create ReorderService instance."""
    global _reorder_service
    if _reorder_service is None:
        _reorder_service = ReorderService()
    return _reorder_service
