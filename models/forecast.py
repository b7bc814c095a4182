"""
Forecast and reorder models.
"""

from datetime import date
from enum import Enum
from typing import Optional

from pydantic import Field

from models.base import BaseSchema, Measure
from models.series import Granularity
from models.trends import ConfidenceLevel, TrendDirection


class ForecastTarget(str, Enum):
    """What a forecast request projects."""

    INGREDIENT_USAGE = "ingredient_usage"
    RECIPE_SALES = "recipe_sales"


class ReorderReason(str, Enum):
    """Machine-checkable reason codes."""

    LOW_STOCK_RELATIVE_TO_FORECAST = "low_stock_relative_to_forecast"
    OUT_OF_STOCK = "out_of_stock"


class ForecastBasis(BaseSchema):
    """The historical window a forecast was computed from."""

    granularity: Granularity
    window_start: Optional[date] = None
    window_end: Optional[date] = None
    window_buckets: int = Field(..., description="Buckets in the trailing window")
    nonzero_buckets: int = Field(..., description="Non-zero buckets in the whole series")
    horizon_buckets: int
    weighted_average: Optional[Measure] = None
    slope: Optional[Measure] = Field(None, description="OLS slope per bucket")


class ForecastResult(BaseSchema):
    """Forward projection for one entity."""

    entity_id: Optional[str] = None
    projected_value: Measure = Field(..., ge=0, description="Projected value per bucket")
    trend_direction: TrendDirection
    confidence: ConfidenceLevel
    basis: ForecastBasis


class IngredientUsageForecast(BaseSchema):
    """An ingredient's usage forecast and the days its projection covers."""

    ingredient_id: str
    forecast: ForecastResult
    forecast_horizon_days: int = Field(
        ..., gt=0, description="Days of usage represented by forecast.projected_value"
    )


class ReorderSuggestion(BaseSchema):
    """Recommendation to reorder an ingredient before it runs out."""

    ingredient_id: str
    recommended_quantity: Measure
    recommended_by_date: date
    reason: ReorderReason
    projected_stockout_date: date

    current_stock: Measure
    daily_usage_rate: Measure
    days_until_stockout: Measure
    confidence: ConfidenceLevel
