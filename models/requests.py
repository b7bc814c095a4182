"""
Engine request and response models.

AnalyticsFilters is the uniform filter surface. AnalyticsDataset carries
the already-fetched, already-scoped inputs. AnalyticsDefaults is the one
place caller-side fallbacks live.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from config.settings import Settings
from models.base import BaseSchema
from models.forecast import ForecastTarget
from models.profitability import RecipeCostSnapshot
from models.series import Granularity, HistoricalRecord
from models.trends import CycleType, Metric


class AnalysisType(str, Enum):
    """Every output the engine can produce."""

    FORECAST = "forecast"
    REORDER = "reorder"
    RECIPE_PROFITABILITY = "recipe_profitability"
    CATEGORY_PROFITABILITY = "category_profitability"
    TOP_RECIPES = "top_recipes"
    RECIPES_NEEDING_ATTENTION = "recipes_needing_attention"
    REVENUE_TRENDS = "revenue_trends"
    PRODUCTION_TRENDS = "production_trends"
    INGREDIENT_COST_TRENDS = "ingredient_cost_trends"
    SEASONALITY = "seasonality"
    YEAR_OVER_YEAR = "year_over_year"


class AnalyticsFilters(BaseSchema):
    """Request filters, already authorized and tenant-scoped by the caller."""

    company_id: str = Field(..., min_length=1)

    # Range
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    as_of: Optional[date] = Field(
        None, description="Reference 'today' for lookbacks and reorder dates"
    )

    # Allow-lists
    recipe_ids: Optional[List[str]] = None
    ingredient_ids: Optional[List[str]] = None
    category_id: Optional[str] = None

    # Per-analysis options
    granularity: Optional[Granularity] = None
    horizon_buckets: Optional[int] = Field(None, ge=0, le=365)
    forecast_target: Optional[ForecastTarget] = None
    max_days_lookahead: Optional[int] = Field(None, ge=0, le=365)
    limit: Optional[int] = Field(None, ge=1, le=500)
    max_food_cost_percent: Optional[Decimal] = Field(None, ge=0)
    year: Optional[int] = Field(None, ge=1900, le=9999)
    metric: Optional[Metric] = None
    cycle: Optional[CycleType] = None


class AnalyticsDefaults(BaseSchema):
    """Caller-side defaults applied when a filter is absent."""

    lookback_days: int = 90
    forecast_target: ForecastTarget = ForecastTarget.INGREDIENT_USAGE
    horizon_buckets: int = 1
    max_days_lookahead: int = 7
    top_recipes_limit: int = 10
    max_food_cost_percent: Decimal = Decimal("35")
    max_batch_entities: int = 500

    @classmethod
    def from_settings(cls, app_settings: Settings) -> "AnalyticsDefaults":
        """Build defaults from engine settings."""
        return cls(
            lookback_days=app_settings.default_lookback_days,
            forecast_target=ForecastTarget(app_settings.default_forecast_target),
            horizon_buckets=app_settings.forecast_horizon_buckets,
            max_days_lookahead=app_settings.reorder_max_days_lookahead,
            top_recipes_limit=app_settings.default_top_recipes_limit,
            max_food_cost_percent=app_settings.default_max_food_cost_percent,
            max_batch_entities=app_settings.max_batch_entities,
        )


class AnalyticsDataset(BaseSchema):
    """Inputs fetched by the caller before the engine runs."""

    records: List[HistoricalRecord] = Field(default_factory=list)
    stock_levels: Dict[str, Decimal] = Field(
        default_factory=dict, description="ingredient_id → current stock quantity"
    )
    recipe_snapshots: List[RecipeCostSnapshot] = Field(default_factory=list)


class AnalysisRequest(BaseSchema):
    """One engine call."""

    analysis_type: AnalysisType
    filters: AnalyticsFilters


class AnalysisResponse(BaseSchema):
    """Typed result, or a typed failure payload from AppError.to_dict()."""

    analysis_type: AnalysisType
    success: bool
    data: Any = None
    error: Optional[Dict[str, Any]] = None

    def to_dict(self) -> dict:
        """JSON-safe dict; Decimals become floats here and nowhere else."""
        return {
            "analysis_type": self.analysis_type.value,
            "success": self.success,
            "data": _dump(self.data),
            "error": self.error,
        }


def _dump(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, list):
        return [_dump(item) for item in value]
    return value
