"""
Pydantic models for engine inputs and outputs.
"""

from models.base import (
    BaseSchema,
    FrozenSchema,
    Money,
    Measure,
)
from models.series import (
    Granularity,
    EntityType,
    RecordKind,
    HistoricalRecord,
    PeriodBucket,
    SeriesPoint,
    Series,
)
from models.trends import (
    TrendDirection,
    ConfidenceLevel,
    Metric,
    CycleType,
    SeasonalSignal,
    TrendPoint,
    TrendAnalysis,
    SeasonalPattern,
    DateWindow,
    PeriodComparison,
    YoYComparison,
)
from models.forecast import (
    ForecastTarget,
    ReorderReason,
    ForecastBasis,
    ForecastResult,
    IngredientUsageForecast,
    ReorderSuggestion,
)
from models.profitability import (
    RecipeIngredientLine,
    RecipeCostSnapshot,
    ProfitabilityMetric,
    CategoryProfitability,
)
from models.requests import (
    AnalysisType,
    AnalyticsFilters,
    AnalyticsDefaults,
    AnalyticsDataset,
    AnalysisRequest,
    AnalysisResponse,
)

__all__ = [
    # Base
    "BaseSchema",
    "FrozenSchema",
    "Money",
    "Measure",

    # Series
    "Granularity",
    "EntityType",
    "RecordKind",
    "HistoricalRecord",
    "PeriodBucket",
    "SeriesPoint",
    "Series",

    # Trends
    "TrendDirection",
    "ConfidenceLevel",
    "Metric",
    "CycleType",
    "SeasonalSignal",
    "TrendPoint",
    "TrendAnalysis",
    "SeasonalPattern",
    "DateWindow",
    "PeriodComparison",
    "YoYComparison",

    # Forecast
    "ForecastTarget",
    "ReorderReason",
    "ForecastBasis",
    "ForecastResult",
    "IngredientUsageForecast",
    "ReorderSuggestion",

    # Profitability
    "RecipeIngredientLine",
    "RecipeCostSnapshot",
    "ProfitabilityMetric",
    "CategoryProfitability",

    # Requests
    "AnalysisType",
    "AnalyticsFilters",
    "AnalyticsDefaults",
    "AnalyticsDataset",
    "AnalysisRequest",
    "AnalysisResponse",
]
