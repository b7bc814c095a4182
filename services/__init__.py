"""
Business logic services.

Each service handles one analysis area; AnalyticsEngine dispatches to them.
"""

from services.forecast_service import ForecastService, get_forecast_service
from services.reorder_service import ReorderService, get_reorder_service
from services.profitability_service import ProfitabilityService, get_profitability_service
from services.trend_service import TrendService, get_trend_service
from services.seasonality_service import SeasonalityService, get_seasonality_service
from services.yoy_service import YoYService, get_yoy_service
from services.analytics_service import AnalyticsEngine, get_analytics_engine

__all__ = [
    "ForecastService",
    "get_forecast_service",
    "ReorderService",
    "get_reorder_service",
    "ProfitabilityService",
    "get_profitability_service",
    "TrendService",
    "get_trend_service",
    "SeasonalityService",
    "get_seasonality_service",
    "YoYService",
    "get_yoy_service",
    "AnalyticsEngine",
    "get_analytics_engine",
]
