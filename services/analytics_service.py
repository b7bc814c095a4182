"""
Analytics engine: single entry point for every analysis.

Dispatches an AnalysisRequest to the service that computes it and wraps
the result in an AnalysisResponse. Engine errors (AppError) become typed
failure payloads so batch callers can carry on; anything else propagates.
"""

from typing import Any, Callable, Dict, List, Optional, Sequence

import structlog

from config.settings import Settings, get_settings
from exceptions import AppError, UnsupportedAnalysisError, ValidationError
from models.requests import (
    AnalysisRequest,
    AnalysisResponse,
    AnalysisType,
    AnalyticsDataset,
    AnalyticsFilters,
)
from models.trends import Metric
from services.forecast_service import ForecastService
from services.profitability_service import ProfitabilityService
from services.reorder_service import ReorderService
from services.seasonality_service import SeasonalityService
from services.trend_service import TrendService
from services.yoy_service import YoYService

logger = structlog.get_logger(__name__)

Handler = Callable[[AnalyticsFilters, AnalyticsDataset], Any]


class AnalyticsEngine:
    """
    Analysis dispatch.

    Holds one instance of each service, all sharing the same settings.
    """

    def __init__(self, app_settings: Optional[Settings] = None):
        self.settings = app_settings or get_settings()

        self.forecast_service = ForecastService(self.settings)
        self.reorder_service = ReorderService(self.forecast_service, self.settings)
        self.profitability_service = ProfitabilityService(self.settings)
        self.trend_service = TrendService(self.settings)
        self.seasonality_service = SeasonalityService(self.settings)
        self.yoy_service = YoYService(self.settings)

        self.handlers: Dict[AnalysisType, Handler] = {
            AnalysisType.FORECAST: self._forecast,
            AnalysisType.REORDER: self._reorder,
            AnalysisType.RECIPE_PROFITABILITY: self._recipe_profitability,
            AnalysisType.CATEGORY_PROFITABILITY: self._category_profitability,
            AnalysisType.TOP_RECIPES: self._top_recipes,
            AnalysisType.RECIPES_NEEDING_ATTENTION: self._recipes_needing_attention,
            AnalysisType.REVENUE_TRENDS: self._revenue_trends,
            AnalysisType.PRODUCTION_TRENDS: self._production_trends,
            AnalysisType.INGREDIENT_COST_TRENDS: self._ingredient_cost_trends,
            AnalysisType.SEASONALITY: self._seasonality,
            AnalysisType.YEAR_OVER_YEAR: self._year_over_year,
        }

        missing = [t for t in AnalysisType if t not in self.handlers]
        if missing:
            raise UnsupportedAnalysisError(missing[0].value)

    # ===================
    # ENTRY POINTS
    # ===================

    def run(self, request: AnalysisRequest, dataset: AnalyticsDataset) -> AnalysisResponse:
        """
        Run one analysis.

        Returns:
            AnalysisResponse with data on success, or the AppError payload
        """
        analysis_type = request.analysis_type
        logger.info(
            "analysis_started",
            analysis_type=analysis_type.value,
            company_id=request.filters.company_id,
            records=len(dataset.records),
        )

        try:
            handler = self.handlers.get(analysis_type)
            if handler is None:
                raise UnsupportedAnalysisError(analysis_type.value)
            data = handler(request.filters, dataset)
        except AppError as e:
            logger.warning(
                "analysis_failed",
                analysis_type=analysis_type.value,
                company_id=request.filters.company_id,
                code=e.code,
                error=e.message,
            )
            return AnalysisResponse(
                analysis_type=analysis_type,
                success=False,
                error=e.to_dict(),
            )

        logger.info(
            "analysis_completed",
            analysis_type=analysis_type.value,
            company_id=request.filters.company_id,
        )
        return AnalysisResponse(analysis_type=analysis_type, success=True, data=data)

    def run_batch(
        self,
        requests: Sequence[AnalysisRequest],
        dataset: AnalyticsDataset,
    ) -> List[AnalysisResponse]:
        """Run several analyses over the same dataset; failures do not stop the batch."""
        return [self.run(request, dataset) for request in requests]

    # ===================
    # HANDLERS
    # ===================

    def _forecast(self, filters: AnalyticsFilters, dataset: AnalyticsDataset):
        return self.forecast_service.forecast_entities(
            filters, dataset.records, dataset.recipe_snapshots
        )

    def _reorder(self, filters: AnalyticsFilters, dataset: AnalyticsDataset):
        return self.reorder_service.suggest(
            filters, dataset.records, dataset.stock_levels, dataset.recipe_snapshots
        )

    def _recipe_profitability(self, filters: AnalyticsFilters, dataset: AnalyticsDataset):
        return self.profitability_service.calculate_recipe_profitability(
            filters, dataset.recipe_snapshots, dataset.records
        )

    def _category_profitability(self, filters: AnalyticsFilters, dataset: AnalyticsDataset):
        return self.profitability_service.calculate_category_profitability(
            filters, dataset.recipe_snapshots, dataset.records
        )

    def _top_recipes(self, filters: AnalyticsFilters, dataset: AnalyticsDataset):
        return self.profitability_service.top_recipes(
            filters, dataset.recipe_snapshots, dataset.records
        )

    def _recipes_needing_attention(self, filters: AnalyticsFilters, dataset: AnalyticsDataset):
        return self.profitability_service.recipes_needing_attention(
            filters, dataset.recipe_snapshots, dataset.records
        )

    def _revenue_trends(self, filters: AnalyticsFilters, dataset: AnalyticsDataset):
        return self.trend_service.analyze_revenue_trends(filters, dataset.records)

    def _production_trends(self, filters: AnalyticsFilters, dataset: AnalyticsDataset):
        return self.trend_service.analyze_production_trends(filters, dataset.records)

    def _ingredient_cost_trends(self, filters: AnalyticsFilters, dataset: AnalyticsDataset):
        return self.trend_service.analyze_ingredient_cost_trends(
            filters, dataset.records, dataset.recipe_snapshots
        )

    def _seasonality(self, filters: AnalyticsFilters, dataset: AnalyticsDataset):
        return self.seasonality_service.detect_seasonal_patterns(
            filters.company_id,
            dataset.records,
            recipe_ids=filters.recipe_ids,
            cycle=filters.cycle,
            start_date=filters.start_date,
            end_date=filters.end_date,
            metric=filters.metric or Metric.SALES_VOLUME,
        )

    def _year_over_year(self, filters: AnalyticsFilters, dataset: AnalyticsDataset):
        year = filters.year
        reference = filters.end_date or filters.as_of
        if year is None:
            if reference is None:
                raise ValidationError(
                    "year is required for year-over-year comparison",
                    code="YEAR_REQUIRED",
                    details={"analysis": AnalysisType.YEAR_OVER_YEAR.value},
                )
            year = reference.year

        # An end date inside the year makes it a year-to-date comparison
        through = reference if reference is not None and reference.year == year else None

        return self.yoy_service.compare_year_over_year(
            filters.company_id,
            filters.metric or Metric.REVENUE,
            year,
            dataset.records,
            through=through,
            recipe_ids=filters.recipe_ids,
            ingredient_ids=filters.ingredient_ids,
            category_id=filters.category_id,
        )


# Singleton instance
_analytics_engine: Optional[AnalyticsEngine] = None


def get_analytics_engine() -> AnalyticsEngine:
    """Get or create AnalyticsEngine instance."""
    global _analytics_engine
    if _analytics_engine is None:
        _analytics_engine = AnalyticsEngine()
    return _analytics_engine
