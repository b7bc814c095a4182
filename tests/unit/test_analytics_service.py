"""
Unit tests for the analytics engine entry point.

Covers dispatch, AppError → typed failure conversion and JSON output.
"""

import json
import pytest
from datetime import date
from decimal import Decimal
from unittest.mock import patch

from config.settings import Settings
from exceptions import InsufficientDataError
from models.requests import (
    AnalysisRequest,
    AnalysisType,
    AnalyticsDataset,
    AnalyticsFilters,
)
from models.series import Granularity
from services.analytics_service import AnalyticsEngine
from tests.factories import RecordFactory, SnapshotFactory


@pytest.fixture
def engine(test_settings):
    return AnalyticsEngine(test_settings)


@pytest.fixture
def dataset(flat_usage_records, burger_snapshot):
    sales = RecordFactory.daily_sales("burger", [Decimal("3")] * 10, start=date(2024, 1, 1),
                                      unit_revenue=Decimal("12.00"))
    return AnalyticsDataset(
        records=flat_usage_records + sales,
        stock_levels={"flour": Decimal("15")},
        recipe_snapshots=[burger_snapshot],
    )


def request(analysis_type, **filters):
    filters.setdefault("company_id", "company-1")
    return AnalysisRequest(analysis_type=analysis_type, filters=AnalyticsFilters(**filters))


# ===================
# DISPATCH
# ===================

class TestDispatch:

    def test_every_analysis_type_has_a_handler(self, engine):
        assert set(engine.handlers) == set(AnalysisType)

    def test_forecast(self, engine, dataset, daily_filters):
        response = engine.run(
            AnalysisRequest(analysis_type=AnalysisType.FORECAST, filters=daily_filters), dataset
        )

        assert response.success
        assert response.error is None
        assert [f.entity_id for f in response.data] == ["flour"]

    def test_forecast_with_only_corrections(self, engine, daily_filters):
        corrections = AnalyticsDataset(records=[
            RecordFactory.usage("flour", date(2024, 1, 3), quantity=Decimal("-5")),
        ])
        response = engine.run(
            AnalysisRequest(analysis_type=AnalysisType.FORECAST, filters=daily_filters), corrections
        )

        assert response.success
        assert response.data[0].projected_value == Decimal("0")

    def test_reorder_uses_dataset_stock(self, engine, dataset, daily_filters):
        response = engine.run(
            AnalysisRequest(analysis_type=AnalysisType.REORDER, filters=daily_filters), dataset
        )

        assert response.success
        assert [(s.ingredient_id, s.days_until_stockout) for s in response.data] == [
            ("flour", Decimal("3"))
        ]

    def test_profitability(self, engine, dataset):
        response = engine.run(
            request(AnalysisType.RECIPE_PROFITABILITY,
                    start_date=date(2024, 1, 1), end_date=date(2024, 1, 10)),
            dataset,
        )

        burger = response.data[0]
        assert burger.food_cost_percent == Decimal("31.25")
        assert burger.units_sold == Decimal("30")
        assert burger.total_revenue == Decimal("360.00")

    def test_revenue_trends(self, engine, dataset, daily_filters):
        response = engine.run(
            AnalysisRequest(analysis_type=AnalysisType.REVENUE_TRENDS, filters=daily_filters),
            dataset,
        )
        assert len(response.data.points) == 10

    def test_year_over_year_infers_year_to_date(self, engine, dataset):
        response = engine.run(
            request(AnalysisType.YEAR_OVER_YEAR, end_date=date(2024, 1, 10)), dataset
        )

        assert response.success
        assert response.data.year == 2024
        assert response.data.current_period.end_date == date(2024, 1, 10)
        assert response.data.prior_value == Decimal("0")
        assert response.data.percent_change is None

    def test_seasonality(self, engine, dataset):
        response = engine.run(request(AnalysisType.SEASONALITY), dataset)

        assert response.success
        assert len(response.data) == 7


# ===================
# ERRORS
# ===================

class TestErrors:

    def test_missing_granularity_is_typed_failure(self, engine, dataset):
        response = engine.run(request(AnalysisType.PRODUCTION_TRENDS), dataset)

        assert not response.success
        assert response.data is None
        assert response.error["error"]["code"] == "GRANULARITY_REQUIRED"

    def test_year_required(self, engine, dataset):
        response = engine.run(request(AnalysisType.YEAR_OVER_YEAR), dataset)

        assert response.error["error"]["code"] == "YEAR_REQUIRED"

    def test_batch_limit(self, dataset):
        engine = AnalyticsEngine(Settings(_env_file=None, max_batch_entities=2))

        response = engine.run(
            request(AnalysisType.RECIPE_PROFITABILITY, recipe_ids=["a", "b", "c"]), dataset
        )

        assert response.error["error"]["code"] == "BATCH_LIMIT_EXCEEDED"

    def test_service_error_converted(self, engine, dataset, daily_filters):
        with patch.object(
            engine.trend_service,
            "analyze_revenue_trends",
            side_effect=InsufficientDataError("nothing to analyse"),
        ):
            response = engine.run(
                AnalysisRequest(analysis_type=AnalysisType.REVENUE_TRENDS, filters=daily_filters),
                dataset,
            )

        assert not response.success
        assert response.error["error"]["code"] == "INSUFFICIENT_DATA"

    def test_unexpected_error_propagates(self, engine, dataset, daily_filters):
        with patch.object(engine.trend_service, "analyze_revenue_trends",
                          side_effect=RuntimeError("boom")):
            with pytest.raises(RuntimeError):
                engine.run(
                    AnalysisRequest(analysis_type=AnalysisType.REVENUE_TRENDS,
                                    filters=daily_filters),
                    dataset,
                )

    def test_batch_continues_past_failures(self, engine, dataset, daily_filters):
        responses = engine.run_batch(
            [
                request(AnalysisType.REVENUE_TRENDS),
                AnalysisRequest(analysis_type=AnalysisType.FORECAST, filters=daily_filters),
            ],
            dataset,
        )

        assert [r.success for r in responses] == [False, True]


# ===================
# OUTPUT
# ===================

class TestResponseSerialization:

    def test_to_dict_is_json_safe(self, engine, dataset):
        response = engine.run(
            request(AnalysisType.RECIPE_PROFITABILITY,
                    start_date=date(2024, 1, 1), end_date=date(2024, 1, 10)),
            dataset,
        )

        body = response.to_dict()
        json.dumps(body)

        burger = body["data"][0]
        assert body["analysis_type"] == "recipe_profitability"
        assert burger["total_ingredient_cost"] == 3.75
        assert burger["food_cost_percent"] == 31.25

    def test_money_rounded_half_up(self, engine):
        dataset = AnalyticsDataset(recipe_snapshots=[
            SnapshotFactory.simple("tea", Decimal("0.125"), Decimal("1.00")),
        ])

        body = engine.run(request(AnalysisType.RECIPE_PROFITABILITY), dataset).to_dict()

        tea = body["data"][0]
        assert tea["total_ingredient_cost"] == 0.13
        assert tea["margin_amount"] == 0.88
        assert tea["food_cost_percent"] == 12.5

    def test_error_payload(self, engine, dataset):
        body = engine.run(request(AnalysisType.PRODUCTION_TRENDS), dataset).to_dict()

        assert body["success"] is False
        assert body["data"] is None
        assert body["error"]["error"]["code"] == "GRANULARITY_REQUIRED"
