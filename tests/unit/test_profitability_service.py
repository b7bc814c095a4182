"""
Unit tests for the Profitability Service.

Tests the margin calculations:
    food_cost_percent = cost / price × 100
    margin_amount = price - cost
    margin_percent = margin / price × 100
and the category roll-up (revenue-weighted margin).
"""

import pytest
from datetime import date
from decimal import Decimal

from models.requests import AnalyticsFilters
from services.profitability_service import (
    MISSING_SELLING_PRICE,
    ProfitabilityService,
    build_profitability_metric,
    calculate_line_cost,
    calculate_recipe_cost,
)
from tests.factories import RecordFactory, SnapshotFactory

JANUARY = dict(start_date=date(2024, 1, 1), end_date=date(2024, 1, 31))


@pytest.fixture
def service(test_settings):
    return ProfitabilityService(test_settings)


@pytest.fixture
def january(company_id):
    return AnalyticsFilters(company_id=company_id, **JANUARY)


# ===================
# LINE AND RECIPE COST
# ===================

class TestRecipeCost:

    def test_line_cost_converts_to_pack_unit(self):
        # 150 g of a 1 kg pack priced 20.00
        line = SnapshotFactory.line("beef", Decimal("150"), "g", Decimal("1"), "kg", Decimal("20.00"))
        assert calculate_line_cost(line) == Decimal("3.00")

    def test_line_cost_with_density(self):
        # 100 ml of oil at 0.92 g/ml from a 1000 g pack priced 10.00
        line = SnapshotFactory.line("oil", Decimal("100"), "ml", Decimal("1000"), "g",
                                    Decimal("10.00"), density_g_per_ml=Decimal("0.92"))
        assert calculate_line_cost(line) == Decimal("0.92")

    def test_recipe_cost_sums_lines(self, burger_snapshot):
        cost, issues = calculate_recipe_cost(burger_snapshot)
        assert cost == Decimal("3.75")
        assert issues == []

    def test_unconvertible_line_marks_recipe(self):
        snapshot = SnapshotFactory.create(
            recipe_id="soup",
            lines=[
                SnapshotFactory.line("salt", Decimal("5"), "g", Decimal("1"), "kg", Decimal("1")),
                SnapshotFactory.line("stock", Decimal("1"), "cup", Decimal("1"), "kg", Decimal("5")),
            ],
        )
        cost, issues = calculate_recipe_cost(snapshot)
        assert cost is None
        assert issues == ["UNIT_CONVERSION_FAILED:stock"]


# ===================
# RECIPE METRIC
# ===================

class TestProfitabilityMetric:

    def test_food_cost_and_margin(self):
        """Cost 3.50, price 10.00 → 35% food cost, 6.50 margin, 65% margin."""
        metric = build_profitability_metric(
            SnapshotFactory.simple("pasta", Decimal("3.50"), Decimal("10.00"))
        )

        assert metric.total_ingredient_cost == Decimal("3.50")
        assert metric.food_cost_percent == Decimal("35")
        assert metric.margin_amount == Decimal("6.50")
        assert metric.margin_percent == Decimal("65")
        assert metric.issues == []

    def test_missing_price_is_undefined_not_zero(self):
        metric = build_profitability_metric(
            SnapshotFactory.simple("special", Decimal("3.50"), None)
        )

        assert metric.total_ingredient_cost == Decimal("3.50")
        assert metric.food_cost_percent is None
        assert metric.margin_amount is None
        assert metric.margin_percent is None
        assert MISSING_SELLING_PRICE in metric.issues

    def test_zero_price_is_undefined(self):
        metric = build_profitability_metric(
            SnapshotFactory.simple("staff-meal", Decimal("2"), Decimal("0"))
        )
        assert metric.food_cost_percent is None
        assert metric.margin_amount is None

    def test_period_figures(self):
        snapshot = SnapshotFactory.simple("pasta", Decimal("3.50"), Decimal("10.00"))
        sales = [
            RecordFactory.sale("pasta", date(2024, 1, 2), quantity=Decimal("4"), unit_revenue=Decimal("10")),
            RecordFactory.sale("pasta", date(2024, 1, 3), quantity=Decimal("6"), unit_revenue=Decimal("9")),
        ]
        production = [RecordFactory.production("pasta", date(2024, 1, 2), quantity=Decimal("2"))]

        metric = build_profitability_metric(snapshot, sales, production)

        assert metric.units_sold == Decimal("10")
        assert metric.total_revenue == Decimal("94")
        assert metric.total_cost_of_sales == Decimal("35.00")
        assert metric.gross_profit == Decimal("59.00")
        assert metric.batches_produced == 2

    def test_fractional_batches_kept(self):
        snapshot = SnapshotFactory.simple("stock", Decimal("1.00"), Decimal("4.00"))
        production = [
            RecordFactory.production("stock", date(2024, 1, 2), quantity=Decimal("0.5")),
            RecordFactory.production("stock", date(2024, 1, 3), quantity=Decimal("1.25")),
        ]

        metric = build_profitability_metric(snapshot, production=production)

        assert metric.batches_produced == Decimal("1.75")
        assert metric.model_dump(mode="json")["batches_produced"] == 1.75

    def test_recomputation_is_identical(self, burger_snapshot):
        first = build_profitability_metric(burger_snapshot)
        second = build_profitability_metric(burger_snapshot)

        assert first.model_dump() == second.model_dump()
        assert first.model_dump(mode="json") == second.model_dump(mode="json")

    def test_json_output_rounds_money_only(self):
        metric = build_profitability_metric(
            SnapshotFactory.simple("tart", Decimal("1"), Decimal("3.00"))
        )

        dumped = metric.model_dump(mode="json")

        assert dumped["margin_amount"] == 2.0
        assert dumped["food_cost_percent"] == float(Decimal("1") / Decimal("3") * 100)


# ===================
# SERVICE
# ===================

class TestRecipeProfitability:

    def test_scoped_to_company_and_allow_list(self, service, january):
        snapshots = [
            SnapshotFactory.simple("a", Decimal("1"), Decimal("5")),
            SnapshotFactory.simple("b", Decimal("1"), Decimal("5")),
            SnapshotFactory.simple("a", Decimal("1"), Decimal("5"), company_id="other"),
        ]
        filters = january.model_copy(update={"recipe_ids": ["a"]})

        metrics = service.calculate_recipe_profitability(filters, snapshots, [])

        assert [(m.recipe_id, m.units_sold) for m in metrics] == [("a", 0)]

    def test_sales_outside_range_excluded(self, service, january):
        snapshots = [SnapshotFactory.simple("a", Decimal("1"), Decimal("5"))]
        records = [
            RecordFactory.sale("a", date(2024, 1, 15), quantity=Decimal("2")),
            RecordFactory.sale("a", date(2024, 2, 1), quantity=Decimal("50")),
        ]

        metrics = service.calculate_recipe_profitability(january, snapshots, records)

        assert metrics[0].units_sold == Decimal("2")

    def test_bad_recipe_does_not_abort_batch(self, service, january):
        snapshots = [
            SnapshotFactory.simple("good", Decimal("1"), Decimal("5")),
            SnapshotFactory.create(
                recipe_id="bad",
                lines=[SnapshotFactory.line("x", Decimal("1"), "cup", Decimal("1"), "each", Decimal("1"))],
            ),
        ]

        metrics = service.calculate_recipe_profitability(january, snapshots, [])

        by_id = {m.recipe_id: m for m in metrics}
        assert by_id["good"].food_cost_percent == Decimal("20")
        assert by_id["bad"].total_ingredient_cost is None
        assert by_id["bad"].food_cost_percent is None


class TestCategoryProfitability:

    def test_margin_weighted_by_revenue(self, service, january):
        snapshots = [
            SnapshotFactory.simple("a", Decimal("3.50"), Decimal("10"), category_id="mains",
                                   category_name="Mains"),
            SnapshotFactory.simple("b", Decimal("8"), Decimal("10"), category_id="mains",
                                   category_name="Mains"),
        ]
        records = [
            RecordFactory.sale("a", date(2024, 1, 5), quantity=Decimal("10"), unit_revenue=Decimal("10")),
            RecordFactory.sale("b", date(2024, 1, 5), quantity=Decimal("30"), unit_revenue=Decimal("10")),
        ]

        categories = service.calculate_category_profitability(january, snapshots, records)

        assert len(categories) == 1
        mains = categories[0]
        assert mains.category_name == "Mains"
        assert mains.recipe_count == 2
        assert mains.total_ingredient_cost == Decimal("11.50")
        assert mains.total_revenue == Decimal("400")
        # (65 × 100 + 20 × 300) / 400, not (65 + 20) / 2
        assert mains.weighted_margin_percent == Decimal("31.25")

    def test_no_revenue_means_undefined_margin(self, service, january):
        snapshots = [SnapshotFactory.simple("a", Decimal("1"), Decimal("4"), category_id="sides")]

        categories = service.calculate_category_profitability(january, snapshots, [])

        assert categories[0].weighted_margin_percent is None
        assert categories[0].category_name == "Uncategorized"

    def test_missing_price_counted(self, service, january):
        snapshots = [
            SnapshotFactory.simple("a", Decimal("1"), None, category_id="x", category_name="X"),
            SnapshotFactory.simple("b", Decimal("1"), Decimal("4"), category_id="x", category_name="X"),
        ]

        categories = service.calculate_category_profitability(january, snapshots, [])

        assert categories[0].recipes_missing_price == 1


class TestRankings:

    @pytest.fixture
    def menu(self):
        return [
            SnapshotFactory.simple("pasta", Decimal("3.50"), Decimal("10")),   # 35%, 6.50
            SnapshotFactory.simple("steak", Decimal("16"), Decimal("20")),     # 80%, 4.00
            SnapshotFactory.simple("salad", Decimal("1"), Decimal("8")),       # 12.5%, 7.00
            SnapshotFactory.simple("special", Decimal("2"), None),             # undefined
        ]

    def test_top_recipes_by_margin_amount(self, service, january, menu):
        top = service.top_recipes(january, menu, [])
        assert [m.recipe_id for m in top] == ["salad", "pasta", "steak"]

    def test_top_recipes_limit(self, service, january, menu):
        top = service.top_recipes(january.model_copy(update={"limit": 1}), menu, [])
        assert [m.recipe_id for m in top] == ["salad"]

    def test_needing_attention(self, service, january, menu):
        filters = january.model_copy(update={"max_food_cost_percent": Decimal("35")})

        flagged = service.recipes_needing_attention(filters, menu, [])

        # 35% is not above the threshold
        assert [m.recipe_id for m in flagged] == ["special", "steak"]

    def test_company_level_wrappers(self, service, menu):
        top = service.get_top_performing_recipes("company-1", limit=2, snapshots=menu)
        flagged = service.get_recipes_needing_attention(
            "company-1", max_food_cost_percent=Decimal("10"), snapshots=menu
        )

        assert [m.recipe_id for m in top] == ["salad", "pasta"]
        assert [m.recipe_id for m in flagged] == ["special", "steak", "pasta", "salad"]

    def test_start_after_all_sales_gives_empty_period(self, service):
        snapshot = SnapshotFactory.simple("burger", Decimal("4.00"), Decimal("10.00"))
        sales = [RecordFactory.sale("burger", date(2024, 1, 10))]

        top = service.get_top_performing_recipes(
            "company-1", start_date=date(2024, 6, 1), snapshots=[snapshot], records=sales
        )

        assert [m.recipe_id for m in top] == ["burger"]
        assert top[0].units_sold == Decimal("0")
        assert top[0].total_revenue == Decimal("0")
        assert top[0].margin_amount == Decimal("6.00")
