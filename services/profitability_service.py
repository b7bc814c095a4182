"""
Profitability service: recipe and category margins.

Recipe cost comes from the current composition snapshot:

    line_cost = quantity (in pack units) × pack_price / pack_quantity
    food_cost_percent = total_ingredient_cost / selling_price × 100
    margin_amount = selling_price - total_ingredient_cost

Sales and production records in the requested range add the period
figures (units sold, revenue, gross profit). A recipe that cannot be
costed or has no price still gets a metric, with None fields and the
reason in `issues`, so one bad recipe never aborts the batch.
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Tuple

import structlog

from config.settings import Settings, get_settings
from exceptions import UnitConversionError
from models.profitability import (
    CategoryProfitability,
    ProfitabilityMetric,
    RecipeCostSnapshot,
    RecipeIngredientLine,
)
from models.requests import AnalyticsDefaults, AnalyticsFilters
from models.series import EntityType, HistoricalRecord, RecordKind
from services.series_service import resolve_date_range, select_records, validate_filters
from utils.decimal_utils import ZERO, percent_of, safe_divide
from utils.units import convert_quantity

logger = structlog.get_logger(__name__)

MISSING_SELLING_PRICE = "MISSING_SELLING_PRICE"
UNCATEGORIZED = "Uncategorized"


# ===================
# CALCULATIONS
# ===================

def calculate_line_cost(line: RecipeIngredientLine) -> Decimal:
    """
    Cost of one recipe line at the ingredient's pack price.

    Raises:
        UnitConversionError: If the line unit cannot reach the pack unit
    """
    quantity = convert_quantity(
        line.quantity,
        line.unit,
        line.pack_unit,
        density_g_per_ml=line.density_g_per_ml,
        ingredient_id=line.ingredient_id,
    )
    return quantity * line.pack_price / line.pack_quantity


def calculate_recipe_cost(snapshot: RecipeCostSnapshot) -> Tuple[Optional[Decimal], List[str]]:
    """
    Total ingredient cost of a recipe.

    Returns:
        (total cost or None if any line failed, list of issue codes)
    """
    total = ZERO
    issues: List[str] = []

    for line in snapshot.lines:
        try:
            total += calculate_line_cost(line)
        except UnitConversionError as e:
            issues.append(f"{e.code}:{line.ingredient_id}")

    if issues:
        return None, issues
    return total, issues


def build_profitability_metric(
    snapshot: RecipeCostSnapshot,
    sales: Sequence[HistoricalRecord] = (),
    production: Sequence[HistoricalRecord] = (),
) -> ProfitabilityMetric:
    """
    Margin metrics for one recipe.

    Args:
        snapshot: Current composition and selling price
        sales: SALE records for this recipe within the period
        production: PRODUCTION records for this recipe within the period
    """
    cost, issues = calculate_recipe_cost(snapshot)
    price = snapshot.selling_price

    if not price:
        issues.append(MISSING_SELLING_PRICE)

    margin_amount = None
    if price and cost is not None:
        margin_amount = price - cost

    food_cost_percent = percent_of(cost, price) if cost is not None else None
    margin_percent = percent_of(margin_amount, price) if margin_amount is not None else None

    units_sold = sum((r.quantity for r in sales), ZERO)
    total_revenue = sum((r.revenue for r in sales), ZERO)

    cost_of_sales = cost * units_sold if cost is not None else None
    gross_profit = total_revenue - cost_of_sales if cost_of_sales is not None else None
    gross_margin_percent = percent_of(gross_profit, total_revenue) \
        if gross_profit is not None else None

    batches = sum((r.quantity for r in production), ZERO)

    return ProfitabilityMetric(
        recipe_id=snapshot.recipe_id,
        recipe_name=snapshot.recipe_name,
        category_id=snapshot.category_id,
        category_name=snapshot.category_name,
        selling_price=price,
        total_ingredient_cost=cost,
        food_cost_percent=food_cost_percent,
        margin_amount=margin_amount,
        margin_percent=margin_percent,
        units_sold=units_sold,
        total_revenue=total_revenue,
        total_cost_of_sales=cost_of_sales,
        gross_profit=gross_profit,
        gross_margin_percent=gross_margin_percent,
        batches_produced=batches,
        issues=issues,
    )


def aggregate_category(
    category_id: Optional[str],
    metrics: Sequence[ProfitabilityMetric],
) -> CategoryProfitability:
    """
    Roll recipe metrics up to one category.

    weighted_margin_percent = Σ(margin_percent × revenue) / Σ revenue over
    recipes with a defined margin; None when none of them sold anything.
    """
    weighted = ZERO
    weight = ZERO
    for m in metrics:
        if m.margin_percent is None:
            continue
        weighted += m.margin_percent * m.total_revenue
        weight += m.total_revenue

    category_name = next((m.category_name for m in metrics if m.category_name), None)

    return CategoryProfitability(
        category_id=category_id,
        category_name=category_name or UNCATEGORIZED,
        recipe_count=len(metrics),
        total_ingredient_cost=sum(
            (m.total_ingredient_cost for m in metrics if m.total_ingredient_cost is not None),
            ZERO,
        ),
        total_revenue=sum((m.total_revenue for m in metrics), ZERO),
        weighted_margin_percent=safe_divide(weighted, weight),
        recipes_missing_price=sum(1 for m in metrics if not m.selling_price),
    )


# ===================
# SERVICE
# ===================

class ProfitabilityService:
    """
    Profitability business logic.

    Every method takes the request filters, the company's recipe
    snapshots and its historical records.
    """

    def __init__(self, app_settings: Optional[Settings] = None):
        self.settings = app_settings or get_settings()
        self.defaults = AnalyticsDefaults.from_settings(self.settings)

    def _select_snapshots(
        self,
        filters: AnalyticsFilters,
        snapshots: Sequence[RecipeCostSnapshot],
    ) -> List[RecipeCostSnapshot]:
        selected = [
            s for s in snapshots
            if s.company_id == filters.company_id
            and (filters.recipe_ids is None or s.recipe_id in filters.recipe_ids)
            and (filters.category_id is None or s.category_id == filters.category_id)
        ]
        return sorted(selected, key=lambda s: s.recipe_id)

    def _period_records(
        self,
        filters: AnalyticsFilters,
        records: Sequence[HistoricalRecord],
    ) -> Dict[Tuple[RecordKind, str], List[HistoricalRecord]]:
        """SALE and PRODUCTION recipe records in range, keyed by (kind, recipe_id)."""
        scoped = [
            r for r in select_records(records, filters)
            if r.entity_type == EntityType.RECIPE
            and r.kind in (RecordKind.SALE, RecordKind.PRODUCTION)
        ]
        grouped: Dict[Tuple[RecordKind, str], List[HistoricalRecord]] = defaultdict(list)
        if not scoped:
            return grouped

        start, end = resolve_date_range(filters, scoped, self.defaults.lookback_days)
        for r in scoped:
            if start <= r.occurred_on <= end:
                grouped[(r.kind, r.entity_id)].append(r)
        return grouped

    def calculate_recipe_profitability(
        self,
        filters: AnalyticsFilters,
        snapshots: Sequence[RecipeCostSnapshot],
        records: Sequence[HistoricalRecord] = (),
    ) -> List[ProfitabilityMetric]:
        """
        Per-recipe margin metrics.

        Returns:
            One ProfitabilityMetric per selected recipe, ordered by recipe_id
        """
        validate_filters(filters, self.defaults.max_batch_entities)

        selected = self._select_snapshots(filters, snapshots)
        grouped = self._period_records(filters, records)

        metrics = [
            build_profitability_metric(
                s,
                sales=grouped.get((RecordKind.SALE, s.recipe_id), []),
                production=grouped.get((RecordKind.PRODUCTION, s.recipe_id), []),
            )
            for s in selected
        ]

        with_issues = sum(1 for m in metrics if m.issues)
        logger.info(
            "recipe_profitability_calculated",
            company_id=filters.company_id,
            recipes=len(metrics),
            with_issues=with_issues,
        )
        return metrics

    def calculate_category_profitability(
        self,
        filters: AnalyticsFilters,
        snapshots: Sequence[RecipeCostSnapshot],
        records: Sequence[HistoricalRecord] = (),
    ) -> List[CategoryProfitability]:
        """Recipe metrics aggregated by category, ordered by category name."""
        metrics = self.calculate_recipe_profitability(filters, snapshots, records)

        by_category: Dict[Optional[str], List[ProfitabilityMetric]] = defaultdict(list)
        for m in metrics:
            by_category[m.category_id].append(m)

        categories = [
            aggregate_category(category_id, category_metrics)
            for category_id, category_metrics in by_category.items()
        ]
        categories.sort(key=lambda c: (c.category_name, c.category_id or ""))

        logger.info(
            "category_profitability_calculated",
            company_id=filters.company_id,
            categories=len(categories),
        )
        return categories

    def top_recipes(
        self,
        filters: AnalyticsFilters,
        snapshots: Sequence[RecipeCostSnapshot],
        records: Sequence[HistoricalRecord] = (),
    ) -> List[ProfitabilityMetric]:
        """Top N recipes by margin_amount; recipes without a margin are excluded."""
        limit = filters.limit or self.defaults.top_recipes_limit
        metrics = [
            m for m in self.calculate_recipe_profitability(filters, snapshots, records)
            if m.margin_amount is not None
        ]
        metrics.sort(key=lambda m: (-m.margin_amount, m.recipe_id))
        return metrics[:limit]

    def recipes_needing_attention(
        self,
        filters: AnalyticsFilters,
        snapshots: Sequence[RecipeCostSnapshot],
        records: Sequence[HistoricalRecord] = (),
    ) -> List[ProfitabilityMetric]:
        """
        Recipes whose food cost exceeds the threshold or is undefined.

        Undefined food cost (missing price, uncostable line) sorts first,
        then highest food cost.
        """
        threshold = filters.max_food_cost_percent
        if threshold is None:
            threshold = self.defaults.max_food_cost_percent

        flagged = [
            m for m in self.calculate_recipe_profitability(filters, snapshots, records)
            if m.food_cost_percent is None or m.food_cost_percent > threshold
        ]
        flagged.sort(key=lambda m: (
            m.food_cost_percent is not None,
            -(m.food_cost_percent or ZERO),
            m.recipe_id,
        ))

        logger.info(
            "recipes_needing_attention",
            company_id=filters.company_id,
            threshold=str(threshold),
            flagged=len(flagged),
        )
        return flagged

    def get_top_performing_recipes(
        self,
        company_id: str,
        limit: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        snapshots: Sequence[RecipeCostSnapshot] = (),
        records: Sequence[HistoricalRecord] = (),
    ) -> List[ProfitabilityMetric]:
        """Top N recipes by margin for a company and date range."""
        filters = AnalyticsFilters(
            company_id=company_id, limit=limit, start_date=start_date, end_date=end_date
        )
        return self.top_recipes(filters, snapshots, records)

    def get_recipes_needing_attention(
        self,
        company_id: str,
        max_food_cost_percent: Optional[Decimal] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        snapshots: Sequence[RecipeCostSnapshot] = (),
        records: Sequence[HistoricalRecord] = (),
    ) -> List[ProfitabilityMetric]:
        """Recipes above the food cost threshold for a company and date range."""
        filters = AnalyticsFilters(
            company_id=company_id,
            max_food_cost_percent=max_food_cost_percent,
            start_date=start_date,
            end_date=end_date,
        )
        return self.recipes_needing_attention(filters, snapshots, records)


# Singleton instance
_profitability_service: Optional[ProfitabilityService] = None


def get_profitability_service() -> ProfitabilityService:
    """Get or create ProfitabilityService instance."""
    global _profitability_service
    if _profitability_service is None:
        _profitability_service = ProfitabilityService()
    return _profitability_service
