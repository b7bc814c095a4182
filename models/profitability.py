"""
Profitability models.

RecipeCostSnapshot is the current recipe composition and price supplied
by the caller. ProfitabilityMetric and CategoryProfitability are outputs.
"""

from decimal import Decimal
from typing import List, Optional

from pydantic import Field

from models.base import BaseSchema, FrozenSchema, Measure, Money


class RecipeIngredientLine(FrozenSchema):
    """One ingredient used by a recipe, with the ingredient's pack pricing."""

    ingredient_id: str = Field(..., min_length=1)
    quantity: Decimal = Field(..., ge=0, description="Amount used per recipe batch")
    unit: str = Field(..., min_length=1, description="Unit of quantity (g, kg, ml, tbsp, each...)")
    pack_quantity: Decimal = Field(..., gt=0, description="Size of one purchased pack")
    pack_unit: str = Field(..., min_length=1, description="Unit of pack_quantity")
    pack_price: Decimal = Field(..., ge=0, description="Price of one pack")
    density_g_per_ml: Optional[Decimal] = Field(
        None, gt=0, description="Allows volume ↔ mass conversion"
    )


class RecipeCostSnapshot(FrozenSchema):
    """Current cost and price of one recipe."""

    recipe_id: str = Field(..., min_length=1)
    company_id: str = Field(..., min_length=1)
    recipe_name: Optional[str] = None
    category_id: Optional[str] = None
    category_name: Optional[str] = None
    selling_price: Optional[Decimal] = Field(None, ge=0)
    lines: List[RecipeIngredientLine] = Field(default_factory=list)


class ProfitabilityMetric(BaseSchema):
    """
    Margin metrics for one recipe.

    food_cost_percent, margin_amount and margin_percent are None (never 0)
    when the recipe has no usable selling price.
    """

    recipe_id: str
    recipe_name: Optional[str] = None
    category_id: Optional[str] = None
    category_name: Optional[str] = None

    # Unit economics
    selling_price: Optional[Money] = None
    total_ingredient_cost: Optional[Money] = Field(
        None, description="None when a line could not be costed (see issues)"
    )
    food_cost_percent: Optional[Measure] = None
    margin_amount: Optional[Money] = None
    margin_percent: Optional[Measure] = None

    # Period figures from sales and production records
    units_sold: Measure = Decimal("0")
    total_revenue: Money = Decimal("0")
    total_cost_of_sales: Optional[Money] = None
    gross_profit: Optional[Money] = None
    gross_margin_percent: Optional[Measure] = None
    batches_produced: Measure = Decimal("0")

    issues: List[str] = Field(default_factory=list, description="Error codes hit while costing")


class CategoryProfitability(BaseSchema):
    """Profitability aggregated over the recipes of one category."""

    category_id: Optional[str] = None
    category_name: str
    recipe_count: int
    total_ingredient_cost: Money
    total_revenue: Money
    weighted_margin_percent: Optional[Measure] = Field(
        None, description="Margin % weighted by each recipe's revenue"
    )
    recipes_missing_price: int = 0
