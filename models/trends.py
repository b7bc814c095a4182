"""
Trend, seasonality and year-over-year models.

These models define the output shapes for period-over-period trend
series, cyclical demand patterns and aligned year comparisons.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import Field

from models.base import BaseSchema, Measure
from models.series import Granularity, PeriodBucket


class TrendDirection(str, Enum):
    """Direction of a trend."""

    UP = "up"
    DOWN = "down"
    FLAT = "flat"


class ConfidenceLevel(str, Enum):
    """Coarse reliability label."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Metric(str, Enum):
    """Series that can be built from historical records."""

    REVENUE = "revenue"
    SALES_VOLUME = "sales_volume"
    PRODUCTION = "production"
    INGREDIENT_USAGE = "ingredient_usage"
    INGREDIENT_COST = "ingredient_cost"


class CycleType(str, Enum):
    """Recurring calendar cycle used for seasonality."""

    DAY_OF_WEEK = "day_of_week"
    MONTH_OF_YEAR = "month_of_year"


class SeasonalSignal(str, Enum):
    """How a cycle position compares to the overall average."""

    PEAK = "peak"
    TROUGH = "trough"
    NORMAL = "normal"


# ===================
# TRENDS
# ===================

class TrendPoint(BaseSchema):
    """Single point in a trend series."""

    bucket: PeriodBucket
    value: Measure
    change: Optional[Measure] = Field(
        None, description="value - previous value; None for the first point"
    )
    percent_change_from_previous: Optional[Measure] = Field(
        None, description="None for the first point or when previous value is 0"
    )


class TrendAnalysis(BaseSchema):
    """Trend series for one metric plus summary statistics."""

    metric: Metric
    granularity: Granularity
    start_date: date
    end_date: date
    points: List[TrendPoint] = Field(default_factory=list)
    direction: TrendDirection = Field(..., description="From the average % change")
    average_change_percent: Optional[Measure] = Field(
        None, description="Mean of defined period-over-period % changes"
    )
    volatility: Measure = Field(
        default=Decimal("0"), description="Std dev of defined % changes"
    )


# ===================
# SEASONALITY
# ===================

class SeasonalPattern(BaseSchema):
    """Average demand at one cyclical position."""

    cycle: CycleType
    cycle_position: str = Field(..., description="e.g. 'Monday', 'March'")
    position_index: int = Field(..., description="0=Monday / 1=January")
    average_value: Measure
    sample_size: int = Field(..., description="Buckets averaged at this position")
    is_reliable: bool = Field(..., description="sample_size meets the minimum")
    demand_multiplier: Optional[Measure] = Field(
        None, description="average_value / overall average; None if overall is 0"
    )
    signal: SeasonalSignal = SeasonalSignal.NORMAL


# ===================
# YEAR OVER YEAR
# ===================

class DateWindow(BaseSchema):
    """Inclusive date window."""

    start_date: date
    end_date: date


class PeriodComparison(BaseSchema):
    """One aligned position (month) of a year-over-year comparison."""

    position: int = Field(..., description="1-based position within the window")
    current_bucket: PeriodBucket
    prior_bucket: PeriodBucket
    current_value: Measure
    prior_value: Measure
    change: Measure
    percent_change: Optional[Measure] = None


class YoYComparison(BaseSchema):
    """Current year window against the same window one year earlier."""

    metric: Metric
    year: int
    current_period: DateWindow
    prior_period: DateWindow
    current_value: Measure
    prior_value: Measure
    percent_change: Optional[Measure] = Field(
        None, description="None when prior_value is 0"
    )
    breakdown: List[PeriodComparison] = Field(default_factory=list)
