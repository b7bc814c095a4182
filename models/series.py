"""
Time series models.

HistoricalRecord is the raw input fact. PeriodBucket and Series are the
aligned, gapless shapes every analysis is computed from.
"""

from datetime import date, timedelta
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import Field, model_validator

from models.base import BaseSchema, FrozenSchema, Measure
from utils.decimal_utils import ZERO


class Granularity(str, Enum):
    """Calendar bucket size."""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class EntityType(str, Enum):
    """What a record's entity_id refers to."""
    RECIPE = "recipe"
    INGREDIENT = "ingredient"
    CATEGORY = "category"


class RecordKind(str, Enum):
    """Which business event a record observes."""
    SALE = "sale"              # Recipe sold, carries unit_revenue
    PRODUCTION = "production"  # Recipe batch produced
    USAGE = "usage"            # Ingredient consumed, may carry unit_cost


class HistoricalRecord(FrozenSchema):
    """One observed fact. Read-only to the engine."""

    entity_id: str = Field(..., min_length=1, description="Recipe, ingredient or category ID")
    entity_type: EntityType
    kind: RecordKind
    occurred_on: date
    quantity: Decimal = Field(..., description="Units sold, batches produced or amount used")
    unit_cost: Optional[Decimal] = Field(None, description="Cost per unit of quantity")
    unit_revenue: Optional[Decimal] = Field(None, description="Revenue per unit of quantity")
    company_id: str = Field(..., min_length=1, description="Owning tenant")
    category_id: Optional[str] = Field(None, description="Recipe category, when known")

    @property
    def revenue(self) -> Decimal:
        """quantity × unit_revenue, 0 when no revenue was recorded."""
        if self.unit_revenue is None:
            return ZERO
        return self.quantity * self.unit_revenue

    @property
    def cost(self) -> Decimal:
        """quantity × unit_cost, 0 when no cost was recorded."""
        if self.unit_cost is None:
            return ZERO
        return self.quantity * self.unit_cost


class PeriodBucket(BaseSchema):
    """
    A contiguous calendar slot.

    period_end is exclusive: a record belongs to the bucket when
    period_start <= occurred_on < period_end.
    """

    period_start: date
    period_end: date
    granularity: Granularity
    is_partial: bool = Field(
        default=False,
        description="Clipped to the requested range (first/last week or month)"
    )

    @model_validator(mode="after")
    def _check_span(self) -> "PeriodBucket":
        if self.period_end <= self.period_start:
            raise ValueError("period_end must be after period_start")
        return self

    @property
    def last_day(self) -> date:
        """Inclusive last calendar day of the bucket."""
        return self.period_end - timedelta(days=1)

    @property
    def days(self) -> int:
        return (self.period_end - self.period_start).days

    @property
    def label(self) -> str:
        if self.granularity == Granularity.MONTHLY:
            return self.period_start.strftime("%Y-%m")
        return self.period_start.isoformat()


class SeriesPoint(BaseSchema):
    """One bucket and its aggregated value."""

    bucket: PeriodBucket
    value: Measure


class Series(BaseSchema):
    """
    Ordered, gapless sequence of points for one entity.

    Validated on construction: one point per bucket, strictly ordered,
    each bucket starting where the previous one ended.
    """

    entity_id: Optional[str] = Field(None, description="None for company-wide series")
    granularity: Granularity
    points: List[SeriesPoint] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_points(self) -> "Series":
        previous: Optional[PeriodBucket] = None
        for point in self.points:
            if point.bucket.granularity != self.granularity:
                raise ValueError("point granularity does not match series granularity")
            if previous is not None and point.bucket.period_start != previous.period_end:
                raise ValueError(
                    f"series is not contiguous at {point.bucket.period_start.isoformat()}"
                )
            previous = point.bucket
        return self

    @property
    def values(self) -> List[Decimal]:
        return [p.value for p in self.points]

    @property
    def start_date(self) -> Optional[date]:
        return self.points[0].bucket.period_start if self.points else None

    @property
    def end_date(self) -> Optional[date]:
        return self.points[-1].bucket.last_day if self.points else None

    @property
    def total(self) -> Decimal:
        return sum(self.values, ZERO)

    def nonzero_count(self) -> int:
        return sum(1 for v in self.values if v != 0)

