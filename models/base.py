"""
Base schemas and shared field types for all models.

Money and Measure fields hold Decimal in Python. They only turn into
floats when a model is dumped with mode="json".
"""

from decimal import Decimal
from typing import Annotated

from pydantic import BaseModel, ConfigDict, PlainSerializer

from utils.decimal_utils import money_to_float, measure_to_float


# Currency amounts: rounded half-up to cents at the output boundary
Money = Annotated[
    Decimal,
    PlainSerializer(money_to_float, return_type=float, when_used="json"),
]

# Quantities, ratios and percentages: converted without rounding
Measure = Annotated[
    Decimal,
    PlainSerializer(measure_to_float, return_type=float, when_used="json"),
]


class BaseSchema(BaseModel):
    """
    Base for all schemas.

    Features:
        - Auto-trim whitespace from strings
        - Validate on attribute assignment
        - Allow ORM objects (from_attributes)
    """
    model_config = ConfigDict(
        from_attributes=True,
        str_strip_whitespace=True,
        validate_assignment=True
    )


class FrozenSchema(BaseModel):
    """Base for immutable input snapshots."""
    model_config = ConfigDict(
        from_attributes=True,
        str_strip_whitespace=True,
        frozen=True
    )
