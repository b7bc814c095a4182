"""
Kitchen unit conversion for recipe costing.

Ingredients are priced per pack (pack_price for pack_quantity of pack_unit).
Recipe lines may use any unit of the same family, or cross between volume
and mass when the ingredient has a density.

- "2 kg" against a pack priced in g → 2000 g
- "3 tbsp" against a pack priced in ml → 45 ml
- "100 ml" of oil (0.92 g/ml) against a pack priced in g → 92 g
"""

from decimal import Decimal
from typing import Optional

from exceptions import UnitConversionError

# Factor to the family's base unit (g, ml, each)
MASS_UNITS: dict[str, Decimal] = {
    "g": Decimal("1"),
    "kg": Decimal("1000"),
    "mg": Decimal("0.001"),
    "lb": Decimal("453.592"),
    "oz": Decimal("28.3495"),
}

VOLUME_UNITS: dict[str, Decimal] = {
    "ml": Decimal("1"),
    "l": Decimal("1000"),
    "tsp": Decimal("5"),
    "tbsp": Decimal("15"),
    "cup": Decimal("240"),
    "floz": Decimal("29.5735"),
}

COUNT_UNITS: dict[str, Decimal] = {
    "each": Decimal("1"),
    "slices": Decimal("1"),
}

UNIT_FAMILIES = (MASS_UNITS, VOLUME_UNITS, COUNT_UNITS)


def normalize_unit(unit: str) -> str:
    """Lowercase and strip a unit label ("Tbsp " → "tbsp")."""
    return unit.strip().lower()


def _family(unit: str) -> Optional[dict[str, Decimal]]:
    for family in UNIT_FAMILIES:
        if unit in family:
            return family
    return None


def convert_quantity(
    quantity: Decimal,
    from_unit: str,
    to_unit: str,
    density_g_per_ml: Optional[Decimal] = None,
    ingredient_id: Optional[str] = None,
) -> Decimal:
    """
    Convert a quantity between kitchen units.

    Args:
        quantity: Amount in from_unit
        from_unit: Unit used by the recipe line
        to_unit: Unit the ingredient pack is priced in
        density_g_per_ml: Enables volume ↔ mass conversion
        ingredient_id: Included in the error for traceability

    Returns:
        Quantity expressed in to_unit

    Raises:
        UnitConversionError: Units are unknown or from incompatible families
    """
    source = normalize_unit(from_unit)
    target = normalize_unit(to_unit)

    if source == target:
        return quantity

    source_family = _family(source)
    target_family = _family(target)
    if source_family is None or target_family is None:
        raise UnitConversionError(from_unit, to_unit, ingredient_id)

    if source_family is target_family:
        return quantity * source_family[source] / target_family[target]

    if density_g_per_ml and density_g_per_ml > 0:
        if source_family is VOLUME_UNITS and target_family is MASS_UNITS:
            grams = quantity * VOLUME_UNITS[source] * density_g_per_ml
            return grams / MASS_UNITS[target]
        if source_family is MASS_UNITS and target_family is VOLUME_UNITS:
            millilitres = quantity * MASS_UNITS[source] / density_g_per_ml
            return millilitres / VOLUME_UNITS[target]

    raise UnitConversionError(from_unit, to_unit, ingredient_id)
