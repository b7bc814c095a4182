"""
Decimal helpers shared by every calculation.

All arithmetic stays in Decimal. Division by zero never raises and never
yields a fake 0: the guarded helpers return None so callers must handle
the undefined case explicitly.
"""

from decimal import Decimal, ROUND_HALF_UP, ROUND_UP
from typing import Iterable, Optional

ZERO = Decimal("0")
HUNDRED = Decimal("100")
MONEY_QUANTUM = Decimal("0.01")


def safe_divide(numerator: Decimal, denominator: Decimal) -> Optional[Decimal]:
    """Return numerator / denominator, or None when the denominator is 0."""
    if denominator == 0:
        return None
    return numerator / denominator


def percent_of(part: Decimal, whole: Optional[Decimal]) -> Optional[Decimal]:
    """part / whole * 100, undefined when whole is missing or zero."""
    if whole is None:
        return None
    ratio = safe_divide(part, whole)
    return ratio * HUNDRED if ratio is not None else None


def percent_change(current: Decimal, previous: Optional[Decimal]) -> Optional[Decimal]:
    """
    Percentage change from previous to current.

    Undefined (None) when there is no previous value or it is 0.
    """
    if previous is None:
        return None
    delta = safe_divide(current - previous, previous)
    return delta * HUNDRED if delta is not None else None


def mean(values: Iterable[Decimal]) -> Optional[Decimal]:
    """Arithmetic mean, None for an empty input."""
    items = list(values)
    if not items:
        return None
    return sum(items, ZERO) / len(items)


def population_std_dev(values: Iterable[Decimal]) -> Decimal:
    """Population standard deviation using Decimal.sqrt()."""
    items = list(values)
    if len(items) < 2:
        return ZERO
    avg = sum(items, ZERO) / len(items)
    variance = sum(((v - avg) ** 2 for v in items), ZERO) / len(items)
    return variance.sqrt()


def round_money(value: Decimal) -> Decimal:
    """Round half-up to cents."""
    return value.quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def round_up_quantity(value: Decimal) -> Decimal:
    """Round away from zero to 0.01 so an order never falls short."""
    return value.quantize(MONEY_QUANTUM, rounding=ROUND_UP)


def money_to_float(value: Decimal) -> float:
    """Output boundary for money: round half-up to 2 dp, then float."""
    return float(round_money(value))


def measure_to_float(value: Decimal) -> float:
    """Output boundary for ratios and quantities: no rounding."""
    return float(value)
