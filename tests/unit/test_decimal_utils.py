"""
Unit tests for Decimal helpers.
"""

from decimal import Decimal

from utils.decimal_utils import (
    mean,
    money_to_float,
    measure_to_float,
    percent_change,
    percent_of,
    population_std_dev,
    round_money,
    round_up_quantity,
    safe_divide,
)


class TestDivisionGuards:

    def test_safe_divide(self):
        assert safe_divide(Decimal("1"), Decimal("4")) == Decimal("0.25")
        assert safe_divide(Decimal("1"), Decimal("0")) is None

    def test_percent_of_undefined_without_whole(self):
        assert percent_of(Decimal("3.5"), Decimal("10")) == Decimal("35")
        assert percent_of(Decimal("3.5"), Decimal("0")) is None
        assert percent_of(Decimal("3.5"), None) is None

    def test_percent_change(self):
        assert percent_change(Decimal("110"), Decimal("100")) == Decimal("10")
        assert percent_change(Decimal("5"), Decimal("0")) is None
        assert percent_change(Decimal("5"), None) is None


class TestStatistics:

    def test_mean(self):
        assert mean([Decimal("1"), Decimal("2"), Decimal("3")]) == Decimal("2")
        assert mean([]) is None

    def test_population_std_dev(self):
        values = [Decimal(v) for v in ("2", "4", "4", "4", "5", "5", "7", "9")]
        assert population_std_dev(values) == Decimal("2")
        assert population_std_dev([Decimal("3")]) == Decimal("0")


class TestRounding:

    def test_money_rounds_half_up(self):
        assert round_money(Decimal("2.345")) == Decimal("2.35")
        assert round_money(Decimal("2.344")) == Decimal("2.34")
        assert money_to_float(Decimal("0.125")) == 0.13

    def test_quantity_rounds_up(self):
        assert round_up_quantity(Decimal("1.001")) == Decimal("1.01")
        assert round_up_quantity(Decimal("1.00")) == Decimal("1.00")

    def test_measure_not_rounded(self):
        assert measure_to_float(Decimal("33.3333333")) == 33.3333333
