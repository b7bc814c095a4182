"""
Unit tests for the Seasonality Service.
"""

import pytest
from datetime import date, timedelta
from decimal import Decimal

from models.trends import CycleType, SeasonalSignal
from services.seasonality_service import (
    SeasonalityService,
    classify_multiplier,
    covers_full_cycle,
)
from tests.factories import RecordFactory


@pytest.fixture
def service(test_settings):
    return SeasonalityService(test_settings)


def two_weeks_with_busy_saturdays():
    """Mon 2024-01-01 to Sun 2024-01-14: 10 sold per day, 20 on Saturdays."""
    start = date(2024, 1, 1)
    quantities = [
        Decimal("20") if (start + timedelta(days=i)).weekday() == 5 else Decimal("10")
        for i in range(14)
    ]
    return RecordFactory.daily_sales("burger", quantities, start=start)


def monthly_sales(start_year, years, december=Decimal("30")):
    records = []
    for year in range(start_year, start_year + years):
        for month in range(1, 13):
            quantity = december if month == 12 else Decimal("10")
            records.append(RecordFactory.sale("burger", date(year, month, 10), quantity=quantity))
    return records


# ===================
# CYCLE COVERAGE
# ===================

class TestCoversFullCycle:

    def test_week(self):
        assert covers_full_cycle(date(2024, 1, 1), date(2024, 1, 7), CycleType.DAY_OF_WEEK)
        assert not covers_full_cycle(date(2024, 1, 1), date(2024, 1, 6), CycleType.DAY_OF_WEEK)

    def test_year(self):
        assert covers_full_cycle(date(2023, 1, 1), date(2023, 12, 31), CycleType.MONTH_OF_YEAR)
        assert not covers_full_cycle(date(2023, 1, 1), date(2023, 12, 30), CycleType.MONTH_OF_YEAR)


class TestClassifyMultiplier:

    def test_signals(self):
        assert classify_multiplier(Decimal("1.2")) == SeasonalSignal.PEAK
        assert classify_multiplier(Decimal("0.8")) == SeasonalSignal.TROUGH
        assert classify_multiplier(Decimal("1")) == SeasonalSignal.NORMAL
        assert classify_multiplier(None) == SeasonalSignal.NORMAL


# ===================
# DAY OF WEEK
# ===================

class TestDayOfWeek:

    def test_saturday_peak(self, service, company_id):
        patterns = service.detect_seasonal_patterns(
            company_id, two_weeks_with_busy_saturdays(), cycle=CycleType.DAY_OF_WEEK
        )

        assert [p.cycle_position for p in patterns] == [
            "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday",
        ]
        saturday = patterns[5]
        assert saturday.average_value == Decimal("20")
        assert saturday.sample_size == 2
        assert saturday.is_reliable
        assert saturday.signal == SeasonalSignal.PEAK
        assert patterns[0].signal == SeasonalSignal.NORMAL

    def test_less_than_a_week_yields_nothing(self, service, company_id):
        records = RecordFactory.daily_sales("burger", [Decimal("5")] * 6, start=date(2024, 1, 1))

        assert service.detect_seasonal_patterns(company_id, records) == []

    def test_single_week_is_unreliable(self, service, company_id):
        records = RecordFactory.daily_sales("burger", [Decimal("5")] * 7, start=date(2024, 1, 1))

        patterns = service.detect_seasonal_patterns(company_id, records)

        assert len(patterns) == 7
        assert not any(p.is_reliable for p in patterns)
        assert all(p.sample_size == 1 for p in patterns)

    def test_recipe_allow_list(self, service, company_id):
        records = two_weeks_with_busy_saturdays() + RecordFactory.daily_sales(
            "cake", [Decimal("100")] * 14, start=date(2024, 1, 1)
        )

        patterns = service.detect_seasonal_patterns(
            company_id, records, recipe_ids=["burger"], cycle=CycleType.DAY_OF_WEEK
        )

        assert patterns[0].average_value == Decimal("10")


# ===================
# MONTH OF YEAR
# ===================

class TestMonthOfYear:

    def test_december_peak_over_two_years(self, service, company_id):
        patterns = service.detect_seasonal_patterns(
            company_id,
            monthly_sales(2022, 2),
            cycle=CycleType.MONTH_OF_YEAR,
            start_date=date(2022, 1, 1),
            end_date=date(2023, 12, 31),
        )

        assert len(patterns) == 12
        december = patterns[-1]
        assert december.cycle_position == "December"
        assert december.position_index == 12
        assert december.sample_size == 2
        assert december.is_reliable
        assert december.signal == SeasonalSignal.PEAK

    def test_under_a_year_yields_nothing(self, service, company_id):
        patterns = service.detect_seasonal_patterns(
            company_id,
            monthly_sales(2023, 1),
            cycle=CycleType.MONTH_OF_YEAR,
            start_date=date(2023, 1, 1),
            end_date=date(2023, 11, 30),
        )
        assert patterns == []

    def test_both_cycles_by_default(self, service, company_id):
        patterns = service.detect_seasonal_patterns(
            company_id,
            monthly_sales(2023, 1),
            start_date=date(2023, 1, 1),
            end_date=date(2023, 12, 31),
        )

        cycles = {p.cycle for p in patterns}
        assert cycles == {CycleType.DAY_OF_WEEK, CycleType.MONTH_OF_YEAR}


class TestNoData:

    def test_no_records(self, service, company_id):
        assert service.detect_seasonal_patterns(company_id, []) == []

    def test_other_company_ignored(self, service):
        assert service.detect_seasonal_patterns("company-2", two_weeks_with_busy_saturdays()) == []
