"""
Shared test fixtures.
"""

import sys
from pathlib import Path

# Add project root to Python path
root_dir = Path(__file__).parent.parent
sys.path.insert(0, str(root_dir))

import pytest
from datetime import date
from decimal import Decimal

from config.settings import Settings
from models.series import Granularity
from models.requests import AnalyticsFilters
from tests.factories import RecordFactory, SnapshotFactory


# ===================
# SETTINGS
# ===================

@pytest.fixture
def test_settings() -> Settings:
    """Settings with defaults only (no .env)."""
    return Settings(_env_file=None)


# ===================
# FILTERS
# ===================

@pytest.fixture
def company_id() -> str:
    return "company-1"


@pytest.fixture
def daily_filters(company_id) -> AnalyticsFilters:
    """Ten days of daily buckets, 2024-01-01 to 2024-01-10."""
    return AnalyticsFilters(
        company_id=company_id,
        start_date=date(2024, 1, 1),
        end_date=date(2024, 1, 10),
        granularity=Granularity.DAILY,
    )


# ===================
# DATA
# ===================

@pytest.fixture
def flat_usage_records(company_id) -> list:
    """Ten days of 5 units/day usage of one ingredient."""
    return RecordFactory.daily_usage(
        "flour",
        [Decimal("5")] * 10,
        start=date(2024, 1, 1),
        company_id=company_id,
    )


@pytest.fixture
def burger_snapshot(company_id):
    """Recipe priced at 12.00 costing 3.75 in ingredients."""
    return SnapshotFactory.create(
        recipe_id="burger",
        company_id=company_id,
        selling_price=Decimal("12.00"),
        lines=[
            SnapshotFactory.line("beef", Decimal("150"), "g", Decimal("1"), "kg", Decimal("20.00")),
            SnapshotFactory.line("bun", Decimal("1"), "each", Decimal("12"), "each", Decimal("9.00")),
        ],
    )
