"""
Pytest configuration and shared fixtures.
"""

import pytest
import sys
import os
from datetime import date

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from deal_engine.calculations.liquidity import FinancingPlan
from deal_engine.calculations.metrics import DealParameters


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "golden: marks golden-value regression tests")


@pytest.fixture
def sample_deal():
    """Rental deal used as the golden-value reference throughout the suite."""
    return DealParameters.from_purchase(
        purchase_price=500000,
        down_payment=100000,
        monthly_rent=3000,
        annual_rate=3.5,
        term_years=30,
        start_date=date(2024, 1, 1),
        vacancy_rate=5,
        property_tax=2000,
        insurance=1200,
        maintenance=2400,
        management_fee_percent=8,
    )


@pytest.fixture
def overlapping_plans():
    """Plan A Jan-2023..Dec-2025 at 1000/mo, plan B Jun-2024..Dec-2026 at 1500/mo."""
    return [
        FinancingPlan(
            loan_amount=100000,
            start_date=date(2023, 1, 1),
            end_date=date(2025, 12, 1),
            interest_rate=3.0,
            monthly_payment=1000,
            lender="Bank A",
            name="Plan A",
        ),
        FinancingPlan(
            loan_amount=300000,
            start_date=date(2024, 6, 1),
            end_date=date(2026, 12, 1),
            interest_rate=4.0,
            monthly_payment=1500,
            lender="Bank B",
            name="Plan B",
        ),
    ]
