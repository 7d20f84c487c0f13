"""
Financial Calculation Engine

Pure, synchronous calculation modules for rental property investment
analysis: amortization, period metrics, multi-year projections, portfolio
liquidity and return metrics.
"""

from deal_engine.calculations import amortization, irr, liquidity, metrics, projection
from deal_engine.calculations.errors import (
    CalculationError,
    InvalidParameterError,
    InvalidTermsError,
)

__all__ = [
    "amortization",
    "irr",
    "liquidity",
    "metrics",
    "projection",
    "CalculationError",
    "InvalidParameterError",
    "InvalidTermsError",
]
