"""
IRR and NPV Calculations

Return metrics for periodic cash flow series. IRR is solved with
Newton-Raphson and falls back to bisection when the iteration stalls.
"""

import logging
import math
from typing import Sequence, Tuple

from deal_engine.calculations.errors import CalculationError

logger = logging.getLogger(__name__)

MAX_ITERATIONS = 100
MAX_BISECTIONS = 200
MAX_BRACKET_STEPS = 20
TOLERANCE = 1e-7
DEFAULT_GUESS = 0.1
BISECTION_LOW = -0.99
BISECTION_HIGH = 10.0


def calculate_npv(cash_flows: Sequence[float], discount_rate: float) -> float:
    """
    Calculate NPV (Net Present Value) of periodic cash flows.

    Args:
        cash_flows: Cash flows, first one at period 0
        discount_rate: Periodic discount rate (e.g., 0.10 for 10%)
    """
    return sum(
        cf / ((1 + discount_rate) ** period) for period, cf in enumerate(cash_flows)
    )


def _npv_derivative(cash_flows: Sequence[float], rate: float) -> float:
    return sum(
        -(period * cf) / ((1 + rate) ** (period + 1))
        for period, cf in enumerate(cash_flows)
    )


def _require_sign_change(cash_flows: Sequence[float]) -> None:
    if len(cash_flows) < 2:
        raise CalculationError("At least 2 cash flows required")

    has_positive = any(cf > 0 for cf in cash_flows)
    has_negative = any(cf < 0 for cf in cash_flows)
    if not has_positive or not has_negative:
        raise CalculationError(
            "Cash flows must contain both positive and negative values"
        )


def _bracket_end(cash_flows: Sequence[float], rate: float) -> Tuple[float, float]:
    # Long series overflow at large rates and underflow near -100%;
    # pull the bound toward zero until the NPV is finite.
    for _ in range(MAX_BRACKET_STEPS):
        try:
            npv = calculate_npv(cash_flows, rate)
        except (OverflowError, ZeroDivisionError):
            npv = math.inf
        if math.isfinite(npv):
            return rate, npv
        rate /= 2
    raise CalculationError("IRR calculation did not converge")


def _bisect_irr(cash_flows: Sequence[float]) -> float:
    low, npv_low = _bracket_end(cash_flows, BISECTION_LOW)
    high, npv_high = _bracket_end(cash_flows, BISECTION_HIGH)

    if npv_low * npv_high > 0:
        raise CalculationError("IRR calculation did not converge")

    for _ in range(MAX_BISECTIONS):
        mid = (low + high) / 2
        npv_mid = calculate_npv(cash_flows, mid)
        if abs(npv_mid) < TOLERANCE or (high - low) / 2 < TOLERANCE:
            return mid
        if npv_low * npv_mid < 0:
            high = mid
        else:
            low, npv_low = mid, npv_mid

    return (low + high) / 2


def calculate_irr(cash_flows: Sequence[float], guess: float = DEFAULT_GUESS) -> float:
    """
    Calculate IRR (Internal Rate of Return) of periodic cash flows.

    Args:
        cash_flows: Cash flows, first one at period 0
        guess: Starting rate for Newton-Raphson

    Returns:
        Periodic IRR as decimal (e.g., 0.15 for 15%)

    Raises:
        CalculationError: If the series has no sign change or no root is found
    """
    _require_sign_change(cash_flows)

    rate = guess
    for _ in range(MAX_ITERATIONS):
        try:
            npv = calculate_npv(cash_flows, rate)
            dnpv = _npv_derivative(cash_flows, rate)
        except (OverflowError, ZeroDivisionError):
            break
        if not (math.isfinite(npv) and math.isfinite(dnpv)) or abs(dnpv) < TOLERANCE:
            break

        new_rate = rate - npv / dnpv
        if new_rate <= -1:
            break
        if abs(new_rate - rate) < TOLERANCE:
            return new_rate
        rate = new_rate

    logger.debug("Newton-Raphson stalled at rate %s, bisecting", rate)
    return _bisect_irr(cash_flows)


def calculate_multiple(cash_flows: Sequence[float]) -> float:
    """
    Calculate equity multiple (total inflows / total outflows).

    Raises:
        CalculationError: If the series contains no outflow
    """
    total_inflows = sum(cf for cf in cash_flows if cf > 0)
    total_outflows = abs(sum(cf for cf in cash_flows if cf < 0))

    if total_outflows == 0:
        raise CalculationError("No investment (outflows) found")

    return total_inflows / total_outflows


def calculate_profit(cash_flows: Sequence[float]) -> float:
    """Calculate profit (sum of all cash flows)."""
    return sum(cash_flows)
