"""
Portfolio Liquidity

Combines independently scheduled financing plans into one monthly payment
timeline and summarizes the portfolio (totals, weighted rate, payments by
lender and by calendar year).

Plans are active per calendar month: a plan counts in every month from its
start month through its end month inclusive, whatever the day of month.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterator, List, Optional, Sequence

from dateutil.relativedelta import relativedelta

from deal_engine.calculations.amortization import (
    AmortizationRow,
    LoanTerms,
    calculate_payment,
    generate_schedule_for,
    remaining_balance_on,
)
from deal_engine.calculations.errors import InvalidParameterError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FinancingPlan:
    """A loan with its active date range, payment and schedule."""

    loan_amount: float
    start_date: date
    end_date: date
    interest_rate: float  # Annual percent
    monthly_payment: float
    lender: str
    schedule: Sequence[AmortizationRow] = ()
    name: str = ""

    @classmethod
    def from_terms(
        cls,
        terms: LoanTerms,
        lender: str,
        name: str = "",
        extra_payments: Optional[Dict[int, float]] = None,
    ) -> "FinancingPlan":
        """Build a plan whose schedule and end date come from the loan terms."""
        schedule = tuple(generate_schedule_for(terms, extra_payments))
        return cls(
            loan_amount=terms.principal,
            start_date=terms.start_date,
            end_date=schedule[-1].payment_date,
            interest_rate=terms.annual_rate,
            monthly_payment=calculate_payment(
                terms.principal, terms.annual_rate, terms.term_years
            ),
            lender=lender,
            schedule=schedule,
            name=name,
        )


@dataclass(frozen=True)
class LiquiditySample:
    """Total payments due across all plans in one calendar month."""

    month: date  # First day of the month
    label: str  # YYYY-MM
    total_payment: float
    active_plans: int


@dataclass(frozen=True)
class PortfolioSummary:
    """Aggregate figures for a set of financing plans."""

    total_loan_amount: float
    total_remaining_principal: float
    total_monthly_payment: float
    weighted_average_rate: float
    payments_by_lender: Dict[str, float]
    payments_by_year: Dict[int, float]
    number_of_plans: int


def _month_start(value: date) -> date:
    return value.replace(day=1)


def _month_index(value: date) -> int:
    return value.year * 12 + value.month - 1


def _month_range(first: date, last: date) -> Iterator[date]:
    """Yield the first day of every month from first to last inclusive."""
    first = _month_start(first)
    last = _month_start(last)
    offset = 0
    month = first
    while month <= last:
        yield month
        offset += 1
        month = first + relativedelta(months=offset)


def _is_active(plan: FinancingPlan, month: date) -> bool:
    return _month_index(plan.start_date) <= _month_index(month) <= _month_index(
        plan.end_date
    )


def _active_months_in_year(plan: FinancingPlan, year: int) -> int:
    first = max(_month_index(plan.start_date), year * 12)
    last = min(_month_index(plan.end_date), year * 12 + 11)
    return max(0, last - first + 1)


def _validate_plans(plans: Sequence[FinancingPlan]) -> None:
    for plan in plans:
        if plan.end_date < plan.start_date:
            raise InvalidParameterError(
                f"Plan {plan.name or plan.lender!r} ends ({plan.end_date}) "
                f"before it starts ({plan.start_date})"
            )


def aggregate(plans: Sequence[FinancingPlan]) -> List[LiquiditySample]:
    """
    Build the monthly payment timeline of a set of plans.

    The timeline runs from the earliest start month to the latest end month.
    Months in which no plan is active are included with a zero total.

    Raises:
        InvalidParameterError: If a plan ends before it starts
    """
    if not plans:
        return []
    _validate_plans(plans)

    earliest_start = min(plan.start_date for plan in plans)
    latest_end = max(plan.end_date for plan in plans)

    timeline = []
    for month in _month_range(earliest_start, latest_end):
        active = [plan for plan in plans if _is_active(plan, month)]
        timeline.append(
            LiquiditySample(
                month=month,
                label=month.strftime("%Y-%m"),
                total_payment=sum(plan.monthly_payment for plan in active),
                active_plans=len(active),
            )
        )

    logger.debug(
        "Aggregated %d plans into %d months", len(plans), len(timeline)
    )
    return timeline


def summarize(
    plans: Sequence[FinancingPlan],
    as_of: Optional[date] = None,
    horizon_years: int = 5,
) -> PortfolioSummary:
    """
    Summarize a set of financing plans.

    Args:
        plans: Financing plans (not modified)
        as_of: Reference date for remaining principal and the first year of
            payments_by_year (defaults to today)
        horizon_years: Number of calendar years in payments_by_year

    Returns:
        PortfolioSummary; all zeros for an empty portfolio

    Raises:
        InvalidParameterError: If a plan ends before it starts or the
            horizon is negative
    """
    if horizon_years < 0:
        raise InvalidParameterError(
            f"Horizon years cannot be negative, got {horizon_years}"
        )
    if as_of is None:
        as_of = date.today()
    years = [as_of.year + offset for offset in range(horizon_years)]

    if not plans:
        return PortfolioSummary(
            total_loan_amount=0.0,
            total_remaining_principal=0.0,
            total_monthly_payment=0.0,
            weighted_average_rate=0.0,
            payments_by_lender={},
            payments_by_year={year: 0.0 for year in years},
            number_of_plans=0,
        )
    _validate_plans(plans)

    total_loan_amount = sum(plan.loan_amount for plan in plans)
    weighted_rate = (
        sum(plan.interest_rate * plan.loan_amount for plan in plans)
        / total_loan_amount
        if total_loan_amount > 0
        else 0.0
    )

    remaining_principal = sum(
        remaining_balance_on(plan.schedule, as_of, default=plan.loan_amount)
        for plan in plans
    )

    payments_by_lender = defaultdict(float)
    for plan in plans:
        payments_by_lender[plan.lender] += plan.monthly_payment * 12

    payments_by_year = {
        year: sum(
            plan.monthly_payment * _active_months_in_year(plan, year) for plan in plans
        )
        for year in years
    }

    return PortfolioSummary(
        total_loan_amount=total_loan_amount,
        total_remaining_principal=remaining_principal,
        total_monthly_payment=sum(plan.monthly_payment for plan in plans),
        weighted_average_rate=weighted_rate,
        payments_by_lender=dict(payments_by_lender),
        payments_by_year=payments_by_year,
        number_of_plans=len(plans),
    )
