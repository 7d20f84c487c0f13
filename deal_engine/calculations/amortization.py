"""
Loan Amortization Calculations

Implements fixed-payment loan amortization: monthly payment, full payment
schedule, and the loan figures derived from a schedule.

Rates are annual percentages throughout (e.g., 4.5 for 4.5%).
"""

import logging
import math
from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Optional, Sequence

from dateutil.relativedelta import relativedelta

from deal_engine.calculations.errors import InvalidTermsError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoanTerms:
    """Parameters of a fixed-rate annuity loan."""

    principal: float
    annual_rate: float  # Annual interest rate in percent (e.g., 4.5 for 4.5%)
    term_years: int
    start_date: date  # Date of the first payment

    @property
    def number_of_payments(self) -> int:
        return _number_of_payments(self.term_years)

    @property
    def monthly_rate(self) -> float:
        return self.annual_rate / 100 / 12

    def validate(self) -> None:
        _validate_terms(self.principal, self.annual_rate, self.term_years)


@dataclass(frozen=True)
class AmortizationRow:
    """A single period of an amortization schedule."""

    period: int
    payment_date: date
    payment: float  # principal + interest
    principal: float  # includes any extra repayment
    interest: float
    remaining_balance: float
    extra_payment: float = 0.0


@dataclass(frozen=True)
class RepaymentPlan:
    """Annuity loan sized by an initial repayment rate."""

    loan_amount: float
    annual_rate: float
    initial_repayment_rate: float
    monthly_payment: float
    months_to_payoff: int
    term_years: int
    total_interest: float


def _number_of_payments(term_years: float) -> int:
    return int(round(term_years * 12))


def _validate_terms(principal: float, annual_rate: float, term_years: float) -> None:
    if principal <= 0:
        raise InvalidTermsError(f"Principal must be positive, got {principal}")
    if term_years <= 0 or _number_of_payments(term_years) <= 0:
        raise InvalidTermsError(f"Term must be positive, got {term_years} years")
    if annual_rate < 0:
        raise InvalidTermsError(f"Interest rate cannot be negative, got {annual_rate}")


def calculate_payment(principal: float, annual_rate: float, term_years: float) -> float:
    """
    Calculate the fixed monthly payment of a loan.

    Args:
        principal: Loan principal amount
        annual_rate: Annual interest rate in percent (e.g., 4.5 for 4.5%)
        term_years: Loan term in years

    Returns:
        Monthly payment amount (full precision)

    Raises:
        InvalidTermsError: If the terms cannot be amortized
    """
    _validate_terms(principal, annual_rate, term_years)

    monthly_rate = annual_rate / 100 / 12
    num_payments = _number_of_payments(term_years)

    if monthly_rate == 0:
        return principal / num_payments

    growth = (1 + monthly_rate) ** num_payments
    return principal * monthly_rate * growth / (growth - 1)


def generate_schedule(
    principal: float,
    annual_rate: float,
    term_years: float,
    start_date: date,
    extra_payments: Optional[Dict[int, float]] = None,
) -> List[AmortizationRow]:
    """
    Generate the full amortization schedule of a loan.

    Each row is dated one calendar month after the previous one, always
    counted from ``start_date`` so short months never shift later dates.
    The closing row absorbs floating-point drift: its principal is whatever
    balance remains, so the schedule always ends at exactly zero.

    Args:
        principal: Loan principal amount
        annual_rate: Annual interest rate in percent
        term_years: Loan term in years
        start_date: Date of the first payment
        extra_payments: Optional mapping of period number to an additional
            principal repayment made in that period

    Returns:
        List of amortization rows, one per payment

    Raises:
        InvalidTermsError: If the terms cannot be amortized
    """
    payment = calculate_payment(principal, annual_rate, term_years)
    monthly_rate = annual_rate / 100 / 12
    num_payments = _number_of_payments(term_years)
    extra_payments = extra_payments or {}

    schedule = []
    balance = principal

    for period in range(1, num_payments + 1):
        interest = balance * monthly_rate
        regular_principal = payment - interest
        extra = max(0.0, float(extra_payments.get(period, 0.0)))
        principal_pmt = regular_principal + extra

        if period == num_payments or principal_pmt >= balance:
            # Pay off the remaining balance
            extra = min(extra, max(0.0, balance - regular_principal))
            principal_pmt = balance
            balance = 0.0
        else:
            balance -= principal_pmt

        schedule.append(
            AmortizationRow(
                period=period,
                payment_date=start_date + relativedelta(months=period - 1),
                payment=principal_pmt + interest,
                principal=principal_pmt,
                interest=interest,
                remaining_balance=balance,
                extra_payment=extra,
            )
        )

        if balance == 0.0:
            break

    logger.debug(
        "Generated %d-period schedule for %.2f at %.3f%%",
        len(schedule),
        principal,
        annual_rate,
    )
    return schedule


def generate_schedule_for(
    terms: LoanTerms, extra_payments: Optional[Dict[int, float]] = None
) -> List[AmortizationRow]:
    """Generate the amortization schedule for a LoanTerms record."""
    return generate_schedule(
        terms.principal,
        terms.annual_rate,
        terms.term_years,
        terms.start_date,
        extra_payments,
    )


def calculate_total_interest(schedule: Sequence[AmortizationRow]) -> float:
    """Calculate total interest paid over a schedule."""
    return sum(row.interest for row in schedule)


def calculate_total_cost(schedule: Sequence[AmortizationRow]) -> float:
    """Calculate total of all payments (principal + interest) over a schedule."""
    return sum(row.payment for row in schedule)


def remaining_balance_after(
    schedule: Sequence[AmortizationRow], payments_made: int
) -> float:
    """
    Balance outstanding after a number of payments.

    Returns the original principal when no payment has been made and zero
    once the schedule is exhausted.
    """
    if not schedule:
        return 0.0
    if payments_made <= 0:
        first = schedule[0]
        return first.remaining_balance + first.principal
    if payments_made >= len(schedule):
        return schedule[-1].remaining_balance
    return schedule[payments_made - 1].remaining_balance


def remaining_balance_on(
    schedule: Sequence[AmortizationRow], as_of: date, default: float
) -> float:
    """
    Balance according to the most recent payment dated on or before ``as_of``.

    ``default`` is returned when no payment has fallen due yet.
    """
    due = [row for row in schedule if row.payment_date <= as_of]
    if not due:
        return default
    return max(due, key=lambda row: row.payment_date).remaining_balance


def calculate_loan_to_value(loan_amount: float, property_value: float) -> float:
    """Loan-to-value ratio in percent (0 when the property value is not positive)."""
    if property_value <= 0:
        return 0.0
    return loan_amount / property_value * 100


def calculate_equity(property_value: float, loan_balance: float) -> float:
    """Owner's equity; negative when the loan exceeds the property value."""
    return property_value - loan_balance


def calculate_repayment_plan(
    loan_amount: float, annual_rate: float, initial_repayment_rate: float
) -> RepaymentPlan:
    """
    Size an annuity loan by its initial repayment rate.

    The annual payment is fixed at (interest rate + repayment rate) of the
    original loan; the term follows from how long that payment takes to
    retire the balance.

    Args:
        loan_amount: Loan principal
        annual_rate: Annual interest rate in percent
        initial_repayment_rate: First-year principal repayment in percent
            of the loan amount

    Returns:
        RepaymentPlan with payment, payoff months, and total interest
    """
    if loan_amount <= 0:
        raise InvalidTermsError(f"Loan amount must be positive, got {loan_amount}")
    if annual_rate < 0:
        raise InvalidTermsError(f"Interest rate cannot be negative, got {annual_rate}")
    if initial_repayment_rate <= 0:
        raise InvalidTermsError(
            f"Initial repayment rate must be positive, got {initial_repayment_rate}"
        )

    monthly_rate = annual_rate / 100 / 12
    monthly_payment = loan_amount * (annual_rate + initial_repayment_rate) / 100 / 12

    if monthly_rate == 0:
        exact_months = loan_amount / monthly_payment
    else:
        exact_months = math.log(
            monthly_payment / (monthly_payment - loan_amount * monthly_rate)
        ) / math.log(1 + monthly_rate)
    # Guard against 359.99999 -> 360 style float noise
    months = max(1, math.ceil(exact_months - 1e-9))

    balance = loan_amount
    total_interest = 0.0
    for _ in range(months):
        interest = balance * monthly_rate
        total_interest += interest
        balance -= min(monthly_payment - interest, balance)

    return RepaymentPlan(
        loan_amount=loan_amount,
        annual_rate=annual_rate,
        initial_repayment_rate=initial_repayment_rate,
        monthly_payment=monthly_payment,
        months_to_payoff=months,
        term_years=math.ceil(months / 12),
        total_interest=total_interest,
    )


SHORTER_TERM_FACTOR = 1.5
MAX_REPAYMENT_RATE = 8.0
LOWER_PAYMENT_FACTOR = 0.7
MIN_REPAYMENT_RATE = 1.0


def calculate_repayment_alternatives(
    loan_amount: float, annual_rate: float, initial_repayment_rate: float
) -> Dict[str, RepaymentPlan]:
    """
    Re-size a repayment plan toward a shorter term or a lower payment.

    The shorter-term plan raises the repayment rate by half (at most 8%);
    the lower-payment plan cuts it to 70% (at least 1%).

    Returns:
        Dict with "shorter_term" and "lower_payment" plans
    """
    shorter = min(initial_repayment_rate * SHORTER_TERM_FACTOR, MAX_REPAYMENT_RATE)
    lower = max(initial_repayment_rate * LOWER_PAYMENT_FACTOR, MIN_REPAYMENT_RATE)
    return {
        "shorter_term": calculate_repayment_plan(loan_amount, annual_rate, shorter),
        "lower_payment": calculate_repayment_plan(loan_amount, annual_rate, lower),
    }
