"""
Period Metrics

Cash flow and return ratios for a single period (normally one year) of a
rental property, plus the deal parameters those figures are derived from.

Ratios whose denominator is not positive resolve to 0 instead of raising;
they are reporting metrics, not control values.
"""

from dataclasses import dataclass
from datetime import date
from typing import Dict, Optional

from deal_engine.calculations.amortization import LoanTerms, calculate_payment


@dataclass(frozen=True)
class DealParameters:
    """Snapshot of a rental property acquisition and its operating assumptions."""

    purchase_price: float
    down_payment: float
    monthly_rent: float
    loan: Optional[LoanTerms] = None  # None for an all-cash purchase
    closing_costs: float = 0.0
    renovation_costs: float = 0.0
    vacancy_rate: float = 0.0  # Percent of gross rent
    management_fee_percent: float = 0.0  # Percent of gross scheduled rent

    # Annual operating expenses
    property_tax: float = 0.0
    insurance: float = 0.0
    maintenance: float = 0.0
    utilities: float = 0.0
    hoa_fees: float = 0.0
    other_expenses: float = 0.0

    # Annual growth rates in percent
    annual_appreciation: float = 2.0
    annual_rent_increase: float = 2.0
    annual_expense_increase: float = 3.0

    @classmethod
    def from_purchase(
        cls,
        purchase_price: float,
        down_payment: float,
        monthly_rent: float,
        annual_rate: float,
        term_years: int,
        start_date: Optional[date] = None,
        **assumptions,
    ) -> "DealParameters":
        """Build deal parameters financing everything above the down payment."""
        if start_date is None:
            start_date = date.today()

        loan_amount = purchase_price - down_payment
        loan = None
        if loan_amount > 0:
            loan = LoanTerms(
                principal=loan_amount,
                annual_rate=annual_rate,
                term_years=term_years,
                start_date=start_date,
            )
            loan.validate()

        return cls(
            purchase_price=purchase_price,
            down_payment=down_payment,
            monthly_rent=monthly_rent,
            loan=loan,
            **assumptions,
        )

    @property
    def loan_amount(self) -> float:
        return self.loan.principal if self.loan else 0.0

    @property
    def total_investment(self) -> float:
        """Cash invested up front: down payment, closing and renovation costs."""
        return self.down_payment + self.closing_costs + self.renovation_costs

    @property
    def gross_annual_rent(self) -> float:
        return self.monthly_rent * 12

    @property
    def monthly_payment(self) -> float:
        if self.loan is None:
            return 0.0
        return calculate_payment(
            self.loan.principal, self.loan.annual_rate, self.loan.term_years
        )

    @property
    def annual_financing_cost(self) -> float:
        return self.monthly_payment * 12


@dataclass(frozen=True)
class PeriodMetrics:
    """Cash flow and return ratios for one period."""

    effective_income: float
    operating_expenses: float
    financing_cost: float
    net_operating_income: float
    cash_flow: float
    cash_on_cash_return_percent: float
    cap_rate_percent: float
    debt_service_coverage_ratio: float


def operating_expense_lines(deal: DealParameters) -> Dict[str, float]:
    """
    Annual operating expense categories of a deal.

    The management fee is charged on gross scheduled rent and, once set,
    escalates with the other expense lines.
    """
    return {
        "property_tax": deal.property_tax,
        "insurance": deal.insurance,
        "maintenance": deal.maintenance,
        "utilities": deal.utilities,
        "hoa_fees": deal.hoa_fees,
        "other_expenses": deal.other_expenses,
        "management_fee": deal.gross_annual_rent * deal.management_fee_percent / 100,
    }


def compute_period_metrics(
    gross_income: float,
    operating_expenses: float,
    financing_cost: float,
    initial_investment: float,
    purchase_price: float,
    vacancy_rate: float = 0.0,
) -> PeriodMetrics:
    """
    Calculate cash flow and return ratios for one period.

    Args:
        gross_income: Scheduled rent for the period
        operating_expenses: Operating expenses for the period
        financing_cost: Debt service for the period
        initial_investment: Cash invested (denominator of cash-on-cash)
        purchase_price: Property price (denominator of cap rate)
        vacancy_rate: Vacancy and collection loss in percent

    Returns:
        PeriodMetrics for the period
    """
    effective_income = gross_income * (1 - vacancy_rate / 100)
    noi = effective_income - operating_expenses
    cash_flow = effective_income - (operating_expenses + financing_cost)

    cash_on_cash = (
        cash_flow / initial_investment * 100 if initial_investment > 0 else 0.0
    )
    # Cap rate is financing-independent
    cap_rate = noi / purchase_price * 100 if purchase_price > 0 else 0.0

    return PeriodMetrics(
        effective_income=effective_income,
        operating_expenses=operating_expenses,
        financing_cost=financing_cost,
        net_operating_income=noi,
        cash_flow=cash_flow,
        cash_on_cash_return_percent=cash_on_cash,
        cap_rate_percent=cap_rate,
        debt_service_coverage_ratio=calculate_dscr(noi, financing_cost),
    )


def compute_deal_metrics(deal: DealParameters) -> PeriodMetrics:
    """Year-one metrics of a deal, measured against its total cash investment."""
    return compute_period_metrics(
        gross_income=deal.gross_annual_rent,
        operating_expenses=sum(operating_expense_lines(deal).values()),
        financing_cost=deal.annual_financing_cost,
        initial_investment=deal.total_investment,
        purchase_price=deal.purchase_price,
        vacancy_rate=deal.vacancy_rate,
    )


def calculate_dscr(noi: float, debt_service: float) -> float:
    """Debt Service Coverage Ratio; 0 when there is no debt service."""
    if debt_service <= 0:
        return 0.0
    return noi / debt_service


def calculate_payback_years(
    initial_investment: float, annual_cash_flow: float
) -> Optional[float]:
    """Years of constant cash flow needed to recover the investment, None if never."""
    if annual_cash_flow <= 0:
        return None
    return initial_investment / annual_cash_flow
