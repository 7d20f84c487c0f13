"""
Multi-Year Cash Flow Projection

Projects annual cash flows of a rental property under compounding rent,
expense and value growth. Scenarios are expressed as multipliers on the
deal's base growth rates, so base, optimistic and pessimistic runs share a
single projection loop.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from deal_engine.calculations.amortization import (
    generate_schedule_for,
    remaining_balance_after,
)
from deal_engine.calculations.errors import CalculationError, InvalidParameterError
from deal_engine.calculations.irr import calculate_irr, calculate_multiple
from deal_engine.calculations.metrics import (
    DealParameters,
    compute_period_metrics,
    operating_expense_lines,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScenarioAdjustment:
    """Multipliers applied to a deal's base growth and vacancy rates."""

    appreciation: float = 1.0
    rent_increase: float = 1.0
    expense_increase: float = 1.0
    vacancy: float = 1.0


BASE = ScenarioAdjustment()
OPTIMISTIC = ScenarioAdjustment(
    appreciation=1.5, rent_increase=1.5, expense_increase=0.8, vacancy=0.5
)
PESSIMISTIC = ScenarioAdjustment(
    appreciation=0.5, rent_increase=0.5, expense_increase=1.5, vacancy=2.0
)

SCENARIOS: Dict[str, ScenarioAdjustment] = {
    "base": BASE,
    "optimistic": OPTIMISTIC,
    "pessimistic": PESSIMISTIC,
}


@dataclass(frozen=True)
class EscalationState:
    """Rent, expense lines and property value at the start of a projection year."""

    monthly_rent: float
    expense_lines: Tuple[Tuple[str, float], ...]
    property_value: float

    @classmethod
    def initial(cls, deal: DealParameters) -> "EscalationState":
        return cls(
            monthly_rent=deal.monthly_rent,
            expense_lines=tuple(operating_expense_lines(deal).items()),
            property_value=deal.purchase_price,
        )

    @property
    def operating_expenses(self) -> float:
        return sum(amount for _, amount in self.expense_lines)

    def escalate(
        self, rent_increase: float, expense_increase: float, appreciation: float
    ) -> "EscalationState":
        """Return the state one year later; rates are in percent."""
        return EscalationState(
            monthly_rent=self.monthly_rent * (1 + rent_increase / 100),
            expense_lines=tuple(
                (name, amount * (1 + expense_increase / 100))
                for name, amount in self.expense_lines
            ),
            property_value=self.property_value * (1 + appreciation / 100),
        )


@dataclass(frozen=True)
class YearlyCashFlow:
    """One projected year."""

    year: int
    income: float  # Effective gross income after vacancy
    operating_expenses: float
    financing_cost: float
    expenses: float  # Operating expenses + financing cost
    cash_flow: float
    cumulative_cash_flow: float
    property_value: float  # End of year, after appreciation
    loan_balance: float  # End of year
    equity: float


@dataclass(frozen=True)
class ProjectionSummary:
    """Aggregate return figures for a projected series."""

    total_cash_flow: float
    average_annual_cash_flow: float
    cash_on_cash_return_percent: float
    break_even_year: int
    final_property_value: float
    final_loan_balance: float
    final_equity: float
    selling_costs: float
    net_sale_proceeds: float
    equity_multiple: Optional[float]
    irr_percent: Optional[float]


def project(
    deal: DealParameters,
    simulation_years: int,
    adjustment: ScenarioAdjustment = BASE,
) -> List[YearlyCashFlow]:
    """
    Project annual cash flows for a deal.

    Each year is measured from the current escalation state, then the state
    is escalated for the following year. Debt service stays at the loan's
    fixed annual payment for every projected year.

    Args:
        deal: Deal parameters (not modified)
        simulation_years: Number of years to project
        adjustment: Scenario multipliers for the growth and vacancy rates

    Returns:
        List of YearlyCashFlow, one per year starting at year 1

    Raises:
        InvalidParameterError: If simulation_years is not positive
    """
    if simulation_years <= 0:
        raise InvalidParameterError(
            f"Simulation years must be positive, got {simulation_years}"
        )

    rent_increase = deal.annual_rent_increase * adjustment.rent_increase
    expense_increase = deal.annual_expense_increase * adjustment.expense_increase
    appreciation = deal.annual_appreciation * adjustment.appreciation
    vacancy_rate = deal.vacancy_rate * adjustment.vacancy

    financing_cost = deal.annual_financing_cost
    schedule = generate_schedule_for(deal.loan) if deal.loan else []

    state = EscalationState.initial(deal)
    cumulative_cash_flow = 0.0
    rows = []

    for year in range(1, simulation_years + 1):
        metrics = compute_period_metrics(
            gross_income=state.monthly_rent * 12,
            operating_expenses=state.operating_expenses,
            financing_cost=financing_cost,
            initial_investment=deal.total_investment,
            purchase_price=deal.purchase_price,
            vacancy_rate=vacancy_rate,
        )
        cumulative_cash_flow += metrics.cash_flow

        next_state = state.escalate(rent_increase, expense_increase, appreciation)
        loan_balance = remaining_balance_after(schedule, year * 12)

        rows.append(
            YearlyCashFlow(
                year=year,
                income=metrics.effective_income,
                operating_expenses=metrics.operating_expenses,
                financing_cost=financing_cost,
                expenses=metrics.operating_expenses + financing_cost,
                cash_flow=metrics.cash_flow,
                cumulative_cash_flow=cumulative_cash_flow,
                property_value=next_state.property_value,
                loan_balance=loan_balance,
                equity=next_state.property_value - loan_balance,
            )
        )
        state = next_state

    logger.debug(
        "Projected %d years with %s, cumulative cash flow %.2f",
        simulation_years,
        adjustment,
        cumulative_cash_flow,
    )
    return rows


def project_scenarios(
    deal: DealParameters,
    simulation_years: int,
    custom: Optional[ScenarioAdjustment] = None,
) -> Dict[str, List[YearlyCashFlow]]:
    """
    Project the base, optimistic, pessimistic and custom scenarios of a deal.

    The custom scenario defaults to the identity adjustment.
    """
    runs = {
        name: project(deal, simulation_years, adjustment)
        for name, adjustment in SCENARIOS.items()
    }
    runs["custom"] = project(deal, simulation_years, custom or BASE)
    return runs


def find_break_even_year(rows: Sequence[YearlyCashFlow]) -> int:
    """First year whose cumulative cash flow is positive, 0 if none."""
    for row in rows:
        if row.cumulative_cash_flow > 0:
            return row.year
    return 0


def summarize_projection(
    deal: DealParameters,
    rows: Sequence[YearlyCashFlow],
    selling_cost_percent: float = 6.0,
) -> ProjectionSummary:
    """
    Summarize a projected series, assuming a sale at the end of the last year.

    The IRR and equity multiple cover the up-front investment, every year's
    cash flow, and the net sale proceeds (sale price less selling costs and
    the outstanding loan). Either is None when it cannot be computed.
    """
    if not rows:
        raise InvalidParameterError("Cannot summarize an empty projection")

    final = rows[-1]
    total_cash_flow = final.cumulative_cash_flow
    investment = deal.total_investment

    selling_costs = final.property_value * selling_cost_percent / 100
    net_sale_proceeds = final.property_value - selling_costs - final.loan_balance

    cash_flows = [-investment] + [row.cash_flow for row in rows]
    cash_flows[-1] += net_sale_proceeds

    try:
        irr_percent = calculate_irr(cash_flows) * 100
    except CalculationError as e:
        logger.warning("IRR not available for projection: %s", e)
        irr_percent = None

    try:
        equity_multiple = calculate_multiple(cash_flows)
    except CalculationError:
        equity_multiple = None

    return ProjectionSummary(
        total_cash_flow=total_cash_flow,
        average_annual_cash_flow=total_cash_flow / len(rows),
        cash_on_cash_return_percent=(
            rows[0].cash_flow / investment * 100 if investment > 0 else 0.0
        ),
        break_even_year=find_break_even_year(rows),
        final_property_value=final.property_value,
        final_loan_balance=final.loan_balance,
        final_equity=final.equity,
        selling_costs=selling_costs,
        net_sale_proceeds=net_sale_proceeds,
        equity_multiple=equity_multiple,
        irr_percent=irr_percent,
    )
