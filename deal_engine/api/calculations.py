"""
Financial calculation API endpoints.

These endpoints accept deal inputs and return calculated results.
Engine errors (invalid terms or parameters) are returned as 400 responses.
"""

from datetime import date
from typing import Dict, List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from deal_engine.calculations import amortization, irr, liquidity, metrics, projection
from deal_engine.config import get_settings

router = APIRouter()


class AmortizationInput(BaseModel):
    """Input for amortization calculation."""

    principal: float
    annual_rate: float  # Percent
    term_years: int
    start_date: Optional[date] = None
    extra_payments: Optional[Dict[int, float]] = None


@router.post("/amortization")
async def calculate_amortization(inputs: AmortizationInput):
    """Generate loan amortization schedule."""
    start_date = inputs.start_date or date.today()

    try:
        schedule = amortization.generate_schedule(
            principal=inputs.principal,
            annual_rate=inputs.annual_rate,
            term_years=inputs.term_years,
            start_date=start_date,
            extra_payments=inputs.extra_payments,
        )
        monthly_payment = amortization.calculate_payment(
            inputs.principal, inputs.annual_rate, inputs.term_years
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "monthly_payment": monthly_payment,
        "schedule": schedule,
        "total_interest": amortization.calculate_total_interest(schedule),
        "total_cost": amortization.calculate_total_cost(schedule),
        "payoff_date": schedule[-1].payment_date,
    }


class RepaymentPlanInput(BaseModel):
    """Input for sizing a loan by its initial repayment rate."""

    loan_amount: float
    annual_rate: float
    initial_repayment_rate: float


@router.post("/repayment-plan")
async def calculate_repayment_plan(inputs: RepaymentPlanInput):
    """Calculate payment, payoff term and total interest of an annuity loan."""
    try:
        return amortization.calculate_repayment_plan(
            inputs.loan_amount, inputs.annual_rate, inputs.initial_repayment_rate
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/repayment-plan/alternatives")
async def calculate_repayment_alternatives(inputs: RepaymentPlanInput):
    """Calculate shorter-term and lower-payment variants of a repayment plan."""
    try:
        return amortization.calculate_repayment_alternatives(
            inputs.loan_amount, inputs.annual_rate, inputs.initial_repayment_rate
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


class DealInput(BaseModel):
    """Deal parameters; the loan finances the price above the down payment."""

    # Acquisition
    purchase_price: float
    down_payment: float
    closing_costs: float = 0.0
    renovation_costs: float = 0.0

    # Financing
    annual_rate: float = 3.5
    term_years: int = 30
    start_date: Optional[date] = None

    # Revenue
    monthly_rent: float
    vacancy_rate: float = 5.0
    management_fee_percent: float = 0.0

    # Annual expenses
    property_tax: float = 0.0
    insurance: float = 0.0
    maintenance: float = 0.0
    utilities: float = 0.0
    hoa_fees: float = 0.0
    other_expenses: float = 0.0

    # Growth
    annual_appreciation: float = 2.0
    annual_rent_increase: float = 2.0
    annual_expense_increase: float = 3.0

    def to_deal(self) -> metrics.DealParameters:
        assumptions = self.model_dump(
            include={
                "closing_costs",
                "renovation_costs",
                "vacancy_rate",
                "management_fee_percent",
                "property_tax",
                "insurance",
                "maintenance",
                "utilities",
                "hoa_fees",
                "other_expenses",
                "annual_appreciation",
                "annual_rent_increase",
                "annual_expense_increase",
            }
        )
        return metrics.DealParameters.from_purchase(
            purchase_price=self.purchase_price,
            down_payment=self.down_payment,
            monthly_rent=self.monthly_rent,
            annual_rate=self.annual_rate,
            term_years=self.term_years,
            start_date=self.start_date,
            **assumptions,
        )


@router.post("/metrics")
async def calculate_metrics(inputs: DealInput):
    """Calculate year-one cash flow and return ratios for a deal."""
    try:
        deal = inputs.to_deal()
        year_one = metrics.compute_deal_metrics(deal)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "metrics": year_one,
        "monthly_payment": deal.monthly_payment,
        "loan_amount": deal.loan_amount,
        "total_investment": deal.total_investment,
        "loan_to_value_percent": amortization.calculate_loan_to_value(
            deal.loan_amount, deal.purchase_price
        ),
        "payback_years": metrics.calculate_payback_years(
            deal.total_investment, year_one.cash_flow
        ),
    }


class AdjustmentInput(BaseModel):
    """Custom scenario multipliers."""

    appreciation: float = 1.0
    rent_increase: float = 1.0
    expense_increase: float = 1.0
    vacancy: float = 1.0


class ProjectionInput(DealInput):
    """Input for multi-year scenario projection."""

    simulation_years: int = 10
    custom: Optional[AdjustmentInput] = None
    selling_cost_percent: Optional[float] = None


@router.post("/projection")
async def calculate_projection(inputs: ProjectionInput):
    """Project base, optimistic, pessimistic and custom scenarios."""
    settings = get_settings()

    if inputs.simulation_years > settings.max_simulation_years:
        raise HTTPException(
            status_code=400,
            detail=f"Simulation years cannot exceed {settings.max_simulation_years}",
        )

    selling_cost_percent = inputs.selling_cost_percent
    if selling_cost_percent is None:
        selling_cost_percent = settings.default_selling_cost_percent

    custom = None
    if inputs.custom is not None:
        custom = projection.ScenarioAdjustment(**inputs.custom.model_dump())

    try:
        deal = inputs.to_deal()
        scenarios = projection.project_scenarios(
            deal, inputs.simulation_years, custom=custom
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "scenarios": scenarios,
        "summaries": {
            name: projection.summarize_projection(deal, rows, selling_cost_percent)
            for name, rows in scenarios.items()
        },
    }


class PlanInput(BaseModel):
    """Financing plan input schema."""

    name: str = ""
    lender: str
    loan_amount: float
    start_date: date
    end_date: date
    interest_rate: float
    monthly_payment: float
    term_years: Optional[int] = None  # Generates a schedule when given

    def to_plan(self) -> liquidity.FinancingPlan:
        schedule = ()
        if self.term_years:
            schedule = tuple(
                amortization.generate_schedule(
                    self.loan_amount,
                    self.interest_rate,
                    self.term_years,
                    self.start_date,
                )
            )
        return liquidity.FinancingPlan(
            loan_amount=self.loan_amount,
            start_date=self.start_date,
            end_date=self.end_date,
            interest_rate=self.interest_rate,
            monthly_payment=self.monthly_payment,
            lender=self.lender,
            schedule=schedule,
            name=self.name,
        )


class LiquidityInput(BaseModel):
    """Input for portfolio liquidity aggregation."""

    plans: List[PlanInput]
    as_of: Optional[date] = None


@router.post("/liquidity")
async def calculate_liquidity(inputs: LiquidityInput):
    """Build the monthly payment timeline and summary for a set of plans."""
    settings = get_settings()

    try:
        plans = [plan.to_plan() for plan in inputs.plans]
        timeline = liquidity.aggregate(plans)
        summary = liquidity.summarize(
            plans,
            as_of=inputs.as_of,
            horizon_years=settings.summary_horizon_years,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {"timeline": timeline, "summary": summary}


class IRRInput(BaseModel):
    """Input for IRR calculation."""

    cash_flows: List[float]


class IRRResponse(BaseModel):
    """Response with IRR calculation."""

    irr: float
    multiple: float
    profit: float
    npv_at_10_percent: float


@router.post("/irr", response_model=IRRResponse)
async def calculate_irr_endpoint(inputs: IRRInput):
    """Calculate IRR for given periodic cash flows."""
    try:
        return IRRResponse(
            irr=irr.calculate_irr(inputs.cash_flows),
            multiple=irr.calculate_multiple(inputs.cash_flows),
            profit=irr.calculate_profit(inputs.cash_flows),
            npv_at_10_percent=irr.calculate_npv(inputs.cash_flows, 0.10),
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
