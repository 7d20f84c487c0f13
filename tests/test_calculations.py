"""
Tests for amortization, period metrics and return calculations.
"""

import pytest
from datetime import date

from deal_engine.calculations.amortization import (
    LoanTerms,
    calculate_equity,
    calculate_loan_to_value,
    calculate_payment,
    calculate_repayment_alternatives,
    calculate_repayment_plan,
    calculate_total_cost,
    calculate_total_interest,
    generate_schedule,
    generate_schedule_for,
    remaining_balance_after,
    remaining_balance_on,
)
from deal_engine.calculations.errors import (
    CalculationError,
    InvalidTermsError,
)
from deal_engine.calculations.irr import (
    calculate_irr,
    calculate_multiple,
    calculate_npv,
    calculate_profit,
)
from deal_engine.calculations.metrics import (
    DealParameters,
    calculate_dscr,
    calculate_payback_years,
    compute_deal_metrics,
    compute_period_metrics,
    operating_expense_lines,
)


class TestPayment:
    """Test monthly payment calculation."""

    def test_calculate_payment(self):
        """Test the standard annuity payment."""
        payment = calculate_payment(300000, 4.5, 30)
        assert payment == pytest.approx(1520.06, abs=0.01)

    def test_zero_rate_payment(self):
        """Test that a 0% loan divides principal evenly."""
        assert calculate_payment(120000, 0, 10) == 1000

    @pytest.mark.parametrize(
        "principal, rate, term",
        [(0, 4.5, 30), (-1000, 4.5, 30), (100000, 4.5, 0), (100000, -0.5, 30)],
    )
    def test_invalid_terms(self, principal, rate, term):
        """Test non-positive principal/term and negative rate are rejected."""
        with pytest.raises(InvalidTermsError):
            calculate_payment(principal, rate, term)

    def test_invalid_terms_is_value_error(self):
        """Test engine errors can be handled as ValueError."""
        with pytest.raises(ValueError):
            generate_schedule(0, 4.5, 30, date(2024, 1, 1))


class TestAmortizationSchedule:
    """Test amortization schedule generation."""

    @pytest.fixture
    def schedule(self):
        return generate_schedule(300000, 4.5, 30, date(2024, 1, 1))

    def test_schedule_length_and_periods(self, schedule):
        """Test one contiguous row per month of the term."""
        assert len(schedule) == 360
        assert [row.period for row in schedule] == list(range(1, 361))

    def test_final_balance_is_exactly_zero(self, schedule):
        """Test the closing row retires the balance exactly."""
        assert schedule[-1].remaining_balance == 0.0

    def test_principal_sums_to_loan(self, schedule):
        """Test principal portions reconcile to the original principal."""
        total_principal = sum(row.principal for row in schedule)
        assert total_principal == pytest.approx(300000, rel=1e-6)

    def test_rows_reconcile(self, schedule):
        """Test principal + interest equals the payment on every row."""
        for row in schedule:
            assert row.principal + row.interest == pytest.approx(row.payment, abs=1e-9)

    def test_balance_non_increasing(self, schedule):
        """Test the balance never goes up."""
        balances = [row.remaining_balance for row in schedule]
        assert all(later <= earlier for earlier, later in zip(balances, balances[1:]))

    def test_total_interest(self, schedule):
        """Test total interest over the life of a 300k 4.5% 30y loan."""
        assert calculate_total_interest(schedule) == pytest.approx(247221.60, abs=2.0)
        assert calculate_total_cost(schedule) == pytest.approx(
            300000 + calculate_total_interest(schedule)
        )

    def test_first_row_interest(self, schedule):
        """Test first month's interest is balance times the monthly rate."""
        assert schedule[0].interest == pytest.approx(300000 * 0.045 / 12)

    def test_dates_step_by_calendar_month(self):
        """Test month-end start dates do not drift through short months."""
        schedule = generate_schedule(10000, 5.0, 1, date(2024, 1, 31))
        assert schedule[0].payment_date == date(2024, 1, 31)
        assert schedule[1].payment_date == date(2024, 2, 29)
        assert schedule[2].payment_date == date(2024, 3, 31)
        assert schedule[-1].payment_date == date(2024, 12, 31)

    def test_zero_rate_schedule(self):
        """Test a 0% loan repays equal principal with no interest."""
        schedule = generate_schedule(120000, 0, 10, date(2024, 1, 1))
        assert len(schedule) == 120
        for row in schedule:
            assert row.principal == pytest.approx(1000, abs=1e-6)
            assert row.interest == 0
        assert schedule[-1].remaining_balance == 0.0

    def test_generate_schedule_for_terms(self, schedule):
        """Test LoanTerms produce the same schedule as the raw arguments."""
        terms = LoanTerms(300000, 4.5, 30, date(2024, 1, 1))
        assert generate_schedule_for(terms) == schedule
        assert terms.number_of_payments == 360
        assert terms.monthly_rate == pytest.approx(0.00375)

    def test_schedule_is_deterministic(self, schedule):
        """Test identical inputs produce identical schedules."""
        assert generate_schedule(300000, 4.5, 30, date(2024, 1, 1)) == schedule


class TestExtraPayments:
    """Test extra principal repayments."""

    def test_extra_payment_shortens_schedule(self):
        """Test an early lump sum pays the loan off before term."""
        schedule = generate_schedule(
            100000, 6.0, 5, date(2025, 1, 1), extra_payments={1: 10000}
        )
        assert len(schedule) < 60
        assert schedule[0].extra_payment == 10000
        assert schedule[-1].remaining_balance == 0.0
        assert sum(row.principal for row in schedule) == pytest.approx(100000)

    def test_extra_payment_capped_at_balance(self):
        """Test an oversized extra payment only retires what is owed."""
        schedule = generate_schedule(
            100000, 6.0, 5, date(2025, 1, 1), extra_payments={1: 1000000}
        )
        assert len(schedule) == 1
        assert schedule[0].principal == 100000
        assert schedule[0].interest == pytest.approx(500)
        assert schedule[0].remaining_balance == 0.0
        assert schedule[0].extra_payment < 100000


class TestLoanFigures:
    """Test balance lookups and loan ratios."""

    @pytest.fixture
    def schedule(self):
        return generate_schedule(120000, 0, 10, date(2024, 1, 1))

    def test_remaining_balance_after(self, schedule):
        """Test balance after N payments."""
        assert remaining_balance_after(schedule, 0) == pytest.approx(120000)
        assert remaining_balance_after(schedule, 12) == pytest.approx(108000)
        assert remaining_balance_after(schedule, 500) == 0.0
        assert remaining_balance_after([], 12) == 0.0

    def test_remaining_balance_on(self, schedule):
        """Test balance as of a date uses the latest payment due."""
        assert remaining_balance_on(schedule, date(2023, 12, 31), 120000) == 120000
        assert remaining_balance_on(schedule, date(2024, 3, 15), 120000) == pytest.approx(
            117000
        )

    def test_loan_to_value(self):
        """Test LTV in percent with zero-value guard."""
        assert calculate_loan_to_value(400000, 500000) == pytest.approx(80.0)
        assert calculate_loan_to_value(400000, 0) == 0.0

    def test_equity(self):
        """Test equity may be negative when underwater."""
        assert calculate_equity(500000, 400000) == 100000
        assert calculate_equity(300000, 400000) == -100000


class TestRepaymentPlan:
    """Test loans sized by initial repayment rate."""

    def test_repayment_plan(self):
        """Test payment and payoff of a 300k loan at 2.5% with 3% repayment."""
        plan = calculate_repayment_plan(300000, 2.5, 3)
        assert plan.monthly_payment == pytest.approx(1375.0)
        assert plan.months_to_payoff == 292
        assert plan.term_years == 25
        assert plan.total_interest == pytest.approx(100466.47, abs=0.01)

    def test_zero_rate_repayment_plan(self):
        """Test a 0% loan repays in exactly loan / payment months."""
        plan = calculate_repayment_plan(120000, 0, 10)
        assert plan.monthly_payment == pytest.approx(1000)
        assert plan.months_to_payoff == 120
        assert plan.term_years == 10
        assert plan.total_interest == 0

    def test_invalid_repayment_rate(self):
        """Test repayment rate must be positive."""
        with pytest.raises(InvalidTermsError):
            calculate_repayment_plan(300000, 2.5, 0)

    def test_repayment_alternatives(self):
        """Test shorter-term and lower-payment variants bracket the plan."""
        base = calculate_repayment_plan(300000, 2.5, 4)
        alternatives = calculate_repayment_alternatives(300000, 2.5, 4)
        shorter = alternatives["shorter_term"]
        lower = alternatives["lower_payment"]

        assert shorter.initial_repayment_rate == pytest.approx(6.0)
        assert shorter.monthly_payment == pytest.approx(2125.0)
        assert lower.initial_repayment_rate == pytest.approx(2.8)
        assert lower.monthly_payment == pytest.approx(1325.0)
        assert shorter.months_to_payoff < base.months_to_payoff < lower.months_to_payoff

    def test_repayment_alternative_limits(self):
        """Test the repayment rate is capped at 8% and floored at 1%."""
        assert calculate_repayment_alternatives(300000, 2.5, 6)[
            "shorter_term"
        ].initial_repayment_rate == pytest.approx(8.0)
        assert calculate_repayment_alternatives(300000, 2.5, 1)[
            "lower_payment"
        ].initial_repayment_rate == pytest.approx(1.0)


class TestPeriodMetrics:
    """Test single-period cash flow and ratios."""

    def test_period_metrics(self):
        """Test cash flow, cash-on-cash and cap rate."""
        result = compute_period_metrics(
            gross_income=36000,
            operating_expenses=8480,
            financing_cost=21554.15,
            initial_investment=100000,
            purchase_price=500000,
            vacancy_rate=5,
        )
        assert result.effective_income == pytest.approx(34200)
        assert result.net_operating_income == pytest.approx(25720)
        assert result.cash_flow == pytest.approx(4165.85)
        assert result.cash_on_cash_return_percent == pytest.approx(4.16585)
        assert result.cap_rate_percent == pytest.approx(5.144)
        assert result.debt_service_coverage_ratio == pytest.approx(25720 / 21554.15)

    def test_cap_rate_ignores_financing(self):
        """Test cap rate does not depend on debt service."""
        levered = compute_period_metrics(36000, 8000, 20000, 100000, 500000)
        unlevered = compute_period_metrics(36000, 8000, 0, 100000, 500000)
        assert levered.cap_rate_percent == unlevered.cap_rate_percent
        assert levered.cash_flow < unlevered.cash_flow

    def test_zero_denominators_resolve_to_zero(self):
        """Test ratios with no investment, price or debt service are 0."""
        result = compute_period_metrics(36000, 8000, 0, 0, 0)
        assert result.cash_on_cash_return_percent == 0.0
        assert result.cap_rate_percent == 0.0
        assert result.debt_service_coverage_ratio == 0.0
        assert result.cash_flow == 28000

    def test_dscr(self):
        """Test DSCR with and without debt service."""
        assert calculate_dscr(25000, 20000) == pytest.approx(1.25)
        assert calculate_dscr(25000, 0) == 0.0

    def test_payback_years(self):
        """Test payback period and the no-payback case."""
        assert calculate_payback_years(100000, 5000) == pytest.approx(20)
        assert calculate_payback_years(100000, 0) is None
        assert calculate_payback_years(100000, -500) is None


class TestDealParameters:
    """Test deal parameter derivations."""

    def test_from_purchase_builds_loan(self, sample_deal):
        """Test the loan covers the price above the down payment."""
        assert sample_deal.loan_amount == 400000
        assert sample_deal.loan.annual_rate == 3.5
        assert sample_deal.monthly_payment == pytest.approx(1796.18, abs=0.01)
        assert sample_deal.annual_financing_cost == pytest.approx(
            sample_deal.monthly_payment * 12
        )

    def test_all_cash_purchase(self):
        """Test an all-cash deal has no loan or financing cost."""
        deal = DealParameters.from_purchase(
            purchase_price=300000,
            down_payment=300000,
            monthly_rent=2000,
            annual_rate=4.0,
            term_years=30,
        )
        assert deal.loan is None
        assert deal.annual_financing_cost == 0.0

    def test_from_purchase_rejects_bad_rate(self):
        """Test invalid financing terms surface immediately."""
        with pytest.raises(InvalidTermsError):
            DealParameters.from_purchase(
                purchase_price=300000,
                down_payment=60000,
                monthly_rent=2000,
                annual_rate=-1,
                term_years=30,
            )

    def test_operating_expense_lines(self, sample_deal):
        """Test management fee is charged on gross scheduled rent."""
        lines = operating_expense_lines(sample_deal)
        assert lines["management_fee"] == pytest.approx(2880)
        assert sum(lines.values()) == pytest.approx(8480)

    def test_deal_metrics_use_total_investment(self, sample_deal):
        """Test cash-on-cash divides by down payment + closing + renovation."""
        deal = DealParameters(
            purchase_price=sample_deal.purchase_price,
            down_payment=sample_deal.down_payment,
            monthly_rent=sample_deal.monthly_rent,
            loan=sample_deal.loan,
            closing_costs=5000,
            renovation_costs=15000,
            vacancy_rate=5,
            property_tax=2000,
            insurance=1200,
            maintenance=2400,
            management_fee_percent=8,
        )
        result = compute_deal_metrics(deal)
        assert deal.total_investment == 120000
        assert result.cash_on_cash_return_percent == pytest.approx(
            result.cash_flow / 120000 * 100
        )


class TestIRRCalculations:
    """Test IRR calculation functions."""

    def test_calculate_irr_simple(self):
        """Test IRR calculation with simple cash flows."""
        # Investment of 100, returns of 110 after 1 year = 10% return
        assert calculate_irr([-100, 110]) == pytest.approx(0.10, abs=0.001)

    def test_calculate_irr_multi_period(self):
        """Test IRR with multiple periods."""
        irr = calculate_irr([-100, 20, 20, 20, 20, 120])
        assert irr == pytest.approx(0.20, abs=0.01)

    def test_irr_negative_returns(self):
        """Test IRR with negative return scenario."""
        assert calculate_irr([-100, 40, 40, 10]) < 0

    def test_irr_bisection_fallback(self):
        """Test a poor starting guess still finds the root."""
        assert calculate_irr([-100, 110], guess=50.0) == pytest.approx(0.10, abs=1e-4)

    def test_irr_requires_sign_change(self):
        """Test all-positive or too-short series are rejected."""
        with pytest.raises(CalculationError):
            calculate_irr([100, 100])
        with pytest.raises(CalculationError):
            calculate_irr([-100])

    def test_calculate_npv(self):
        """Test NPV calculation."""
        assert calculate_npv([-100, 50, 50, 50], 0.10) > 0
        assert calculate_npv([-100, 110], 0.10) == pytest.approx(0)

    def test_multiple_and_profit(self):
        """Test equity multiple and profit."""
        assert calculate_multiple([-100, 50, 100]) == pytest.approx(1.5)
        assert calculate_profit([-100, 50, 100]) == 50
        with pytest.raises(CalculationError):
            calculate_multiple([50, 100])

    def test_irr_long_series(self):
        """Test a 400-period series still solves when Newton cannot settle."""
        cash_flows = [-100] + [1] * 399
        irr = calculate_irr(cash_flows)
        assert 0 < irr < 0.01
        assert calculate_npv(cash_flows, irr) == pytest.approx(0, abs=1e-2)

    def test_irr_long_series_overflow(self):
        """Test a large starting guess that overflows falls back to bisection."""
        cash_flows = [-100] + [1] * 399
        assert calculate_irr(cash_flows, guess=1000.0) == pytest.approx(
            calculate_irr(cash_flows), abs=1e-6
        )
