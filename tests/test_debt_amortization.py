"""
Tests for debt amortization.

This module tests the four repayment schemes, floating rates, the
past-maturity guard and bringing a pre-existing loan forward.
"""

import pytest

from app.models.debt_amortization import DebtAmortizer
from app.models.financial_items import DebtItem


def make_debt(**overrides) -> DebtItem:
    data = dict(
        id="loan",
        title="Loan",
        principal=10000,
        interest_rate=5.0,
        start_year=2024,
        start_month=12,
        end_year=2029,
        end_month=12,
    )
    data.update(overrides)
    return DebtItem(**data)


class TestAnnuityPayment:
    """Test the level payment formula."""

    def test_standard_payment(self):
        payment = DebtAmortizer.calculate_annuity_payment(10000, 0.005, 12)
        assert abs(payment - 860.66) < 0.01

    def test_zero_rate(self):
        assert DebtAmortizer.calculate_annuity_payment(1200, 0.0, 12) == 100

    def test_degenerate_terms(self):
        assert DebtAmortizer.calculate_annuity_payment(500, 0.01, 0) == 500
        assert DebtAmortizer.calculate_annuity_payment(0, 0.01, 12) == 0


class TestEqualPayment:
    def test_principal_sums_to_loan(self):
        debt = make_debt(principal=250000, interest_rate=4.5, end_year=2054)
        schedule = DebtAmortizer.schedule(debt)

        assert len(schedule.payments) == schedule.term_months
        assert abs(sum(p.principal for p in schedule.payments) - 250000) < 0.01
        assert schedule.payments[-1].remaining_balance == 0

    def test_level_payment(self):
        debt = make_debt(principal=10000, interest_rate=6.0, end_year=2025)
        schedule = DebtAmortizer.schedule(debt)

        assert schedule.term_months == 12
        assert abs(schedule.monthly_payment - 860.66) < 0.01
        for payment in schedule.payments:
            assert abs(payment.payment - 860.66) < 0.01

    def test_first_period_split(self):
        debt = make_debt(principal=10000, interest_rate=6.0, end_year=2025)
        payment = DebtAmortizer.amortize(debt, 0)

        assert abs(payment.interest - 50.0) < 0.01
        assert abs(payment.principal - 810.66) < 0.01
        assert abs(payment.remaining_balance - 9189.34) < 0.01


class TestEqualPrincipal:
    def test_constant_principal_declining_payment(self):
        debt = make_debt(
            principal=12000, interest_rate=6.0, end_year=2025, repayment_type="equal_principal"
        )
        schedule = DebtAmortizer.schedule(debt)

        principals = [p.principal for p in schedule.payments]
        totals = [p.payment for p in schedule.payments]
        assert all(abs(principal - 1000) < 0.01 for principal in principals)
        assert all(later < earlier for earlier, later in zip(totals, totals[1:]))
        assert abs(schedule.payments[0].interest - 60.0) < 0.01
        assert schedule.payments[-1].remaining_balance == 0


class TestBullet:
    def test_interest_only_then_principal(self):
        debt = make_debt(repayment_type="bullet")
        schedule = DebtAmortizer.schedule(debt)

        assert schedule.term_months == 60
        for payment in schedule.payments[:59]:
            assert abs(payment.interest - 41.67) < 0.01
            assert payment.principal == 0
            assert payment.remaining_balance == 10000

        final = schedule.payments[59]
        assert abs(final.interest - 41.67) < 0.01
        assert final.principal == 10000
        assert final.remaining_balance == 0
        assert abs(schedule.total_interest - 2500.0) < 0.01


class TestGraced:
    def test_flat_then_decreasing_to_zero(self):
        debt = make_debt(
            principal=12000,
            interest_rate=12.0,
            end_year=2026,
            repayment_type="graced",
            grace_period_months=6,
        )
        schedule = DebtAmortizer.schedule(debt)
        balances = [p.remaining_balance for p in schedule.payments]

        assert schedule.term_months == 24
        assert balances[:6] == [12000] * 6
        after_grace = balances[5:]
        assert all(later < earlier for earlier, later in zip(after_grace, after_grace[1:]))
        assert balances[-1] == 0

    def test_regular_payment_is_first_post_grace_payment(self):
        debt = make_debt(
            principal=12000,
            interest_rate=12.0,
            end_year=2026,
            repayment_type="graced",
            grace_period_months=6,
        )
        schedule = DebtAmortizer.schedule(debt)
        expected = DebtAmortizer.calculate_annuity_payment(12000, 0.01, 18)

        assert abs(schedule.payments[0].payment - 120.0) < 0.01
        assert abs(schedule.monthly_payment - expected) < 0.01

    def test_grace_longer_than_term_leaves_final_payment(self):
        debt = make_debt(
            principal=1000,
            interest_rate=0.0,
            end_year=2025,
            repayment_type="graced",
            grace_period_months=600,
        )
        assert DebtAmortizer.effective_grace(debt, 12) == 11
        schedule = DebtAmortizer.schedule(debt)
        assert schedule.payments[-1].principal == 1000


class TestRatesAndGuards:
    def test_floating_rate_uses_base_plus_spread(self):
        debt = make_debt(rate_type="floating", spread=1.5, interest_rate=9.0)
        assert DebtAmortizer.period_rate(debt, base_rate=3.5) == 5.0
        assert DebtAmortizer.period_rate(debt) == 9.0

    def test_floating_rate_floored_at_zero(self):
        debt = make_debt(rate_type="floating", spread=-4.0)
        assert DebtAmortizer.period_rate(debt, base_rate=2.0) == 0.0

    def test_past_maturity_due_in_full(self):
        debt = make_debt()
        payment = DebtAmortizer.amortize(debt, 60, balance=2500)

        assert payment.interest == 0
        assert payment.principal == 2500
        assert payment.remaining_balance == 0

    def test_zero_length_term(self):
        debt = make_debt(start_year=2025, start_month=6, end_year=2025, end_month=6)
        schedule = DebtAmortizer.schedule(debt)

        assert schedule.term_months == 0
        assert schedule.payments[0].principal == 10000

    def test_paid_off_balance_is_inert(self):
        payment = DebtAmortizer.amortize(make_debt(), 3, balance=0)
        assert payment.payment == 0
        assert payment.remaining_balance == 0

    def test_balance_at_matches_schedule(self):
        debt = make_debt(interest_rate=6.0)
        schedule = DebtAmortizer.schedule(debt)

        assert DebtAmortizer.balance_at(debt, 0) == 10000
        assert abs(
            DebtAmortizer.balance_at(debt, 24) - schedule.payments[23].remaining_balance
        ) < 1e-6

    def test_total_paid(self):
        schedule = DebtAmortizer.schedule(make_debt(repayment_type="bullet"))
        assert schedule.total_paid == pytest.approx(12500.0, abs=0.01)
