"""
Debt amortization calculations for household projections.

This module computes, for one debt and one payment period, the interest and
principal split and the remaining balance under the debt's repayment scheme:

* ``equal_payment``: level annuity payment re-levelled on the current balance
* ``equal_principal``: constant principal, declining interest
* ``bullet``: interest only, principal due in the final period
* ``graced``: interest only during the grace window, then equal payment

Period index 0 is the first payment month, the month after origination. The
last payment falls in the maturity month.
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from .financial_items import DebtItem
from .household import Profile


class PeriodPayment(BaseModel):
    """Breakdown of a single debt payment."""

    period_index: int = Field(..., description="Payment number (0-based)")
    beginning_balance: float = Field(..., ge=0, description="Balance before payment")
    annual_rate: float = Field(..., description="Annual rate applied (%)")
    interest: float = Field(..., ge=0, description="Interest portion of payment")
    principal: float = Field(..., ge=0, description="Principal portion of payment")
    remaining_balance: float = Field(..., ge=0, description="Balance after payment")

    @property
    def payment(self) -> float:
        return self.interest + self.principal


class AmortizationSchedule(BaseModel):
    """Complete repayment schedule for a debt."""

    debt_id: str
    repayment_type: str
    term_months: int = Field(..., description="Months from origination to maturity")
    monthly_payment: float = Field(
        ..., ge=0, description="Regular payment (first payment after any grace)"
    )
    total_interest: float = Field(..., ge=0, description="Interest over life of loan")
    total_principal: float = Field(..., ge=0, description="Principal over life of loan")
    payments: List[PeriodPayment] = Field(default_factory=list)

    @property
    def total_paid(self) -> float:
        return round(self.total_interest + self.total_principal, 2)


class DebtAmortizer:
    """Calculator for per-period debt service under each repayment scheme."""

    @staticmethod
    def period_rate(debt: DebtItem, base_rate: Optional[float] = None) -> float:
        """
        Annual rate (%) in effect for a debt.

        Floating debts pay ``base_rate + spread``; the base rate is an input
        supplied by the caller. Without one, the stored rate is used.
        """
        if debt.rate_type == "floating" and base_rate is not None:
            return max(0.0, base_rate + debt.spread)
        return debt.interest_rate

    @staticmethod
    def calculate_annuity_payment(
        balance: float, monthly_rate: float, remaining_months: int
    ) -> float:
        """
        Level payment that retires ``balance`` over ``remaining_months``.

        Args:
            balance: Outstanding balance
            monthly_rate: Monthly interest rate as a decimal
            remaining_months: Number of remaining payments

        Returns:
            Monthly payment amount
        """
        if balance <= 0:
            return 0.0
        if remaining_months <= 0:
            return balance
        if monthly_rate <= 0:
            return balance / remaining_months
        return balance * monthly_rate / (1 - (1 + monthly_rate) ** -remaining_months)

    @staticmethod
    def effective_grace(debt: DebtItem, term_months: int) -> int:
        """Grace months actually applied, leaving at least one repayment period."""
        if debt.repayment_type != "graced":
            return 0
        return max(0, min(debt.grace_period_months, term_months - 1))

    @classmethod
    def amortize(
        cls,
        debt: DebtItem,
        period_index: int,
        balance: Optional[float] = None,
        base_rate: Optional[float] = None,
        term_months: Optional[int] = None,
    ) -> PeriodPayment:
        """
        Compute one period of debt service.

        Args:
            debt: Debt being repaid
            period_index: Payment number, 0 for the first month after origination
            balance: Balance entering the period (defaults to the principal)
            base_rate: Reference rate for floating debt (%)
            term_months: Months from origination to maturity (defaults to the
                debt's own window)

        Returns:
            Interest, principal and remaining balance for the period
        """
        if balance is None:
            balance = debt.principal
        if term_months is None:
            term_months = debt.term_months()
        annual_rate = cls.period_rate(debt, base_rate)
        balance = max(0.0, balance)

        if balance <= 0:
            return PeriodPayment(
                period_index=period_index,
                beginning_balance=0.0,
                annual_rate=annual_rate,
                interest=0.0,
                principal=0.0,
                remaining_balance=0.0,
            )

        remaining = term_months - period_index
        if remaining <= 0:
            # Past maturity: everything still owed is due now
            return PeriodPayment(
                period_index=period_index,
                beginning_balance=balance,
                annual_rate=annual_rate,
                interest=0.0,
                principal=balance,
                remaining_balance=0.0,
            )

        monthly_rate = annual_rate / 100 / 12
        interest = balance * monthly_rate

        if remaining == 1:
            principal = balance
        elif debt.repayment_type == "bullet":
            principal = 0.0
        elif debt.repayment_type == "equal_principal":
            principal = balance / remaining
        elif (
            debt.repayment_type == "graced"
            and period_index < cls.effective_grace(debt, term_months)
        ):
            principal = 0.0
        else:
            payment = cls.calculate_annuity_payment(balance, monthly_rate, remaining)
            principal = max(0.0, payment - interest)

        principal = min(principal, balance)
        return PeriodPayment(
            period_index=period_index,
            beginning_balance=balance,
            annual_rate=annual_rate,
            interest=interest,
            principal=principal,
            remaining_balance=max(0.0, balance - principal),
        )

    @classmethod
    def schedule(
        cls,
        debt: DebtItem,
        base_rate: Optional[float] = None,
        profile: Optional[Profile] = None,
    ) -> AmortizationSchedule:
        """
        Generate the full repayment schedule from origination to maturity.

        Args:
            debt: Debt to schedule
            base_rate: Reference rate for floating debt (%), held constant
            profile: Household profile, needed when maturity is a retirement marker

        Returns:
            Schedule with the regular monthly payment and total interest
        """
        term_months = debt.term_months(profile)
        payments = []
        balance = debt.principal
        total_interest = 0.0
        total_principal = 0.0

        for period_index in range(max(term_months, 1)):
            if balance <= 0:
                break
            payment = cls.amortize(
                debt,
                period_index,
                balance=balance,
                base_rate=base_rate,
                term_months=term_months,
            )
            payments.append(payment)
            total_interest += payment.interest
            total_principal += payment.principal
            balance = payment.remaining_balance

        grace = cls.effective_grace(debt, term_months)
        if not payments:
            monthly_payment = 0.0
        elif grace < len(payments):
            monthly_payment = payments[grace].payment
        else:
            monthly_payment = payments[0].payment

        return AmortizationSchedule(
            debt_id=debt.id,
            repayment_type=debt.repayment_type,
            term_months=term_months,
            monthly_payment=round(monthly_payment, 2),
            total_interest=round(total_interest, 2),
            total_principal=round(total_principal, 2),
            payments=payments,
        )

    @classmethod
    def balance_at(
        cls,
        debt: DebtItem,
        months_elapsed: int,
        base_rate: Optional[float] = None,
        term_months: Optional[int] = None,
    ) -> float:
        """
        Outstanding balance after ``months_elapsed`` payments from origination.

        Used to bring a loan that started before the projection forward when no
        current balance is stored.
        """
        if term_months is None:
            term_months = debt.term_months()
        balance = debt.principal
        for period_index in range(max(0, months_elapsed)):
            if balance <= 0:
                break
            balance = cls.amortize(
                debt,
                period_index,
                balance=balance,
                base_rate=base_rate,
                term_months=term_months,
            ).remaining_balance
        return balance
