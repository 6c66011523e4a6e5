"""
Protocol interfaces for projection collaborators.

The projection engine depends on these abstractions rather than on concrete
calculators, so a test or an alternative policy can substitute any one of
them. The default implementations are ``RateProvider``, ``DebtAmortizer`` and
``CashFlowAllocator``.
"""

from typing import Optional, Protocol, Sequence

from app.models.assumptions import SimulationAssumptions
from app.models.cash_flow_allocator import (
    AccountBalance,
    AllocationResult,
    AnnualLimitState,
)
from app.models.cash_flow_rules import CashFlowPriorities
from app.models.debt_amortization import PeriodPayment
from app.models.financial_items import DebtItem, FinancialItemBase, RateCategory


class RateResolver(Protocol):
    """Resolves annual growth or return rates."""

    def effective_rate(
        self,
        category: RateCategory,
        item_rate: Optional[float],
        assumptions: SimulationAssumptions,
    ) -> float:
        """
        Resolve the annual rate for a category.

        Args:
            category: Rate category, ``fixed`` meaning the item's own rate
            item_rate: The item's stored annual rate (%), if any
            assumptions: Active assumption set

        Returns:
            Annual rate in percent
        """
        ...

    def resolve_for_item(
        self, item: FinancialItemBase, assumptions: SimulationAssumptions
    ) -> float:
        """Annual rate (%) governing one item."""
        ...


class Amortizer(Protocol):
    """Computes debt service for one period."""

    def amortize(
        self,
        debt: DebtItem,
        period_index: int,
        balance: Optional[float] = None,
        base_rate: Optional[float] = None,
        term_months: Optional[int] = None,
    ) -> PeriodPayment:
        """
        Split one period's payment into interest and principal.

        Args:
            debt: Debt being repaid
            period_index: Payment number, 0 for the first month after origination
            balance: Balance entering the period
            base_rate: Reference rate for floating debt (%)
            term_months: Months from origination to maturity

        Returns:
            Interest, principal and remaining balance
        """
        ...

    def balance_at(
        self,
        debt: DebtItem,
        months_elapsed: int,
        base_rate: Optional[float] = None,
        term_months: Optional[int] = None,
    ) -> float:
        """Balance after a number of payments from origination."""
        ...


class Allocator(Protocol):
    """Distributes a surplus or covers a deficit."""

    def allocate(
        self,
        amount: float,
        priorities: CashFlowPriorities,
        accounts: Sequence[AccountBalance] = (),
        limit_state: Optional[AnnualLimitState] = None,
        year: Optional[int] = None,
    ) -> AllocationResult:
        """
        Allocate one period's net cash flow.

        Args:
            amount: Net cash flow, negative for a deficit
            priorities: Waterfall rules
            accounts: Current balances
            limit_state: Annual-limit usage so far
            year: Calendar year of the period

        Returns:
            AllocationResult with the updated limit state
        """
        ...
