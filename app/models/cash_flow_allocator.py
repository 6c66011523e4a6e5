"""
Cash-flow allocation for one projection period.

A positive monthly net cash flow is pushed down the waterfall: fixed rules in
ascending priority, each capped by its monthly amount and the room left under
its annual limit, then the remainder rule takes what is left. A negative net
cash flow is covered by withdrawing from accounts, never below zero. Whatever
cannot be covered is reported as an uncovered deficit.
"""

import logging
from typing import Dict, Iterable, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from .cash_flow_rules import (
    ACCOUNT_TYPE_LABELS,
    DEFAULT_CASH_ACCOUNT_TYPE,
    AccountType,
    CashFlowPriorities,
    FixedRule,
)

logger = logging.getLogger(__name__)

DEFAULT_CASH_RULE_ID = "default_cash"


class AccountBalance(BaseModel):
    """Balance of one account as seen by the allocator."""

    model_config = ConfigDict(frozen=True)

    account_id: str
    title: str
    balance: float = Field(..., ge=0)
    account_type: Optional[AccountType] = Field(
        default=None, description="Waterfall account type this account receives"
    )
    liquidity_rank: int = Field(default=0, description="Lower is drawn first")
    withdrawable: bool = True
    is_default_cash: bool = False


class Allocation(BaseModel):
    """Surplus routed to one waterfall destination."""

    model_config = ConfigDict(frozen=True)

    rule_id: str
    account_type: AccountType
    title: str
    amount: float = Field(..., ge=0)


class Withdrawal(BaseModel):
    """Amount drawn from one account to cover a deficit."""

    model_config = ConfigDict(frozen=True)

    account_id: str
    title: str
    amount: float = Field(..., ge=0)


class AnnualLimitState(BaseModel):
    """Per-rule allocations made so far in one calendar year."""

    model_config = ConfigDict(frozen=True)

    year: Optional[int] = None
    used: Dict[str, float] = Field(default_factory=dict)

    def for_year(self, year: Optional[int]) -> "AnnualLimitState":
        """State valid for ``year``; usage resets when the year changes."""
        if year is None or year == self.year:
            return self
        return AnnualLimitState(year=year)

    def remaining(self, rule: FixedRule) -> Optional[float]:
        """Room left under the rule's annual limit, or None when uncapped."""
        if rule.annual_limit is None:
            return None
        return max(0.0, rule.annual_limit - self.used.get(rule.id, 0.0))

    def with_usage(self, usage: Dict[str, float]) -> "AnnualLimitState":
        used = dict(self.used)
        for rule_id, amount in usage.items():
            used[rule_id] = used.get(rule_id, 0.0) + amount
        return AnnualLimitState(year=self.year, used=used)


class AllocationResult(BaseModel):
    """Outcome of allocating one period's net cash flow."""

    model_config = ConfigDict(frozen=True)

    allocations: List[Allocation] = Field(default_factory=list)
    withdrawals: List[Withdrawal] = Field(default_factory=list)
    remainder_used: float = Field(default=0.0, ge=0)
    uncovered_deficit: float = Field(default=0.0, ge=0)
    limit_state: AnnualLimitState = Field(default_factory=AnnualLimitState)

    @property
    def total_allocated(self) -> float:
        return sum(allocation.amount for allocation in self.allocations)

    @property
    def total_withdrawn(self) -> float:
        return sum(withdrawal.amount for withdrawal in self.withdrawals)

    def by_account_type(self) -> Dict[str, float]:
        """Allocated amounts keyed by destination account type."""
        totals: Dict[str, float] = {}
        for allocation in self.allocations:
            totals[allocation.account_type] = (
                totals.get(allocation.account_type, 0.0) + allocation.amount
            )
        return totals


class CashFlowAllocator:
    """Distributes a surplus or covers a deficit for one period."""

    def allocate(
        self,
        amount: float,
        priorities: CashFlowPriorities,
        accounts: Sequence[AccountBalance] = (),
        limit_state: Optional[AnnualLimitState] = None,
        year: Optional[int] = None,
    ) -> AllocationResult:
        """
        Allocate a monthly surplus or cover a monthly deficit.

        Args:
            amount: Net cash flow for the period (negative for a deficit)
            priorities: Validated waterfall rules
            accounts: Current account balances
            limit_state: Annual-limit usage so far
            year: Calendar year of the period, used to reset annual limits

        Returns:
            AllocationResult with allocations (surplus) or withdrawals (deficit)
            and the updated annual-limit state
        """
        state = (limit_state or AnnualLimitState()).for_year(year)
        if amount >= 0:
            return self._allocate_surplus(amount, priorities, state)
        return self._cover_deficit(-amount, priorities, accounts, state)

    def _allocate_surplus(
        self,
        surplus: float,
        priorities: CashFlowPriorities,
        state: AnnualLimitState,
    ) -> AllocationResult:
        if not priorities.has_enabled_rules:
            allocation = Allocation(
                rule_id=DEFAULT_CASH_RULE_ID,
                account_type=DEFAULT_CASH_ACCOUNT_TYPE,
                title=ACCOUNT_TYPE_LABELS[DEFAULT_CASH_ACCOUNT_TYPE],
                amount=surplus,
            )
            return AllocationResult(
                allocations=[allocation], remainder_used=surplus, limit_state=state
            )

        allocations = []
        usage: Dict[str, float] = {}
        remaining = surplus

        for rule in priorities.ordered_fixed_rules():
            allocated = min(rule.monthly_amount, remaining)
            room = state.remaining(rule)
            if room is not None:
                allocated = min(allocated, room)
            allocated = max(0.0, allocated)
            remaining -= allocated
            if rule.annual_limit is not None and allocated > 0:
                usage[rule.id] = allocated
            allocations.append(
                Allocation(
                    rule_id=rule.id,
                    account_type=rule.account_type,
                    title=rule.title,
                    amount=allocated,
                )
            )

        remainder_used = 0.0
        remainder = priorities.remainder_rule()
        if remainder is not None:
            remainder_used = max(0.0, remaining)
            allocations.append(
                Allocation(
                    rule_id=remainder.id,
                    account_type=remainder.account_type,
                    title=remainder.title,
                    amount=remainder_used,
                )
            )

        return AllocationResult(
            allocations=allocations,
            remainder_used=remainder_used,
            limit_state=state.with_usage(usage),
        )

    def _cover_deficit(
        self,
        deficit: float,
        priorities: CashFlowPriorities,
        accounts: Sequence[AccountBalance],
        state: AnnualLimitState,
    ) -> AllocationResult:
        withdrawals = []
        shortfall = deficit

        for account in self.withdrawal_order(priorities, accounts):
            if shortfall <= 0:
                break
            if account.balance <= 0:
                continue
            drawn = min(account.balance, shortfall)
            shortfall -= drawn
            withdrawals.append(
                Withdrawal(account_id=account.account_id, title=account.title, amount=drawn)
            )

        uncovered = max(0.0, shortfall)
        if uncovered > 0:
            logger.debug(f"Deficit of {deficit:.2f} left {uncovered:.2f} uncovered")

        return AllocationResult(
            withdrawals=withdrawals, uncovered_deficit=uncovered, limit_state=state
        )

    @staticmethod
    def withdrawal_order(
        priorities: CashFlowPriorities, accounts: Iterable[AccountBalance]
    ) -> List[AccountBalance]:
        """
        Order in which accounts are drawn down to cover a deficit.

        The default cash account goes first, then accounts fed by waterfall
        rules in reverse priority (the remainder destination first), then every
        other withdrawable account by liquidity rank, larger balance first.
        """
        eligible = [account for account in accounts if account.withdrawable]
        ordered: List[AccountBalance] = []
        taken = set()

        def take(candidates: Iterable[AccountBalance]) -> None:
            for account in candidates:
                if account.account_id not in taken:
                    taken.add(account.account_id)
                    ordered.append(account)

        take(account for account in eligible if account.is_default_cash)
        for rule in reversed(priorities.enabled_rules()):
            take(
                sorted(
                    (
                        account
                        for account in eligible
                        if account.account_type == rule.account_type
                    ),
                    key=lambda account: (-account.balance, account.account_id),
                )
            )
        take(
            sorted(
                eligible,
                key=lambda account: (
                    account.liquidity_rank,
                    -account.balance,
                    account.account_id,
                ),
            )
        )
        return ordered
