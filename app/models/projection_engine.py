"""
Month-by-month household projection engine.

The engine is a deterministic state machine with one state per calendar month
from the horizon start to the horizon end. Each month it:

1. computes the ages of self and spouse
2. selects the items active in the month
3. sums income (items, pension payouts, rental income, sale proceeds)
4. sums expenses (items, rent, upkeep, purchases)
5. amortizes every outstanding debt
6. grows every balance-bearing account and property
7. credits scheduled contributions and nets the month's cash flow
8. pushes the surplus down the waterfall or draws accounts down for a deficit
9. flags depletion without stopping
10. emits a snapshot

A run reads its config and nothing else: no clock, no I/O, no state shared
between runs. Identical configs give identical results.
"""

import logging
from typing import Dict, List, Optional

from pydantic import BaseModel

from .assumptions import SimulationAssumptions
from .cash_flow_allocator import (
    AccountBalance,
    AllocationResult,
    AnnualLimitState,
    CashFlowAllocator,
)
from .cash_flow_rules import ACCOUNT_TYPE_LABELS, DEFAULT_CASH_ACCOUNT_TYPE, AccountType
from .debt_amortization import DebtAmortizer
from .financial_items import (
    DEPOSIT_SAVINGS_TYPES,
    PENSION_LIQUIDITY_RANK,
    AssetItem,
    DebtItem,
    ExpenseItem,
    FinancialItemBase,
    IncomeItem,
    PensionItem,
    RealEstateItem,
    SavingsItem,
    sort_items,
)
from .household import Profile
from .rate_provider import RateProvider
from .simulation.config import ProjectionConfig
from .simulation.protocols import Allocator, Amortizer, RateResolver
from .simulation.result import (
    BalanceEntry,
    BreakdownEntry,
    MonthlySnapshot,
    SimulationResult,
)
from .snapshot_aggregator import SnapshotAggregator
from .time_grid import (
    annual_to_monthly_rate,
    from_month_index,
    is_in_window,
    months_between,
)

logger = logging.getLogger(__name__)

DEFAULT_CASH_ACCOUNT_ID = "default_cash"

# Rate category for waterfall destinations without a matching item
WATERFALL_RATE_CATEGORIES = {
    "pension_savings": "pension",
    "irp": "pension",
    "isa": "investment",
    "investment": "investment",
    "savings": "savings",
    "checking": "savings",
}
PENSION_ACCOUNT_TYPES = {"pension_savings", "irp"}


def savings_account_type(item: SavingsItem) -> AccountType:
    """Waterfall account type that a savings item receives."""
    if item.type == "checking":
        return "checking"
    if item.type == "isa":
        return "isa"
    if item.type in DEPOSIT_SAVINGS_TYPES:
        return "savings"
    return "investment"


def pension_account_type(item: PensionItem) -> Optional[AccountType]:
    if item.type in PENSION_ACCOUNT_TYPES:
        return item.type  # type: ignore[return-value]
    return None


class AccountState(BaseModel):
    """Running balance of one account during a run."""

    account_id: str
    title: str
    category: str
    balance: float
    monthly_rate: float
    account_type: Optional[AccountType] = None
    liquidity_rank: int = 0
    is_default_cash: bool = False

    def grow(self) -> None:
        if self.balance > 0:
            self.balance = max(0.0, self.balance * (1 + self.monthly_rate))

    def as_allocator_view(self) -> AccountBalance:
        return AccountBalance(
            account_id=self.account_id,
            title=self.title,
            balance=max(0.0, self.balance),
            account_type=self.account_type,
            liquidity_rank=self.liquidity_rank,
            is_default_cash=self.is_default_cash,
        )


class DebtState(BaseModel):
    """Outstanding balance of one debt during a run."""

    item: DebtItem
    balance: float
    term_months: int
    start_index: int
    closed: bool = False

    def is_outstanding(self, index: int) -> bool:
        return not self.closed and index >= self.start_index and self.balance > 0


class HoldingState(BaseModel):
    """Value of a property or physical asset during a run."""

    item: FinancialItemBase
    value: float
    monthly_rate: float
    held: bool
    disposed: bool = False


class _MonthFlows:
    """Flows and breakdown lines accumulated within one month."""

    def __init__(self) -> None:
        self.income = 0.0
        self.expense = 0.0
        self.contributions = 0.0
        self.debt_service = 0.0
        self.breakdown: List[BreakdownEntry] = []

    def add_income(self, title: str, category: str, amount: float) -> None:
        if amount == 0:
            return
        self.income += amount
        self.breakdown.append(
            BreakdownEntry(title=title, category=category, amount=amount)
        )

    def add_expense(self, title: str, category: str, amount: float) -> None:
        if amount == 0:
            return
        self.expense += amount
        self.breakdown.append(
            BreakdownEntry(title=title, category=category, amount=-amount)
        )

    def add_debt_service(self, title: str, amount: float) -> None:
        if amount == 0:
            return
        self.debt_service += amount
        self.breakdown.append(BreakdownEntry(title=title, category="debt", amount=-amount))

    def add_contribution(self, title: str, category: str, amount: float) -> None:
        if amount == 0:
            return
        self.contributions += amount
        self.breakdown.append(
            BreakdownEntry(title=title, category=category, amount=-amount)
        )

    @property
    def net_cash_flow(self) -> float:
        return self.income - self.expense - self.debt_service - self.contributions


class _RunState:
    """Mutable per-run state: accounts, debts, holdings and limit usage."""

    def __init__(
        self,
        config: ProjectionConfig,
        start_index: int,
        rates: RateResolver,
        amortizer: Amortizer,
    ) -> None:
        self.profile: Profile = config.profile
        self.assumptions: SimulationAssumptions = config.assumptions
        self.base_rate = config.assumptions.resolved_base_rate()
        self.rates = rates
        self.start_index = start_index
        self.items = [item for item in sort_items(config.items) if item.is_active]
        self.item_rates: Dict[str, float] = {
            item.id: annual_to_monthly_rate(
                rates.resolve_for_item(item, config.assumptions)
            )
            for item in self.items
        }

        self.accounts: Dict[str, AccountState] = {}
        self.debts: Dict[str, DebtState] = {}
        self.holdings: Dict[str, HoldingState] = {}
        self.limit_state = AnnualLimitState()

        self._build_accounts()
        self._build_debts(amortizer)
        self._build_holdings()

    def _build_accounts(self) -> None:
        for item in self.items:
            if isinstance(item, SavingsItem):
                self.accounts[item.id] = AccountState(
                    account_id=item.id,
                    title=item.title,
                    category="savings",
                    balance=item.balance,
                    monthly_rate=self.item_rates[item.id],
                    account_type=savings_account_type(item),
                    liquidity_rank=item.liquidity_rank,
                )
            elif isinstance(item, PensionItem) and not item.is_benefit_stream:
                self.accounts[item.id] = AccountState(
                    account_id=item.id,
                    title=item.title,
                    category="pension",
                    balance=item.balance,
                    monthly_rate=self.item_rates[item.id],
                    account_type=pension_account_type(item),
                    liquidity_rank=PENSION_LIQUIDITY_RANK,
                )

        checking = [
            account
            for account in self.accounts.values()
            if account.account_type == DEFAULT_CASH_ACCOUNT_TYPE
        ]
        if checking:
            checking[0].is_default_cash = True
        else:
            self.accounts[DEFAULT_CASH_ACCOUNT_ID] = AccountState(
                account_id=DEFAULT_CASH_ACCOUNT_ID,
                title=ACCOUNT_TYPE_LABELS[DEFAULT_CASH_ACCOUNT_TYPE],
                category="savings",
                balance=0.0,
                monthly_rate=self._category_rate("savings"),
                account_type=DEFAULT_CASH_ACCOUNT_TYPE,
                is_default_cash=True,
            )

    def _build_debts(self, amortizer: Amortizer) -> None:
        for item in self.items:
            if not isinstance(item, DebtItem) or item.start_index is None:
                continue
            term_months = item.term_months(self.profile)
            if term_months <= 0:
                # Maturity at or before origination: no repayment periods
                continue
            payments_made = months_between(item.start_index, self.start_index) - 1
            if item.current_balance is not None and item.start_index < self.start_index:
                balance = item.current_balance
            elif payments_made > 0:
                balance = amortizer.balance_at(
                    item,
                    payments_made,
                    base_rate=self.base_rate,
                    term_months=term_months,
                )
            else:
                balance = item.principal
            self.debts[item.id] = DebtState(
                item=item,
                balance=balance,
                term_months=term_months,
                start_index=item.start_index,
            )

    def _build_holdings(self) -> None:
        for item in self.items:
            if not isinstance(item, (RealEstateItem, AssetItem)):
                continue
            start, end = item.window(self.profile)
            if start is not None and end is not None and months_between(start, end) < 0:
                continue
            self.holdings[item.id] = HoldingState(
                item=item,
                value=item.value,
                monthly_rate=self.item_rates[item.id],
                held=(start is None or start <= self.start_index)
                and (end is None or end >= self.start_index),
            )

    def _category_rate(self, category: str) -> float:
        annual = self.rates.effective_rate(category, None, self.assumptions)  # type: ignore[arg-type]
        return annual_to_monthly_rate(annual)

    def account_for_type(self, account_type: AccountType) -> AccountState:
        """Account that receives allocations for a waterfall account type."""
        if account_type == DEFAULT_CASH_ACCOUNT_TYPE:
            return self.default_cash
        for account in self.accounts.values():
            if account.account_type == account_type:
                return account
        account_id = f"waterfall_{account_type}"
        account = AccountState(
            account_id=account_id,
            title=ACCOUNT_TYPE_LABELS[account_type],
            category="pension" if account_type in PENSION_ACCOUNT_TYPES else "savings",
            balance=0.0,
            monthly_rate=self._category_rate(WATERFALL_RATE_CATEGORIES[account_type]),
            account_type=account_type,
            liquidity_rank=(
                PENSION_LIQUIDITY_RANK if account_type in PENSION_ACCOUNT_TYPES else 5
            ),
        )
        self.accounts[account_id] = account
        return account

    @property
    def default_cash(self) -> AccountState:
        for account in self.accounts.values():
            if account.is_default_cash:
                return account
        raise RuntimeError("Run state has no default cash account")


class ProjectionEngine:
    """Runs a household projection from a validated, resolved config."""

    def __init__(
        self,
        rate_provider: Optional[RateResolver] = None,
        amortizer: Optional[Amortizer] = None,
        allocator: Optional[Allocator] = None,
    ) -> None:
        self.rate_provider: RateResolver = rate_provider or RateProvider()
        self.amortizer: Amortizer = amortizer or DebtAmortizer()
        self.allocator: Allocator = allocator or CashFlowAllocator()

    def run(self, config: ProjectionConfig) -> SimulationResult:
        """
        Project the household month by month.

        Args:
            config: Run input with a resolved start period

        Returns:
            SimulationResult with monthly and yearly snapshots and a summary

        Raises:
            ValueError: If the start period is unresolved or the horizon is empty
        """
        horizon = config.horizon()
        profile = config.profile
        logger.debug(
            f"Projecting {len(config.items)} items over {horizon.months} months "
            f"from {horizon.start_year}-{horizon.start_month:02d}"
        )

        state = _RunState(config, horizon.start_index, self.rate_provider, self.amortizer)
        aggregator = SnapshotAggregator(
            start_year=horizon.start_year,
            retirement_index=profile.retirement_index("self"),
            safe_withdrawal_rate=config.assumptions.safe_withdrawal_rate,
            milestone_targets=config.milestone_targets,
            retirement_goal=profile.target_retirement_fund,
        )

        for index in horizon.iter_indexes():
            snapshot = self._step(state, config, index)
            if snapshot.is_depleted and aggregator.first_depleted is None:
                logger.info(
                    f"Assets depleted in {snapshot.year}-{snapshot.month:02d}, "
                    f"uncovered deficit {snapshot.uncovered_deficit:.2f}"
                )
            aggregator.add(snapshot)

        summary = aggregator.finish()
        retirement = profile.retirement_period("self")
        logger.debug(
            f"Projection finished: peak net worth {summary.peak_net_worth:.2f}, "
            f"bankruptcy year {summary.bankruptcy_year}"
        )
        return SimulationResult(
            start_year=horizon.start_year,
            start_month=horizon.start_month,
            end_year=horizon.end_year,
            end_month=horizon.end_month,
            retirement_year=retirement[0] if retirement else None,
            snapshots=aggregator.yearly,
            monthly_snapshots=aggregator.monthly,
            summary=summary,
            fingerprint=config.fingerprint(),
        )

    def _step(
        self, state: _RunState, config: ProjectionConfig, index: int
    ) -> MonthlySnapshot:
        year, month = from_month_index(index)
        profile = config.profile
        flows = _MonthFlows()

        self._collect_income_and_expenses(state, index, flows)
        self._collect_pensions(state, index, flows)
        self._collect_holdings(state, index, flows)
        self._service_debts(state, index, flows)

        for account in state.accounts.values():
            account.grow()
        for holding in state.holdings.values():
            if holding.held and not holding.disposed:
                holding.value = max(0.0, holding.value * (1 + holding.monthly_rate))

        self._collect_contributions(state, index, flows)

        net_cash_flow = flows.net_cash_flow
        allocation = self.allocator.allocate(
            net_cash_flow,
            config.priorities,
            [account.as_allocator_view() for account in state.accounts.values()],
            state.limit_state,
            year,
        )
        state.limit_state = allocation.limit_state
        self._apply_allocation(state, allocation, flows)

        return self._snapshot(state, profile, index, year, month, flows, allocation)

    def _collect_income_and_expenses(
        self, state: _RunState, index: int, flows: _MonthFlows
    ) -> None:
        for item in state.items:
            if not isinstance(item, (IncomeItem, ExpenseItem)):
                continue
            start, end = item.window(state.profile)
            if not is_in_window(index, start, end):
                continue
            origin = start if start is not None else state.start_index
            if item.frequency == "once":
                amount = item.amount if index == origin else 0.0
            else:
                elapsed = months_between(origin, index)
                amount = item.monthly_amount * (1 + state.item_rates[item.id]) ** elapsed
            if isinstance(item, IncomeItem):
                flows.add_income(item.title, "income", amount)
            else:
                flows.add_expense(item.title, "expense", amount)

    def _collect_pensions(
        self, state: _RunState, index: int, flows: _MonthFlows
    ) -> None:
        for item in state.items:
            if not isinstance(item, PensionItem):
                continue
            party = "spouse" if item.owner == "spouse" else "self"
            payout_start = state.profile.age_reached_index(item.payout_start_age, party)
            if payout_start is None or index < payout_start:
                continue

            if item.is_benefit_stream:
                if not is_in_window(index, payout_start, item.end_index(state.profile)):
                    continue
                elapsed = months_between(state.start_index, index)
                amount = (
                    item.expected_monthly_amount
                    * (1 + state.item_rates[item.id]) ** elapsed
                )
                flows.add_income(item.title, "pension", amount)
                continue

            account = state.accounts[item.id]
            payout_end = payout_start + item.payout_years * 12 - 1
            if index > payout_end or account.balance <= 0:
                continue
            payout = DebtAmortizer.calculate_annuity_payment(
                account.balance, account.monthly_rate, payout_end - index + 1
            )
            payout = min(payout, account.balance)
            account.balance -= payout
            flows.add_income(item.title, "pension", payout)

    def _collect_holdings(
        self, state: _RunState, index: int, flows: _MonthFlows
    ) -> None:
        for holding in state.holdings.values():
            item = holding.item
            start, end = item.window(state.profile)

            if not holding.held and start is not None and index == start:
                holding.held = True
                self._acquire(state, holding, flows)

            if isinstance(item, RealEstateItem) and is_in_window(index, start, end):
                flows.add_expense(f"{item.title} rent", "real_estate", item.monthly_rent)
                flows.add_expense(
                    f"{item.title} maintenance", "real_estate", item.maintenance_fee
                )
                flows.add_income(
                    f"{item.title} rental income", "real_estate", item.rental_income
                )

            if holding.held and not holding.disposed and end is not None and index == end:
                self._dispose(state, holding, index, flows)

    def _acquire(
        self, state: _RunState, holding: HoldingState, flows: _MonthFlows
    ) -> None:
        """Pay for a property or asset that enters the household mid-run."""
        item = holding.item
        if isinstance(item, RealEstateItem):
            if item.is_owned:
                financed = 0.0
                if item.linked_debt_id in state.debts:
                    financed = state.debts[item.linked_debt_id].item.principal
                down_payment = max(0.0, item.value - financed)
                flows.add_expense(f"{item.title} purchase", "real_estate", down_payment)
            else:
                flows.add_expense(f"{item.title} deposit", "real_estate", item.deposit)
        else:
            flows.add_expense(f"{item.title} purchase", item.category, holding.value)

    def _dispose(
        self,
        state: _RunState,
        holding: HoldingState,
        index: int,
        flows: _MonthFlows,
    ) -> None:
        """Sell a holding at the end of its window."""
        item = holding.item
        holding.disposed = True
        if isinstance(item, RealEstateItem) and not item.is_owned:
            flows.add_income(f"{item.title} deposit return", "real_estate", item.deposit)
            return

        proceeds = holding.value
        if isinstance(item, RealEstateItem) and item.linked_debt_id in state.debts:
            debt = state.debts[item.linked_debt_id]
            if debt.is_outstanding(index):
                proceeds -= debt.balance
            debt.balance = 0.0
            debt.closed = True
        holding.value = 0.0
        if proceeds >= 0:
            flows.add_income(f"{item.title} sale", item.category, proceeds)
        else:
            flows.add_expense(f"{item.title} sale shortfall", item.category, -proceeds)

    def _service_debts(
        self, state: _RunState, index: int, flows: _MonthFlows
    ) -> None:
        for debt in state.debts.values():
            period_index = index - debt.start_index - 1
            if period_index < 0 or not debt.is_outstanding(index):
                continue
            payment = self.amortizer.amortize(
                debt.item,
                period_index,
                balance=debt.balance,
                base_rate=state.base_rate,
                term_months=debt.term_months,
            )
            debt.balance = payment.remaining_balance
            flows.add_debt_service(debt.item.title, payment.interest + payment.principal)

    def _collect_contributions(
        self, state: _RunState, index: int, flows: _MonthFlows
    ) -> None:
        for item in state.items:
            if not isinstance(item, (SavingsItem, PensionItem)):
                continue
            if item.monthly_contribution <= 0 or item.id not in state.accounts:
                continue
            start, end = item.window(state.profile)
            if not is_in_window(index, start, end):
                continue
            if isinstance(item, PensionItem):
                party = "spouse" if item.owner == "spouse" else "self"
                payout_start = state.profile.age_reached_index(
                    item.payout_start_age, party
                )
                if payout_start is not None and index >= payout_start:
                    continue
            state.accounts[item.id].balance += item.monthly_contribution
            flows.add_contribution(item.title, item.category, item.monthly_contribution)

    def _apply_allocation(
        self, state: _RunState, allocation: AllocationResult, flows: _MonthFlows
    ) -> None:
        for entry in allocation.allocations:
            if entry.amount <= 0:
                continue
            account = state.account_for_type(entry.account_type)
            account.balance += entry.amount
            flows.breakdown.append(
                BreakdownEntry(
                    title=account.title,
                    category=account.category,
                    flow_type="surplus_investment",
                    amount=-entry.amount,
                )
            )
        for withdrawal in allocation.withdrawals:
            account = state.accounts[withdrawal.account_id]
            account.balance = max(0.0, account.balance - withdrawal.amount)
            flows.breakdown.append(
                BreakdownEntry(
                    title=account.title,
                    category=account.category,
                    flow_type="deficit_withdrawal",
                    amount=withdrawal.amount,
                )
            )

    def _snapshot(
        self,
        state: _RunState,
        profile: Profile,
        index: int,
        year: int,
        month: int,
        flows: _MonthFlows,
        allocation: AllocationResult,
    ) -> MonthlySnapshot:
        accounts = [
            BalanceEntry(
                id=account.account_id,
                title=account.title,
                category=account.category,
                balance=account.balance,
            )
            for account in state.accounts.values()
        ]
        debts = [
            BalanceEntry(
                id=debt.item.id,
                title=debt.item.title,
                category="debt",
                balance=debt.balance if debt.is_outstanding(index) else 0.0,
            )
            for debt in state.debts.values()
            if index >= debt.start_index
        ]

        financial_assets = sum(
            a.balance for a in state.accounts.values() if a.category == "savings"
        )
        pension_assets = sum(
            a.balance for a in state.accounts.values() if a.category == "pension"
        )
        real_estate_value = 0.0
        physical_asset_value = 0.0
        for holding in state.holdings.values():
            if not holding.held or holding.disposed:
                continue
            item = holding.item
            if isinstance(item, RealEstateItem):
                real_estate_value += holding.value if item.is_owned else item.deposit
            else:
                physical_asset_value += holding.value
        total_debt = sum(entry.balance for entry in debts)
        net_worth = (
            financial_assets
            + pension_assets
            + real_estate_value
            + physical_asset_value
            - total_debt
        )

        net_cash_flow = flows.net_cash_flow
        is_depleted = allocation.uncovered_deficit > 0 or (
            net_cash_flow < 0 and financial_assets + pension_assets <= 0
        )

        return MonthlySnapshot(
            year=year,
            month=month,
            period_index=index,
            age=profile.age_in(year),
            spouse_age=profile.spouse_age_in(year),
            income=flows.income,
            expense=flows.expense,
            contributions=flows.contributions,
            debt_service=flows.debt_service,
            net_cash_flow=net_cash_flow,
            allocated=allocation.total_allocated,
            withdrawn=allocation.total_withdrawn,
            uncovered_deficit=allocation.uncovered_deficit,
            accounts=accounts,
            debts=debts,
            financial_assets=financial_assets,
            pension_assets=pension_assets,
            real_estate_value=real_estate_value,
            physical_asset_value=physical_asset_value,
            total_debt=total_debt,
            net_worth=net_worth,
            is_depleted=is_depleted,
            breakdown=flows.breakdown,
        )
