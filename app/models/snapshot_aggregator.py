"""
Snapshot aggregation for projection runs.

The aggregator is purely accumulative. It receives monthly snapshots in
order, rolls each calendar year into a yearly snapshot, and tracks the running
milestones (peak net worth, retirement net worth, financial independence, first
depletion, net worth targets and the retirement fund goal) that make up the
summary.
"""

from typing import Dict, List, Optional, Sequence, Tuple

from .simulation.result import (
    BreakdownEntry,
    GoalProgress,
    MonthlySnapshot,
    NetWorthMilestone,
    SimulationSummary,
    YearlySnapshot,
)

_SUMMED_FIELDS = (
    "income",
    "expense",
    "contributions",
    "debt_service",
    "net_cash_flow",
    "allocated",
    "withdrawn",
    "uncovered_deficit",
)


def merge_breakdowns(months: List[MonthlySnapshot]) -> List[BreakdownEntry]:
    """Sum breakdown lines with the same title, category and flow type."""
    totals: Dict[Tuple[str, str, str], float] = {}
    for snapshot in months:
        for entry in snapshot.breakdown:
            key = (entry.title, entry.category, entry.flow_type)
            totals[key] = totals.get(key, 0.0) + entry.amount
    return [
        BreakdownEntry(title=title, category=category, flow_type=flow_type, amount=amount)
        for (title, category, flow_type), amount in totals.items()
    ]


def roll_up_year(months: List[MonthlySnapshot]) -> YearlySnapshot:
    """Build a yearly snapshot from the months of one calendar year."""
    last = months[-1]
    sums = {name: sum(getattr(m, name) for m in months) for name in _SUMMED_FIELDS}
    return YearlySnapshot(
        year=last.year,
        age=last.age,
        spouse_age=last.spouse_age,
        months=len(months),
        accounts=last.accounts,
        debts=last.debts,
        financial_assets=last.financial_assets,
        pension_assets=last.pension_assets,
        real_estate_value=last.real_estate_value,
        physical_asset_value=last.physical_asset_value,
        total_debt=last.total_debt,
        net_worth=last.net_worth,
        is_depleted=any(m.is_depleted for m in months),
        breakdown=merge_breakdowns(months),
        **sums,
    )


class SnapshotAggregator:
    """Collects snapshots and produces the run summary."""

    def __init__(
        self,
        start_year: int,
        retirement_index: Optional[int] = None,
        safe_withdrawal_rate: float = 4.0,
        milestone_targets: Sequence[float] = (),
        retirement_goal: Optional[float] = None,
    ) -> None:
        """
        Args:
            start_year: First projected year, used for years-to-FI
            retirement_index: Month index of the primary person's last working month
            safe_withdrawal_rate: Annual spendable share of investable assets (%)
            milestone_targets: Net worth targets whose first crossing is reported
            retirement_goal: Target retirement fund, if the household set one
        """
        self.start_year = start_year
        self.retirement_index = retirement_index
        self.safe_withdrawal_rate = safe_withdrawal_rate
        self.milestone_targets = sorted(milestone_targets)
        self.retirement_goal = retirement_goal

        self.monthly: List[MonthlySnapshot] = []
        self.yearly: List[YearlySnapshot] = []
        self._open_year: List[MonthlySnapshot] = []

        self._peak: Optional[MonthlySnapshot] = None
        self._retirement_net_worth: Optional[float] = None
        self._fi: Optional[MonthlySnapshot] = None
        self._depleted: Optional[MonthlySnapshot] = None
        self._fi_target = 0.0
        self._target_hits: Dict[float, MonthlySnapshot] = {}

    def add(self, snapshot: MonthlySnapshot) -> None:
        """Record one month. Months must arrive in order."""
        if self._open_year and self._open_year[-1].year != snapshot.year:
            self._close_year()

        if not self.monthly:
            monthly_spend = snapshot.expense + snapshot.debt_service
            self._fi_target = monthly_spend * 12 * 100 / self.safe_withdrawal_rate
            if (
                self.retirement_index is not None
                and self.retirement_index < snapshot.period_index
            ):
                # Already retired when the projection starts
                self._retirement_net_worth = snapshot.net_worth

        self.monthly.append(snapshot)
        self._open_year.append(snapshot)

        if self._peak is None or snapshot.net_worth > self._peak.net_worth:
            self._peak = snapshot
        if snapshot.period_index == self.retirement_index:
            self._retirement_net_worth = snapshot.net_worth
        if self._fi is None and self._is_financially_independent(snapshot):
            self._fi = snapshot
        if self._depleted is None and snapshot.is_depleted:
            self._depleted = snapshot
        self._record_targets(snapshot)

    @property
    def first_depleted(self) -> Optional[MonthlySnapshot]:
        """First month flagged as depleted so far, if any."""
        return self._depleted

    def _record_targets(self, snapshot: MonthlySnapshot) -> None:
        targets = list(self.milestone_targets)
        if self.retirement_goal is not None:
            targets.append(self.retirement_goal)
        for target in targets:
            if target not in self._target_hits and snapshot.net_worth >= target:
                self._target_hits[target] = snapshot

    def _milestones(self) -> List[NetWorthMilestone]:
        first = self.monthly[0]
        milestones = []
        for target in self.milestone_targets:
            hit = self._target_hits.get(target)
            milestones.append(
                NetWorthMilestone(
                    target=target,
                    achieved=hit is first,
                    year=hit.year if hit else None,
                    month=hit.month if hit else None,
                    age=hit.age if hit else None,
                )
            )
        return milestones

    def _goal_progress(self) -> Optional[GoalProgress]:
        if self.retirement_goal is None:
            return None
        target = self.retirement_goal
        current = self.monthly[0].net_worth
        progress = min(100.0, current / target * 100) if target > 0 else 0.0
        hit = self._target_hits.get(target)
        return GoalProgress(
            target_amount=target,
            current_amount=current,
            progress_percent=max(0.0, progress),
            remaining_amount=max(0.0, target - current),
            target_year=hit.year if hit else None,
            target_month=hit.month if hit else None,
            estimated_years=hit.year - self.start_year if hit else None,
        )

    def _is_financially_independent(self, snapshot: MonthlySnapshot) -> bool:
        """Investable-asset income alone covers this month's spending."""
        investable = snapshot.investable_assets
        if investable <= 0:
            return False
        passive_income = investable * self.safe_withdrawal_rate / 100 / 12
        return passive_income >= snapshot.expense + snapshot.debt_service

    def _close_year(self) -> None:
        if self._open_year:
            self.yearly.append(roll_up_year(self._open_year))
            self._open_year = []

    def finish(self) -> SimulationSummary:
        """Close the final (possibly partial) year and build the summary."""
        self._close_year()
        if not self.monthly or self._peak is None:
            raise ValueError("Cannot summarize a projection without snapshots")

        return SimulationSummary(
            current_net_worth=self.monthly[0].net_worth,
            retirement_net_worth=self._retirement_net_worth,
            peak_net_worth=self._peak.net_worth,
            peak_net_worth_year=self._peak.year,
            peak_net_worth_month=self._peak.month,
            fi_target=self._fi_target,
            fi_year=self._fi.year if self._fi else None,
            fi_month=self._fi.month if self._fi else None,
            years_to_fi=self._fi.year - self.start_year if self._fi else None,
            bankruptcy_year=self._depleted.year if self._depleted else None,
            bankruptcy_month=self._depleted.month if self._depleted else None,
            milestones=self._milestones(),
            retirement_goal=self._goal_progress(),
        )
