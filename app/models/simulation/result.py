"""
Projection result model.

This module provides the immutable records produced by a projection run:

1. ``MonthlySnapshot``: one per simulated month, with flows, balances and an
   itemized breakdown tagged by flow type
2. ``YearlySnapshot``: calendar-year roll-up of the monthly snapshots
3. ``SimulationSummary``: net worth milestones, retirement goal progress,
   financial independence and depletion markers
4. ``SimulationResult``: the ordered snapshots plus summary, with helpers for
   numeric series, lookups and CSV export

Breakdown amounts are signed from the household cash position: income and
deficit withdrawals are positive; expenses, debt service, contributions and
surplus investment are negative.
"""

import csv
import io
import json
from typing import Any, Dict, List, Literal, Optional

import numpy as np
from numpy.typing import NDArray
from pydantic import BaseModel, ConfigDict, Field

FlowType = Literal["regular", "deficit_withdrawal", "surplus_investment"]


class BreakdownEntry(BaseModel):
    """One titled line of a period's cash flow."""

    model_config = ConfigDict(frozen=True)

    title: str
    category: str = Field(..., description="Item category, e.g. income or debt")
    flow_type: FlowType = "regular"
    amount: float = Field(..., description="Signed amount, inflows positive")


class BalanceEntry(BaseModel):
    """Balance of one account, property or debt at period end."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    category: str
    balance: float


class _SnapshotTotals(BaseModel):
    model_config = ConfigDict(frozen=True)

    year: int
    age: int
    spouse_age: Optional[int] = None

    income: float = 0.0
    expense: float = 0.0
    contributions: float = 0.0
    debt_service: float = 0.0
    net_cash_flow: float = 0.0
    allocated: float = 0.0
    withdrawn: float = 0.0
    uncovered_deficit: float = 0.0

    accounts: List[BalanceEntry] = Field(default_factory=list)
    debts: List[BalanceEntry] = Field(default_factory=list)

    financial_assets: float = 0.0
    pension_assets: float = 0.0
    real_estate_value: float = 0.0
    physical_asset_value: float = 0.0
    total_debt: float = 0.0
    net_worth: float = 0.0
    is_depleted: bool = False

    breakdown: List[BreakdownEntry] = Field(default_factory=list)

    @property
    def investable_assets(self) -> float:
        """Financial plus pension balances."""
        return self.financial_assets + self.pension_assets


class MonthlySnapshot(_SnapshotTotals):
    """State of the household at the end of one month."""

    month: int = Field(..., ge=1, le=12)
    period_index: int = Field(..., description="Month index, year * 12 + month - 1")


class YearlySnapshot(_SnapshotTotals):
    """Calendar-year roll-up: summed flows and year-end balances."""

    months: int = Field(..., ge=1, le=12, description="Months covered in this year")


class NetWorthMilestone(BaseModel):
    """First month in which net worth reaches a target."""

    model_config = ConfigDict(frozen=True)

    target: float
    achieved: bool = Field(
        default=False, description="Target already met in the first projected month"
    )
    year: Optional[int] = None
    month: Optional[int] = None
    age: Optional[int] = None


class GoalProgress(BaseModel):
    """Progress toward the household's target retirement fund."""

    model_config = ConfigDict(frozen=True)

    target_amount: float
    current_amount: float
    progress_percent: float = Field(..., ge=0, le=100)
    remaining_amount: float = Field(..., ge=0)
    target_year: Optional[int] = None
    target_month: Optional[int] = None
    estimated_years: Optional[int] = Field(
        default=None, description="Years from the projection start to the target"
    )


class SimulationSummary(BaseModel):
    """Headline figures for a projection."""

    model_config = ConfigDict(frozen=True)

    current_net_worth: float
    retirement_net_worth: Optional[float] = None
    peak_net_worth: float
    peak_net_worth_year: int
    peak_net_worth_month: int
    fi_target: float = Field(..., description="Annual spend / safe withdrawal rate")
    fi_year: Optional[int] = None
    fi_month: Optional[int] = None
    years_to_fi: Optional[int] = None
    bankruptcy_year: Optional[int] = None
    bankruptcy_month: Optional[int] = None
    milestones: List[NetWorthMilestone] = Field(default_factory=list)
    retirement_goal: Optional[GoalProgress] = None

    @property
    def is_depleted(self) -> bool:
        return self.bankruptcy_year is not None


CSV_COLUMNS = [
    "year",
    "age",
    "spouse_age",
    "income",
    "expense",
    "contributions",
    "debt_service",
    "net_cash_flow",
    "allocated",
    "withdrawn",
    "uncovered_deficit",
    "financial_assets",
    "pension_assets",
    "real_estate_value",
    "physical_asset_value",
    "total_debt",
    "net_worth",
    "is_depleted",
]


class SimulationResult(BaseModel):
    """
    Complete output of one projection run.

    Example:
        ```python
        result = ProjectionEngine().run(config)

        result.summary.bankruptcy_year
        result.net_worth_series()
        result.snapshot_for_year(2040).net_worth
        ```
    """

    model_config = ConfigDict(frozen=True)

    start_year: int
    start_month: int
    end_year: int
    end_month: int
    retirement_year: Optional[int] = None
    snapshots: List[YearlySnapshot] = Field(
        default_factory=list, description="Yearly snapshots in order"
    )
    monthly_snapshots: List[MonthlySnapshot] = Field(
        default_factory=list, description="Monthly snapshots in order"
    )
    summary: SimulationSummary
    fingerprint: Optional[str] = Field(
        default=None, description="Fingerprint of the inputs that produced this result"
    )

    @property
    def years(self) -> List[int]:
        return [snapshot.year for snapshot in self.snapshots]

    def net_worth_series(self) -> NDArray[np.float64]:
        """Year-end net worth per projected year."""
        return np.array([s.net_worth for s in self.snapshots], dtype=np.float64)

    def financial_asset_series(self) -> NDArray[np.float64]:
        """Year-end financial assets per projected year."""
        return np.array(
            [s.financial_assets for s in self.snapshots], dtype=np.float64
        )

    def monthly_net_worth_series(self) -> NDArray[np.float64]:
        return np.array(
            [s.net_worth for s in self.monthly_snapshots], dtype=np.float64
        )

    def snapshot_for_year(self, year: int) -> YearlySnapshot:
        """Get the yearly snapshot for a calendar year."""
        for snapshot in self.snapshots:
            if snapshot.year == year:
                return snapshot
        raise ValueError(f"Year {year} is outside the projection range")

    def depleted_years(self) -> List[int]:
        """Years in which at least one month was depleted."""
        return [s.year for s in self.snapshots if s.is_depleted]

    def get_cash_flow_statistics(self) -> Dict[str, float]:
        """Lifetime totals and extremes of the yearly flows."""
        net = np.array([s.net_cash_flow for s in self.snapshots], dtype=np.float64)
        income = np.array([s.income for s in self.snapshots], dtype=np.float64)
        expense = np.array([s.expense for s in self.snapshots], dtype=np.float64)
        debt = np.array([s.debt_service for s in self.snapshots], dtype=np.float64)
        if net.size == 0:
            return {}
        return {
            "total_income": float(np.sum(income)),
            "total_expense": float(np.sum(expense)),
            "total_debt_service": float(np.sum(debt)),
            "min_net_cash_flow": float(np.min(net)),
            "max_net_cash_flow": float(np.max(net)),
            "deficit_years": int(np.sum(net < 0)),
        }

    def to_dict(self, include_monthly: bool = False) -> Dict[str, Any]:
        """
        Convert result to a JSON-ready dictionary.

        Args:
            include_monthly: Whether to include the monthly snapshots
        """
        exclude = None if include_monthly else {"monthly_snapshots"}
        data = self.model_dump(mode="json", exclude=exclude)
        data["statistics"] = self.get_cash_flow_statistics()
        return data

    def to_json(self, include_monthly: bool = False, indent: int = 2) -> str:
        return json.dumps(self.to_dict(include_monthly=include_monthly), indent=indent)

    def to_csv(self) -> str:
        """Export the yearly snapshots as CSV text."""
        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(CSV_COLUMNS)
        for snapshot in self.snapshots:
            row = []
            for column in CSV_COLUMNS:
                value = getattr(snapshot, column)
                if isinstance(value, float):
                    value = round(value, 2)
                row.append("" if value is None else value)
            writer.writerow(row)
        return buffer.getvalue()
