"""Data models for household cash-flow projections."""

from .assumptions import SCENARIO_PRESETS, ScenarioRates, SimulationAssumptions
from .cash_flow_allocator import AllocationResult, CashFlowAllocator
from .cash_flow_rules import CashFlowPriorities, FixedRule, RemainderRule
from .debt_amortization import AmortizationSchedule, DebtAmortizer, PeriodPayment
from .financial_items import (
    AssetItem,
    DebtItem,
    ExpenseItem,
    FinancialItem,
    IncomeItem,
    PensionItem,
    RealEstateItem,
    SavingsItem,
    parse_item,
    parse_items,
)
from .household import Profile
from .rate_provider import RateProvider
from .time_grid import ProjectionHorizon, from_month_index, to_month_index

__all__ = [
    "SCENARIO_PRESETS",
    "ScenarioRates",
    "SimulationAssumptions",
    "AllocationResult",
    "CashFlowAllocator",
    "CashFlowPriorities",
    "FixedRule",
    "RemainderRule",
    "AmortizationSchedule",
    "DebtAmortizer",
    "PeriodPayment",
    "AssetItem",
    "DebtItem",
    "ExpenseItem",
    "FinancialItem",
    "IncomeItem",
    "PensionItem",
    "RealEstateItem",
    "SavingsItem",
    "parse_item",
    "parse_items",
    "Profile",
    "RateProvider",
    "ProjectionHorizon",
    "from_month_index",
    "to_month_index",
]
