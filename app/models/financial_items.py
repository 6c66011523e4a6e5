"""
Financial item models for household projections.

Items are a closed tagged union keyed by ``category``. Each variant carries a
category-specific ``type`` and payload, and the projection engine matches on
the variant class. Items are frozen: they are supplied whole by an external
store at the start of a run and never mutated by the engine.

Rates on items are annual percentages (3.0 means 3%). Amounts are in the
household's currency unit.
"""

from typing import Annotated, Any, Iterable, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator

from .household import Profile
from .time_grid import months_between, to_month_index

Owner = Literal["self", "spouse", "common"]
EndType = Literal["custom", "self_retirement", "spouse_retirement"]
Frequency = Literal["monthly", "yearly", "once"]
RateCategory = Literal[
    "savings",
    "investment",
    "pension",
    "real_estate",
    "inflation",
    "income_growth",
    "fixed",
]

IncomeType = Literal["labor", "business", "side_income", "rental", "dividend", "other"]
ExpenseType = Literal[
    "living",
    "housing",
    "education",
    "child",
    "insurance",
    "transport",
    "health",
    "travel",
    "parents",
    "wedding",
    "leisure",
    "other",
]
SavingsType = Literal[
    "checking",
    "savings",
    "deposit",
    "housing",
    "emergency_fund",
    "isa",
    "domestic_stock",
    "foreign_stock",
    "fund",
    "bond",
    "crypto",
    "other",
]
PensionType = Literal[
    "national", "retirement", "personal", "irp", "pension_savings", "severance"
]
DebtType = Literal[
    "mortgage",
    "jeonse_loan",
    "credit_loan",
    "student_loan",
    "car_loan",
    "credit_card",
    "other",
]
RealEstateType = Literal["residence", "investment", "land", "other"]
AssetType = Literal["vehicle", "precious_metal", "art", "other"]

# Savings types that earn a deposit rate rather than a market return
DEPOSIT_SAVINGS_TYPES = {"checking", "savings", "deposit", "housing", "emergency_fund"}

# Lower rank is drawn first when covering a deficit
LIQUIDITY_RANK = {
    "checking": 0,
    "savings": 1,
    "deposit": 2,
    "housing": 3,
    "emergency_fund": 4,
    "other": 5,
    "isa": 6,
    "fund": 7,
    "bond": 8,
    "domestic_stock": 9,
    "foreign_stock": 10,
    "crypto": 11,
}
PENSION_LIQUIDITY_RANK = 20


class FinancialItemBase(BaseModel):
    """Fields shared by every financial item."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(..., min_length=1, description="Stable item identifier")
    title: str = Field(..., description="Human readable title used in breakdowns")
    owner: Owner = Field(default="self", description="Who the item belongs to")
    start_year: Optional[int] = Field(
        default=None, ge=1900, le=2200, description="First active year"
    )
    start_month: int = Field(default=1, ge=1, le=12, description="First active month")
    end_year: Optional[int] = Field(
        default=None, ge=1900, le=2200, description="Last active year"
    )
    end_month: Optional[int] = Field(
        default=None, ge=1, le=12, description="Last active month"
    )
    end_type: EndType = Field(
        default="custom",
        description="Resolve the end to a retirement period instead of end_year",
    )
    is_active: bool = Field(default=True, description="Inactive items are ignored")
    sort_order: int = Field(default=0, description="Display and matching order")

    @property
    def start_index(self) -> Optional[int]:
        if self.start_year is None:
            return None
        return to_month_index(self.start_year, self.start_month)

    def end_index(self, profile: Optional[Profile] = None) -> Optional[int]:
        """
        Resolve the last active month index.

        Retirement end markers resolve to the party's last working month and
        fall back to the stored end when that party does not exist or no
        profile is given.
        """
        if profile is not None and self.end_type != "custom":
            party = "self" if self.end_type == "self_retirement" else "spouse"
            index = profile.retirement_index(party)
            if index is not None:
                return index
        if self.end_year is None:
            return None
        return to_month_index(self.end_year, self.end_month or 12)

    def window(self, profile: Profile) -> Tuple[Optional[int], Optional[int]]:
        return self.start_index, self.end_index(profile)

    @property
    def stored_rate(self) -> Optional[float]:
        """The item's own annual rate, if it carries one."""
        return None

    @property
    def stored_rate_category(self) -> Optional[RateCategory]:
        return None

    @property
    def default_rate_category(self) -> RateCategory:
        return "fixed"


class CashFlowItemMixin(BaseModel):
    """Payload for recurring income and expense streams."""

    amount: float = Field(..., ge=0, description="Amount per frequency period")
    frequency: Frequency = Field(default="monthly", description="Payment frequency")
    growth_rate: Optional[float] = Field(
        default=None, ge=-100, le=100, description="Own annual growth rate (%)"
    )
    rate_category: Optional[RateCategory] = Field(
        default=None, description="Assumption category driving growth"
    )

    @property
    def monthly_amount(self) -> float:
        """Base amount per month before growth."""
        if self.frequency == "yearly":
            return self.amount / 12
        return self.amount


class IncomeItem(CashFlowItemMixin, FinancialItemBase):
    """Salary, business, rental or other income stream."""

    category: Literal["income"] = "income"
    type: IncomeType = "labor"

    @property
    def stored_rate(self) -> Optional[float]:
        return self.growth_rate

    @property
    def stored_rate_category(self) -> Optional[RateCategory]:
        return self.rate_category

    @property
    def default_rate_category(self) -> RateCategory:
        return "income_growth"


class ExpenseItem(CashFlowItemMixin, FinancialItemBase):
    """Living cost, education, insurance or other spending stream."""

    category: Literal["expense"] = "expense"
    type: ExpenseType = "living"

    @property
    def stored_rate(self) -> Optional[float]:
        return self.growth_rate

    @property
    def stored_rate_category(self) -> Optional[RateCategory]:
        return self.rate_category

    @property
    def default_rate_category(self) -> RateCategory:
        return "inflation"


class SavingsItem(FinancialItemBase):
    """Deposit or investment account."""

    category: Literal["savings"] = "savings"
    type: SavingsType = "savings"
    balance: float = Field(default=0, ge=0, description="Balance at simulation start")
    monthly_contribution: float = Field(
        default=0, ge=0, description="Scheduled contribution while the item is active"
    )
    interest_rate: Optional[float] = Field(
        default=None, ge=-100, le=100, description="Own annual return (%)"
    )
    rate_category: Optional[RateCategory] = None

    @property
    def stored_rate(self) -> Optional[float]:
        return self.interest_rate

    @property
    def stored_rate_category(self) -> Optional[RateCategory]:
        return self.rate_category

    @property
    def default_rate_category(self) -> RateCategory:
        return "savings" if self.type in DEPOSIT_SAVINGS_TYPES else "investment"

    @property
    def liquidity_rank(self) -> int:
        return LIQUIDITY_RANK.get(self.type, LIQUIDITY_RANK["other"])


class PensionItem(FinancialItemBase):
    """
    Public or private pension.

    The national pension is a benefit stream of ``expected_monthly_amount`` from
    ``payout_start_age``. Every other type accumulates a balance that is paid
    out as an annuity over ``payout_years`` once ``payout_start_age`` is reached.
    """

    category: Literal["pension"] = "pension"
    type: PensionType = "personal"
    balance: float = Field(default=0, ge=0, description="Balance at simulation start")
    monthly_contribution: float = Field(default=0, ge=0)
    return_rate: Optional[float] = Field(default=None, ge=-100, le=100)
    rate_category: Optional[RateCategory] = None
    expected_monthly_amount: float = Field(
        default=0, ge=0, description="National pension benefit in today's money"
    )
    payout_start_age: int = Field(default=65, ge=40, le=100)
    payout_years: int = Field(default=20, ge=1, le=60)

    @property
    def is_benefit_stream(self) -> bool:
        return self.type == "national"

    @property
    def stored_rate(self) -> Optional[float]:
        return self.return_rate

    @property
    def stored_rate_category(self) -> Optional[RateCategory]:
        return self.rate_category

    @property
    def default_rate_category(self) -> RateCategory:
        return "inflation" if self.is_benefit_stream else "pension"


class DebtItem(FinancialItemBase):
    """
    Loan repaid under one of four schemes.

    ``start_year``/``start_month`` is origination and the resolved end is
    maturity; the final payment falls in the maturity month.
    """

    category: Literal["debt"] = "debt"
    type: DebtType = "credit_loan"
    principal: float = Field(..., ge=0, description="Original loan amount")
    current_balance: Optional[float] = Field(
        default=None, ge=0, description="Outstanding balance at simulation start"
    )
    interest_rate: float = Field(default=0, ge=0, le=100, description="Annual rate (%)")
    rate_type: Literal["fixed", "floating"] = "fixed"
    spread: float = Field(default=0, description="Spread over base rate (%)")
    repayment_type: Literal["equal_payment", "equal_principal", "bullet", "graced"] = (
        "equal_payment"
    )
    grace_period_months: int = Field(default=0, ge=0, le=600)

    @model_validator(mode="after")
    def validate_maturity(self) -> "DebtItem":
        if self.start_year is None:
            raise ValueError(f"Debt '{self.id}' requires start_year (origination)")
        if self.end_year is None and self.end_type == "custom":
            raise ValueError(f"Debt '{self.id}' requires end_year (maturity)")
        return self

    def term_months(self, profile: Optional[Profile] = None) -> int:
        """Months from origination to maturity (may be <= 0 for bad input)."""
        end_index = self.end_index(profile)
        if end_index is None or self.start_index is None:
            return 0
        return months_between(self.start_index, end_index)

    @property
    def stored_rate(self) -> Optional[float]:
        return self.interest_rate


class RealEstateItem(FinancialItemBase):
    """Owned, leased (jeonse) or rented housing and investment property."""

    category: Literal["real_estate"] = "real_estate"
    type: RealEstateType = "residence"
    housing_type: Literal["owned", "jeonse", "monthly_rent"] = "owned"
    value: float = Field(default=0, ge=0, description="Market value at simulation start")
    appreciation_rate: Optional[float] = Field(default=None, ge=-100, le=100)
    rate_category: Optional[RateCategory] = None
    deposit: float = Field(default=0, ge=0, description="Lease deposit held")
    monthly_rent: float = Field(default=0, ge=0, description="Rent paid per month")
    maintenance_fee: float = Field(default=0, ge=0, description="Upkeep per month")
    rental_income: float = Field(default=0, ge=0, description="Rent received per month")
    linked_debt_id: Optional[str] = Field(
        default=None, description="Debt secured by this property"
    )

    @property
    def is_owned(self) -> bool:
        return self.housing_type == "owned"

    @property
    def stored_rate(self) -> Optional[float]:
        return self.appreciation_rate

    @property
    def stored_rate_category(self) -> Optional[RateCategory]:
        return self.rate_category

    @property
    def default_rate_category(self) -> RateCategory:
        return "real_estate"


class AssetItem(FinancialItemBase):
    """Physical asset such as a vehicle or precious metal."""

    category: Literal["asset"] = "asset"
    type: AssetType = "other"
    value: float = Field(default=0, ge=0)
    annual_rate: Optional[float] = Field(
        default=None, ge=-100, le=100, description="Appreciation, negative to depreciate"
    )
    rate_category: Optional[RateCategory] = None

    @property
    def stored_rate(self) -> Optional[float]:
        return self.annual_rate

    @property
    def stored_rate_category(self) -> Optional[RateCategory]:
        return self.rate_category


FinancialItem = Annotated[
    Union[
        IncomeItem,
        ExpenseItem,
        SavingsItem,
        PensionItem,
        DebtItem,
        RealEstateItem,
        AssetItem,
    ],
    Field(discriminator="category"),
]

_ITEM_LIST_ADAPTER = TypeAdapter(List[FinancialItem])
_ITEM_ADAPTER = TypeAdapter(FinancialItem)


def parse_item(data: Any) -> FinancialItemBase:
    """Validate a single raw item dictionary into its variant."""
    return _ITEM_ADAPTER.validate_python(data)


def parse_items(data: Iterable[Any]) -> List[FinancialItemBase]:
    """Validate a list of raw item dictionaries."""
    return _ITEM_LIST_ADAPTER.validate_python(list(data))


def sort_items(items: Iterable[FinancialItemBase]) -> List[FinancialItemBase]:
    """Stable ordering used by the engine: sort_order, then id."""
    return sorted(items, key=lambda item: (item.sort_order, item.id))
