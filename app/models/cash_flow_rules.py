"""
Cash-flow waterfall rules.

A rule is either a ``FixedRule`` (a monthly amount, optionally capped per
calendar year) or a ``RemainderRule`` (absorbs whatever is left). The rule set
is validated when it is loaded: at most one enabled remainder rule, exactly one
whenever any rule is enabled, and no priority shared by two enabled rules.
"""

from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

AccountType = Literal["pension_savings", "irp", "isa", "savings", "investment", "checking"]

# Implicit destination for surplus when no rule is enabled
DEFAULT_CASH_ACCOUNT_TYPE: AccountType = "checking"

ACCOUNT_TYPE_LABELS = {
    "pension_savings": "Pension savings",
    "irp": "IRP",
    "isa": "ISA",
    "savings": "Savings",
    "investment": "Investment",
    "checking": "Checking",
}


class CashFlowRuleBase(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(..., min_length=1)
    account_type: AccountType
    priority: int = Field(..., ge=0, description="Ascending: lower runs first")
    name: Optional[str] = Field(default=None, description="Display title")
    is_enabled: bool = True

    @property
    def title(self) -> str:
        return self.name or ACCOUNT_TYPE_LABELS[self.account_type]


class FixedRule(CashFlowRuleBase):
    """Allocate up to a fixed monthly amount, within an optional annual cap."""

    allocation_type: Literal["fixed"] = "fixed"
    monthly_amount: float = Field(..., ge=0)
    annual_limit: Optional[float] = Field(default=None, ge=0)


class RemainderRule(CashFlowRuleBase):
    """Absorb the surplus left after every fixed rule; always runs last."""

    allocation_type: Literal["remainder"] = "remainder"


CashFlowRule = Annotated[
    Union[FixedRule, RemainderRule], Field(discriminator="allocation_type")
]


class CashFlowPriorities(BaseModel):
    """Validated, priority-ordered waterfall."""

    model_config = ConfigDict(frozen=True)

    rules: List[CashFlowRule] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_rules(self) -> "CashFlowPriorities":
        enabled = [rule for rule in self.rules if rule.is_enabled]

        remainders = [rule for rule in enabled if isinstance(rule, RemainderRule)]
        if len(remainders) > 1:
            raise ValueError(
                f"Only one remainder rule may be enabled, got {len(remainders)}: "
                f"{[rule.id for rule in remainders]}"
            )
        if enabled and not remainders:
            raise ValueError("Enabled cash-flow rules require one remainder rule")

        seen = {}
        for rule in enabled:
            if rule.priority in seen:
                raise ValueError(
                    f"Priority {rule.priority} is shared by rules "
                    f"'{seen[rule.priority]}' and '{rule.id}'"
                )
            seen[rule.priority] = rule.id

        ids = [rule.id for rule in self.rules]
        if len(ids) != len(set(ids)):
            raise ValueError("Cash-flow rule ids must be unique")
        return self

    def enabled_rules(self) -> List[CashFlowRuleBase]:
        """Enabled rules in waterfall order, remainder last."""
        ordered: List[CashFlowRuleBase] = list(self.ordered_fixed_rules())
        remainder = self.remainder_rule()
        if remainder is not None:
            ordered.append(remainder)
        return ordered

    def ordered_fixed_rules(self) -> List[FixedRule]:
        return sorted(
            (
                rule
                for rule in self.rules
                if rule.is_enabled and isinstance(rule, FixedRule)
            ),
            key=lambda rule: rule.priority,
        )

    def remainder_rule(self) -> Optional[RemainderRule]:
        for rule in self.rules:
            if rule.is_enabled and isinstance(rule, RemainderRule):
                return rule
        return None

    @property
    def has_enabled_rules(self) -> bool:
        return any(rule.is_enabled for rule in self.rules)

    @classmethod
    def default(cls) -> "CashFlowPriorities":
        """The out-of-the-box waterfall offered to new households."""
        return cls(
            rules=[
                FixedRule(
                    id="pension_savings",
                    account_type="pension_savings",
                    priority=1,
                    monthly_amount=50,
                    annual_limit=600,
                ),
                FixedRule(
                    id="irp",
                    account_type="irp",
                    priority=2,
                    monthly_amount=25,
                    annual_limit=300,
                ),
                FixedRule(
                    id="isa",
                    account_type="isa",
                    priority=3,
                    monthly_amount=167,
                    annual_limit=2000,
                ),
                FixedRule(
                    id="savings", account_type="savings", priority=4, monthly_amount=50
                ),
                RemainderRule(id="checking", account_type="checking", priority=99),
            ]
        )
