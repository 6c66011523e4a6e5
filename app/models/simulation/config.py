"""
Projection configuration model.

The ProjectionConfig is the complete, immutable input of one projection run:

1. The household profile (birth dates, retirement ages, life expectancy)
2. The financial items supplied by the external store
3. The rate assumptions and the cash-flow waterfall
4. The net worth milestone targets
5. The horizon: an optional start period (defaulting to now) and an optional
   number of years (defaulting to the life-expectancy horizon)

Validation here is the configuration boundary: malformed input is rejected
before the engine is invoked. The fingerprint identifies identical inputs so
results can be memoized.
"""

import hashlib
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from app.models.assumptions import SimulationAssumptions
from app.models.cash_flow_rules import CashFlowPriorities
from app.models.financial_items import (
    DebtItem,
    FinancialItem,
    RealEstateItem,
)
from app.models.household import Profile
from app.models.time_grid import (
    ProjectionHorizon,
    from_month_index,
    get_current_period,
    to_month_index,
)

# Net worth targets reported in the summary, in the household's currency unit
DEFAULT_MILESTONE_TARGETS = [10000.0, 30000.0, 50000.0, 100000.0, 200000.0]


class ProjectionConfig(BaseModel):
    """
    Complete input for one projection run.

    Example:
        ```python
        config = ProjectionConfig(
            profile=Profile(birth_year=1985, retirement_age=60),
            items=[salary, living_costs, mortgage],
            assumptions=SimulationAssumptions.from_preset("average"),
            priorities=CashFlowPriorities.default(),
            start_year=2025,
            start_month=1,
        )
        ```
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    profile: Profile = Field(..., description="Household birth and retirement data")
    items: List[FinancialItem] = Field(
        default_factory=list, description="Financial items, read-only for the run"
    )
    assumptions: SimulationAssumptions = Field(
        default_factory=SimulationAssumptions, description="Rate assumptions"
    )
    priorities: CashFlowPriorities = Field(
        default_factory=CashFlowPriorities, description="Cash-flow waterfall"
    )
    start_year: Optional[int] = Field(
        default=None, ge=1900, le=2200, description="First projected year (default now)"
    )
    start_month: Optional[int] = Field(
        default=None, ge=1, le=12, description="First projected month (default now)"
    )
    years: Optional[int] = Field(
        default=None,
        ge=1,
        le=120,
        description="Years to project (default: until life expectancy)",
    )
    milestone_targets: List[float] = Field(
        default_factory=lambda: list(DEFAULT_MILESTONE_TARGETS),
        description="Net worth targets whose first crossing is reported",
    )

    @field_validator("milestone_targets")
    @classmethod
    def validate_milestone_targets(cls, v: List[float]) -> List[float]:
        if any(target <= 0 for target in v):
            raise ValueError("Milestone targets must be positive")
        return sorted(set(v))

    @model_validator(mode="after")
    def validate_items(self) -> "ProjectionConfig":
        """Validate cross-item references."""
        ids = [item.id for item in self.items]
        duplicates = sorted({item_id for item_id in ids if ids.count(item_id) > 1})
        if duplicates:
            raise ValueError(f"Duplicate financial item ids: {duplicates}")

        debt_ids = {item.id for item in self.items if isinstance(item, DebtItem)}
        for item in self.items:
            if (
                isinstance(item, RealEstateItem)
                and item.linked_debt_id is not None
                and item.linked_debt_id not in debt_ids
            ):
                raise ValueError(
                    f"Real estate '{item.id}' links unknown debt '{item.linked_debt_id}'"
                )
        return self

    @model_validator(mode="after")
    def validate_start(self) -> "ProjectionConfig":
        if self.start_month is not None and self.start_year is None:
            raise ValueError("start_month requires start_year")
        return self

    def resolved(self, now: Optional[Tuple[int, int]] = None) -> "ProjectionConfig":
        """
        Return a copy with the start period filled in.

        Args:
            now: (year, month) to use instead of the current date
        """
        if self.start_year is not None and self.start_month is not None:
            return self
        year, month = now or get_current_period()
        if self.start_year is not None:
            year, month = self.start_year, 1
        return self.model_copy(update={"start_year": year, "start_month": month})

    def horizon(self) -> ProjectionHorizon:
        """
        Months covered by the run.

        Raises:
            ValueError: If the start is unresolved or the life-expectancy end
                lies before the start
        """
        if self.start_year is None or self.start_month is None:
            raise ValueError("Resolve the start period before building the horizon")
        start_index = to_month_index(self.start_year, self.start_month)
        if self.years is not None:
            end_year, end_month = from_month_index(start_index + self.years * 12 - 1)
        else:
            end_year, end_month = self.profile.horizon_end_year(), 12
        return ProjectionHorizon(
            start_year=self.start_year,
            start_month=self.start_month,
            end_year=end_year,
            end_month=end_month,
        )

    def fingerprint(self) -> str:
        """SHA-256 of the canonical JSON form of the inputs."""
        payload = self.model_dump_json(exclude_none=False)
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()
