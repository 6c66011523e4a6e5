"""
Household store adapter.

Reads households and their financial items from the database and turns them
into a validated ProjectionConfig, and writes validated items back as records.
This is the configuration boundary: anything malformed in the store surfaces
here as a pydantic ValidationError before a projection is attempted.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from app.config import get_global_settings
from app.database.models import FinancialItemRecord, Household
from app.models.assumptions import SimulationAssumptions
from app.models.cash_flow_rules import CashFlowPriorities
from app.models.financial_items import FinancialItemBase, parse_items
from app.models.household import Profile
from app.models.simulation.config import ProjectionConfig

logger = logging.getLogger(__name__)

# Columns stored on the record itself; everything else goes to the payload
COMMON_ITEM_FIELDS = {
    "id",
    "category",
    "type",
    "title",
    "owner",
    "start_year",
    "start_month",
    "end_year",
    "end_month",
    "end_type",
    "is_active",
    "sort_order",
}


class HouseholdNotFoundError(LookupError):
    """Raised when a household id does not exist in the store."""


class HouseholdRepository:
    """Database-backed store of households and their financial items."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def create_household(
        self,
        name: str,
        profile: Profile,
        assumptions: Optional[SimulationAssumptions] = None,
        priorities: Optional[CashFlowPriorities] = None,
        items: Iterable[FinancialItemBase] = (),
    ) -> Household:
        """Persist a new household with its items."""
        household = Household(
            name=name,
            profile=profile.model_dump(mode="json"),
            assumptions=assumptions.model_dump(mode="json") if assumptions else None,
            cash_flow_rules=(
                [rule.model_dump(mode="json") for rule in priorities.rules]
                if priorities
                else None
            ),
        )
        household.items = [self._to_record(item) for item in items]
        self.db.add(household)
        self.db.commit()
        self.db.refresh(household)
        logger.info(f"Created household {household.id} with {len(household.items)} items")
        return household

    def add_item(self, household_id: int, item: FinancialItemBase) -> FinancialItemRecord:
        """Attach one validated item to an existing household."""
        household = self.get_household(household_id)
        record = self._to_record(item)
        household.items.append(record)
        self.db.commit()
        self.db.refresh(record)
        return record

    def get_household(self, household_id: int) -> Household:
        """
        Fetch a household.

        Raises:
            HouseholdNotFoundError: If no household has this id
        """
        household = self.db.get(Household, household_id)
        if household is None:
            raise HouseholdNotFoundError(f"Household {household_id} not found")
        return household

    def load_items(self, household_id: int) -> List[FinancialItemBase]:
        household = self.get_household(household_id)
        return parse_items(record.to_item_dict() for record in household.items)

    def load_config(
        self,
        household_id: int,
        start_year: Optional[int] = None,
        start_month: Optional[int] = None,
        years: Optional[int] = None,
    ) -> ProjectionConfig:
        """
        Assemble the projection input for a stored household.

        Missing assumptions fall back to the configured default scenario and a
        profile without a life expectancy gets the configured default.
        """
        settings = get_global_settings()
        household = self.get_household(household_id)

        profile_data: Dict[str, Any] = dict(household.profile or {})
        profile_data.setdefault("life_expectancy", settings.default_life_expectancy)

        if household.assumptions:
            assumptions = SimulationAssumptions.model_validate(household.assumptions)
        else:
            assumptions = SimulationAssumptions.from_preset(settings.default_scenario)

        return ProjectionConfig(
            profile=Profile.model_validate(profile_data),
            items=parse_items(record.to_item_dict() for record in household.items),
            assumptions=assumptions,
            priorities=CashFlowPriorities(rules=household.cash_flow_rules or []),
            start_year=start_year,
            start_month=start_month,
            years=years,
        )

    @staticmethod
    def _to_record(item: FinancialItemBase) -> FinancialItemRecord:
        data = item.model_dump(mode="json")
        payload = {k: v for k, v in data.items() if k not in COMMON_ITEM_FIELDS}
        return FinancialItemRecord(
            item_key=data["id"],
            category=data["category"],
            type=data["type"],
            title=data["title"],
            owner=data["owner"],
            start_year=data["start_year"],
            start_month=data["start_month"],
            end_year=data["end_year"],
            end_month=data["end_month"],
            end_type=data["end_type"],
            is_active=data["is_active"],
            sort_order=data["sort_order"],
            data=payload,
        )
