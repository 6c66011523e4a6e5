"""
Effective rate resolution.

Precedence is total, with no blending:

1. ``fixed`` category: the item's own stored rate (0 when it has none).
2. No category on the item but an explicit stored rate: treated as ``fixed``,
   so an explicit item rate always overrides the scenario assumption.
3. Any other category: the assumption rate for that category, taken from the
   preset table in scenario mode.
4. Neither: the default category for the item's kind.
"""

from typing import Optional

from .assumptions import SimulationAssumptions
from .financial_items import FinancialItemBase, RateCategory


class RateProvider:
    """Resolves annual rates (in percent) for items and categories."""

    @staticmethod
    def effective_rate(
        category: RateCategory,
        item_rate: Optional[float],
        assumptions: SimulationAssumptions,
    ) -> float:
        """
        Resolve the effective annual rate.

        Args:
            category: Rate category of the balance or stream
            item_rate: The item's own stored annual rate, if any
            assumptions: Active assumption set

        Returns:
            Annual rate in percent
        """
        if category == "fixed":
            return float(item_rate or 0.0)
        return assumptions.resolved_rates().rate_for(category)

    @staticmethod
    def category_for_item(item: FinancialItemBase) -> RateCategory:
        """Pick the rate category that governs an item."""
        if item.stored_rate_category is not None:
            return item.stored_rate_category
        if item.stored_rate is not None:
            return "fixed"
        return item.default_rate_category

    @classmethod
    def resolve_for_item(
        cls, item: FinancialItemBase, assumptions: SimulationAssumptions
    ) -> float:
        """Effective annual rate for an item under the given assumptions."""
        category = cls.category_for_item(item)
        return cls.effective_rate(category, item.stored_rate, assumptions)
