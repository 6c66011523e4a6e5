"""
Time grid utilities for monthly household projections.

Every (year, month) pair is turned into a single integer month index at the
engine boundary. Interval and duration arithmetic happens on indexes only;
indexes are converted back to (year, month) for presentation.
"""

from datetime import datetime
from typing import Iterator, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator

MONTHS_PER_YEAR = 12

# Sentinels used when an item has no start or no end
OPEN_START_INDEX = 0
OPEN_END_INDEX = 9999 * MONTHS_PER_YEAR + 11


def to_month_index(year: int, month: int) -> int:
    """Convert a calendar (year, month) to a month index."""
    return year * MONTHS_PER_YEAR + (month - 1)


def from_month_index(index: int) -> Tuple[int, int]:
    """Convert a month index back to a calendar (year, month)."""
    return index // MONTHS_PER_YEAR, index % MONTHS_PER_YEAR + 1


def months_between(start_index: int, end_index: int) -> int:
    """Signed number of months from start to end."""
    return end_index - start_index


def annual_to_monthly_rate(annual_rate_pct: float) -> float:
    """
    Convert an annual percentage rate into the equivalent monthly compound rate.

    Args:
        annual_rate_pct: Annual rate in percent (e.g. 3.0 for 3%)

    Returns:
        Monthly rate as a decimal such that twelve months compound to the annual rate
    """
    annual = annual_rate_pct / 100
    if annual <= -1:
        return -1.0
    return (1 + annual) ** (1 / MONTHS_PER_YEAR) - 1


def get_current_period() -> Tuple[int, int]:
    """Get the current calendar (year, month)."""
    now = datetime.now()
    return now.year, now.month


class ProjectionHorizon(BaseModel):
    """Inclusive month range covered by a projection."""

    model_config = ConfigDict(frozen=True)

    start_year: int = Field(..., ge=1900, le=2200, description="First projected year")
    start_month: int = Field(..., ge=1, le=12, description="First projected month")
    end_year: int = Field(..., ge=1900, le=2200, description="Last projected year")
    end_month: int = Field(default=12, ge=1, le=12, description="Last projected month")

    @model_validator(mode="after")
    def validate_range(self) -> "ProjectionHorizon":
        if self.end_index < self.start_index:
            raise ValueError("Horizon end must be >= horizon start")
        return self

    @property
    def start_index(self) -> int:
        return to_month_index(self.start_year, self.start_month)

    @property
    def end_index(self) -> int:
        return to_month_index(self.end_year, self.end_month)

    @property
    def months(self) -> int:
        """Number of monthly periods in the horizon."""
        return months_between(self.start_index, self.end_index) + 1

    def iter_indexes(self) -> Iterator[int]:
        """Iterate month indexes from start to end inclusive."""
        return iter(range(self.start_index, self.end_index + 1))


def is_in_window(
    index: int, start_index: Optional[int], end_index: Optional[int]
) -> bool:
    """
    Check whether a month index falls inside an item window.

    A missing start means the window is already open and a missing end means it
    never closes. A window whose end precedes its start contains no months.
    """
    start = OPEN_START_INDEX if start_index is None else start_index
    end = OPEN_END_INDEX if end_index is None else end_index
    return start <= index <= end
