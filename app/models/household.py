"""
Household profile model.

The profile carries the birth dates and retirement ages of the primary person
and an optional spouse. Retirement periods and the life-expectancy horizon
are derived from it.
"""

from typing import Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .time_grid import from_month_index, to_month_index

Party = Literal["self", "spouse"]


class Profile(BaseModel):
    """Birth and retirement information for the household."""

    model_config = ConfigDict(frozen=True)

    birth_year: int = Field(..., ge=1900, le=2100, description="Birth year (self)")
    birth_month: int = Field(default=1, ge=1, le=12, description="Birth month (self)")
    retirement_age: int = Field(
        ..., ge=30, le=100, description="Planned retirement age (self)"
    )
    spouse_birth_year: Optional[int] = Field(
        default=None, ge=1900, le=2100, description="Birth year (spouse)"
    )
    spouse_birth_month: int = Field(
        default=1, ge=1, le=12, description="Birth month (spouse)"
    )
    spouse_retirement_age: Optional[int] = Field(
        default=None, ge=30, le=100, description="Planned retirement age (spouse)"
    )
    life_expectancy: int = Field(
        default=100, ge=50, le=120, description="Age at which the projection ends"
    )
    target_retirement_fund: Optional[float] = Field(
        default=None, ge=0, description="Net worth the household aims to retire with"
    )

    @model_validator(mode="after")
    def validate_spouse(self) -> "Profile":
        if self.spouse_retirement_age is not None and self.spouse_birth_year is None:
            raise ValueError("spouse_retirement_age requires spouse_birth_year")
        return self

    @property
    def has_spouse(self) -> bool:
        return self.spouse_birth_year is not None

    def age_in(self, year: int) -> int:
        """Calendar-year age of the primary person."""
        return year - self.birth_year

    def spouse_age_in(self, year: int) -> Optional[int]:
        """Calendar-year age of the spouse, if any."""
        if self.spouse_birth_year is None:
            return None
        return year - self.spouse_birth_year

    def retirement_index(self, party: Party = "self") -> Optional[int]:
        """
        Month index of the last working month for a party.

        The last working month is the month before the birth month in the year
        the party reaches retirement age, so a January birthday resolves to
        December of the previous year.

        Returns:
            Month index, or None when the party does not exist or has no
            retirement age
        """
        if party == "self":
            birth_year, birth_month, age = (
                self.birth_year,
                self.birth_month,
                self.retirement_age,
            )
        else:
            if self.spouse_birth_year is None:
                return None
            birth_year, birth_month = self.spouse_birth_year, self.spouse_birth_month
            age = self.spouse_retirement_age or self.retirement_age
        return to_month_index(birth_year + age, birth_month) - 1

    def retirement_period(self, party: Party = "self") -> Optional[Tuple[int, int]]:
        """(year, month) of a party's last working month."""
        index = self.retirement_index(party)
        if index is None:
            return None
        return from_month_index(index)

    def age_reached_index(self, age: int, party: Party = "self") -> Optional[int]:
        """Month index of the birthday on which a party turns ``age``."""
        if party == "self":
            return to_month_index(self.birth_year + age, self.birth_month)
        if self.spouse_birth_year is None:
            return None
        return to_month_index(self.spouse_birth_year + age, self.spouse_birth_month)

    def horizon_end_year(self) -> int:
        """Year in which the later of self and spouse reaches life expectancy."""
        end_year = self.birth_year + self.life_expectancy
        if self.spouse_birth_year is not None:
            end_year = max(end_year, self.spouse_birth_year + self.life_expectancy)
        return end_year
