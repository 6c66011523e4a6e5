"""Tests for the household profile model."""

import pytest
from pydantic import ValidationError

from app.models.household import Profile
from app.models.time_grid import to_month_index


class TestProfile:
    """Test cases for Profile."""

    def test_ages_are_calendar_year_differences(self):
        profile = Profile(birth_year=1985, birth_month=7, retirement_age=60)
        assert profile.age_in(2025) == 40
        assert profile.spouse_age_in(2025) is None

    def test_retirement_is_month_before_birthday(self):
        profile = Profile(birth_year=1985, birth_month=7, retirement_age=60)
        assert profile.retirement_index() == to_month_index(2045, 6)
        assert profile.retirement_period() == (2045, 6)

    def test_january_birthday_retires_in_december(self):
        profile = Profile(birth_year=1966, birth_month=1, retirement_age=65)
        assert profile.retirement_period() == (2030, 12)

    def test_spouse_retirement(self):
        profile = Profile(
            birth_year=1980,
            retirement_age=60,
            spouse_birth_year=1982,
            spouse_birth_month=3,
            spouse_retirement_age=62,
        )
        assert profile.has_spouse
        assert profile.spouse_age_in(2025) == 43
        assert profile.retirement_period("spouse") == (2044, 2)

    def test_spouse_defaults_to_primary_retirement_age(self):
        profile = Profile(birth_year=1980, retirement_age=60, spouse_birth_year=1982)
        assert profile.retirement_period("spouse") == (2041, 12)

    def test_no_spouse(self):
        profile = Profile(birth_year=1980, retirement_age=60)
        assert not profile.has_spouse
        assert profile.retirement_index("spouse") is None
        assert profile.retirement_period("spouse") is None
        assert profile.age_reached_index(65, "spouse") is None

    def test_age_reached_index(self):
        profile = Profile(birth_year=1970, birth_month=4, retirement_age=60)
        assert profile.age_reached_index(65) == to_month_index(2035, 4)

    def test_horizon_end_uses_later_party(self):
        profile = Profile(
            birth_year=1970,
            retirement_age=60,
            spouse_birth_year=1975,
            life_expectancy=90,
        )
        assert profile.horizon_end_year() == 2065

    def test_spouse_retirement_age_requires_spouse(self):
        with pytest.raises(ValidationError):
            Profile(birth_year=1980, retirement_age=60, spouse_retirement_age=60)

    def test_profile_is_frozen(self):
        profile = Profile(birth_year=1980, retirement_age=60)
        with pytest.raises(ValidationError):
            profile.retirement_age = 65
