"""
Tests for the projection service.

This module tests result caching by input fingerprint, the horizon limit,
recorded household runs and CSV export.
"""

import csv
import io
import os
from unittest.mock import MagicMock, patch

import pytest

from app.config import reset_global_settings
from app.database.models import ProjectionRun
from app.models.financial_items import ExpenseItem, IncomeItem
from app.models.projection_engine import ProjectionEngine
from app.models.simulation.config import ProjectionConfig
from app.models.simulation.result import CSV_COLUMNS
from app.services.household_repository import HouseholdNotFoundError, HouseholdRepository
from app.services.projection_service import (
    ProjectionService,
    ResultCache,
    RunNotFoundError,
    get_result_cache,
)


@pytest.fixture
def config(profile, zero_rates):
    return ProjectionConfig(
        profile=profile,
        items=[
            IncomeItem(id="salary", title="Salary", amount=3000, growth_rate=0),
            ExpenseItem(id="living", title="Living", amount=2000, growth_rate=0),
        ],
        assumptions=zero_rates,
        start_year=2025,
        start_month=1,
        years=3,
    )


@pytest.fixture
def household_id(db_session, profile):
    household = HouseholdRepository(db_session).create_household(
        "Test household",
        profile,
        items=[
            IncomeItem(id="salary", title="Salary", amount=3000, growth_rate=0),
            ExpenseItem(id="living", title="Living", amount=2000, growth_rate=0),
        ],
    )
    return household.id


class TestResultCache:
    """Test the bounded result cache."""

    def test_evicts_least_recently_used(self, config):
        result = ProjectionEngine().run(config)
        cache = ResultCache(max_size=2)
        cache.put("a", result)
        cache.put("b", result)
        cache.get("a")
        cache.put("c", result)

        assert "a" in cache
        assert "b" not in cache
        assert len(cache) == 2

    def test_zero_size_disables_caching(self, config):
        cache = ResultCache(max_size=0)
        cache.put("a", ProjectionEngine().run(config))
        assert len(cache) == 0

    def test_global_cache_uses_settings(self):
        reset_global_settings()
        with patch.dict(
            os.environ,
            {"SECRET_KEY": "valid-secret-key-123", "RESULT_CACHE_SIZE": "3"},
            clear=True,
        ):
            assert get_result_cache().max_size == 3
            assert get_result_cache() is get_result_cache()


class TestProject:
    """Test ad-hoc projections."""

    def test_identical_inputs_reuse_result(self, config):
        service = ProjectionService(cache=ResultCache())
        first = service.project(config)
        second = service.project(config)

        assert first is second
        assert first.fingerprint == config.fingerprint()

    def test_engine_runs_once_per_fingerprint(self, config):
        engine = MagicMock(wraps=ProjectionEngine())
        service = ProjectionService(engine=engine, cache=ResultCache())
        service.project(config)
        service.project(config)

        assert engine.run.call_count == 1

    def test_start_defaults_to_now(self, profile, zero_rates):
        config = ProjectionConfig(profile=profile, assumptions=zero_rates, years=1)
        result = ProjectionService(cache=ResultCache()).project(config, now=(2031, 7))

        assert (result.start_year, result.start_month) == (2031, 7)
        assert (result.end_year, result.end_month) == (2032, 6)

    def test_horizon_limit(self, config):
        reset_global_settings()
        with patch.dict(
            os.environ,
            {"SECRET_KEY": "valid-secret-key-123", "MAX_PROJECTION_YEARS": "2"},
            clear=True,
        ):
            with pytest.raises(ValueError, match="exceeds the maximum of 2 years"):
                ProjectionService(cache=ResultCache()).project(config)


class TestHouseholdRuns:
    """Test recorded runs for stored households."""

    def test_run_is_recorded(self, db_session, household_id):
        service = ProjectionService(db=db_session, cache=ResultCache())
        run = service.run_for_household(household_id, start_year=2025, start_month=1, years=2)

        assert run.status == "completed"
        assert run.started_at is not None
        assert run.completed_at is not None
        assert (run.start_year, run.end_year) == (2025, 2026)
        assert len(run.fingerprint) == 64
        assert run.summary["current_net_worth"] == pytest.approx(1000)
        assert [row.year for row in run.snapshot_rows] == [2025, 2026]
        assert run.snapshot_rows[0].income == pytest.approx(36000)
        # Surplus earns the default scenario savings rate in the cash account
        assert 24000 < run.snapshot_rows[1].net_worth < 25000

    def test_missing_household(self, db_session):
        service = ProjectionService(db=db_session, cache=ResultCache())
        with pytest.raises(HouseholdNotFoundError):
            service.run_for_household(404)
        assert db_session.query(ProjectionRun).count() == 0

    def test_failed_run_is_marked(self, db_session, household_id):
        engine = MagicMock()
        engine.run.side_effect = RuntimeError("engine exploded")
        service = ProjectionService(db=db_session, engine=engine, cache=ResultCache())

        with pytest.raises(RuntimeError):
            service.run_for_household(household_id, start_year=2025, start_month=1, years=1)

        run = db_session.query(ProjectionRun).one()
        assert run.status == "failed"
        assert run.error_message == "engine exploded"
        assert run.completed_at is not None

    def test_get_run(self, db_session, household_id):
        service = ProjectionService(db=db_session, cache=ResultCache())
        run = service.run_for_household(household_id, start_year=2025, start_month=1, years=1)

        assert service.get_run(run.id).id == run.id
        with pytest.raises(RunNotFoundError):
            service.get_run(run.id + 100)

    def test_export_csv(self, db_session, household_id):
        service = ProjectionService(db=db_session, cache=ResultCache())
        run = service.run_for_household(household_id, start_year=2025, start_month=1, years=2)

        rows = list(csv.reader(io.StringIO(service.export_run_csv(run.id))))
        assert rows[0] == CSV_COLUMNS
        assert [row[0] for row in rows[1:]] == ["2025", "2026"]

    def test_runs_need_a_session(self):
        with pytest.raises(RuntimeError, match="needs a database session"):
            ProjectionService(cache=ResultCache()).get_run(1)
