"""
Projection service for running and recording household projections.

The service resolves run inputs, memoizes results by input fingerprint, and
records runs for stored households together with their yearly snapshot rows.
"""

import csv
import io
import logging
from collections import OrderedDict
from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from app.config import get_global_settings
from app.database.models import ProjectionRun, SnapshotRow
from app.models.projection_engine import ProjectionEngine
from app.models.simulation.config import ProjectionConfig
from app.models.simulation.result import CSV_COLUMNS, SimulationResult
from app.services.household_repository import HouseholdRepository

logger = logging.getLogger(__name__)


class RunNotFoundError(LookupError):
    """Raised when a projection run id does not exist."""


class ResultCache:
    """Bounded LRU of projection results keyed by input fingerprint."""

    def __init__(self, max_size: int = 32) -> None:
        self.max_size = max_size
        self._results: "OrderedDict[str, SimulationResult]" = OrderedDict()

    def get(self, fingerprint: str) -> Optional[SimulationResult]:
        result = self._results.get(fingerprint)
        if result is not None:
            self._results.move_to_end(fingerprint)
        return result

    def put(self, fingerprint: str, result: SimulationResult) -> None:
        if self.max_size <= 0:
            return
        self._results[fingerprint] = result
        self._results.move_to_end(fingerprint)
        while len(self._results) > self.max_size:
            self._results.popitem(last=False)

    def clear(self) -> None:
        self._results.clear()

    def __len__(self) -> int:
        return len(self._results)

    def __contains__(self, fingerprint: str) -> bool:
        return fingerprint in self._results


_result_cache: Optional[ResultCache] = None


def get_result_cache() -> ResultCache:
    """Get or create the process-wide result cache."""
    global _result_cache
    if _result_cache is None:
        _result_cache = ResultCache(get_global_settings().result_cache_size)
    return _result_cache


def reset_result_cache() -> None:
    """Drop the process-wide result cache (useful for testing)."""
    global _result_cache
    _result_cache = None


class ProjectionService:
    """Service for running household projections."""

    def __init__(
        self,
        db: Optional[Session] = None,
        engine: Optional[ProjectionEngine] = None,
        cache: Optional[ResultCache] = None,
    ) -> None:
        """Initialize the projection service.

        Args:
            db: Database session, needed only for stored households and runs
            engine: Projection engine (defaults to the standard collaborators)
            cache: Result cache (defaults to the process-wide cache)
        """
        self.db = db
        self.engine = engine or ProjectionEngine()
        self.cache = cache if cache is not None else get_result_cache()
        self.logger = logging.getLogger(__name__)

    def project(
        self, config: ProjectionConfig, now: Optional[Tuple[int, int]] = None
    ) -> SimulationResult:
        """Run a projection, reusing a cached result for identical inputs.

        Args:
            config: Projection input; an unset start defaults to now
            now: (year, month) used instead of the clock when resolving the start

        Returns:
            SimulationResult for the resolved config

        Raises:
            ValueError: If the horizon exceeds the configured maximum
        """
        resolved = config.resolved(now)
        horizon = resolved.horizon()
        max_years = get_global_settings().max_projection_years
        if horizon.months > max_years * 12:
            raise ValueError(
                f"Projection horizon of {horizon.months} months exceeds "
                f"the maximum of {max_years} years"
            )

        fingerprint = resolved.fingerprint()
        cached = self.cache.get(fingerprint)
        if cached is not None:
            self.logger.debug(f"Reusing cached projection {fingerprint[:12]}")
            return cached

        self.logger.info(
            f"Running projection {fingerprint[:12]} for {horizon.months} months"
        )
        result = self.engine.run(resolved)
        self.cache.put(fingerprint, result)
        return result

    def run_for_household(
        self,
        household_id: int,
        start_year: Optional[int] = None,
        start_month: Optional[int] = None,
        years: Optional[int] = None,
        now: Optional[Tuple[int, int]] = None,
    ) -> ProjectionRun:
        """Project a stored household and record the run.

        Args:
            household_id: Database ID of the household
            start_year: First projected year (defaults to now)
            start_month: First projected month (defaults to now)
            years: Years to project (defaults to life expectancy)
            now: (year, month) used instead of the clock

        Returns:
            The completed ProjectionRun

        Raises:
            HouseholdNotFoundError: If the household does not exist
            Exception: If the projection fails; the run is marked failed first
        """
        db = self._require_db()
        config = HouseholdRepository(db).load_config(
            household_id, start_year=start_year, start_month=start_month, years=years
        )

        run = ProjectionRun(household_id=household_id, status="pending")
        db.add(run)
        db.commit()
        db.refresh(run)

        try:
            self.logger.info(f"Starting projection run {run.id} for household {household_id}")
            self._update_run_status(run, "running", started_at=datetime.utcnow())

            result = self.project(config, now=now)
            self._store_results(run, result)

            self.logger.info(f"Completed projection run {run.id}")
            return run

        except Exception as e:
            self.logger.error(f"Projection run {run.id} failed: {str(e)}")
            self._update_run_status(
                run, "failed", error_message=str(e), completed_at=datetime.utcnow()
            )
            raise

    def get_run(self, run_id: int) -> ProjectionRun:
        """
        Fetch a recorded run.

        Raises:
            RunNotFoundError: If no run has this id
        """
        run = self._require_db().get(ProjectionRun, run_id)
        if run is None:
            raise RunNotFoundError(f"Run {run_id} not found")
        return run

    def export_run_csv(self, run_id: int) -> str:
        """Export the yearly snapshot rows of a run as CSV text."""
        run = self.get_run(run_id)
        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(CSV_COLUMNS)
        for row in run.snapshot_rows:
            values = []
            for column in CSV_COLUMNS:
                value = getattr(row, column)
                if isinstance(value, float):
                    value = round(value, 2)
                values.append("" if value is None else value)
            writer.writerow(values)
        return buffer.getvalue()

    def _require_db(self) -> Session:
        if self.db is None:
            raise RuntimeError("ProjectionService needs a database session for runs")
        return self.db

    def _update_run_status(self, run: ProjectionRun, status: str, **kwargs) -> None:
        """Update the status and timestamps of a run."""
        db = self._require_db()
        run.status = status  # type: ignore[assignment]
        for key, value in kwargs.items():
            setattr(run, key, value)
        db.commit()

    def _store_results(self, run: ProjectionRun, result: SimulationResult) -> None:
        """Persist the summary and yearly snapshot rows of a run."""
        db = self._require_db()
        run.fingerprint = result.fingerprint  # type: ignore[assignment]
        run.start_year = result.start_year  # type: ignore[assignment]
        run.end_year = result.end_year  # type: ignore[assignment]
        run.summary = result.summary.model_dump(mode="json")  # type: ignore[assignment]
        run.snapshot_rows = [
            SnapshotRow(
                year=snapshot.year,
                age=snapshot.age,
                spouse_age=snapshot.spouse_age,
                income=snapshot.income,
                expense=snapshot.expense,
                contributions=snapshot.contributions,
                debt_service=snapshot.debt_service,
                net_cash_flow=snapshot.net_cash_flow,
                allocated=snapshot.allocated,
                withdrawn=snapshot.withdrawn,
                uncovered_deficit=snapshot.uncovered_deficit,
                financial_assets=snapshot.financial_assets,
                pension_assets=snapshot.pension_assets,
                real_estate_value=snapshot.real_estate_value,
                physical_asset_value=snapshot.physical_asset_value,
                total_debt=snapshot.total_debt,
                net_worth=snapshot.net_worth,
                is_depleted=snapshot.is_depleted,
                breakdown=[entry.model_dump(mode="json") for entry in snapshot.breakdown],
            )
            for snapshot in result.snapshots
        ]
        run.status = "completed"  # type: ignore[assignment]
        run.completed_at = datetime.utcnow()  # type: ignore[assignment]
        db.commit()
