"""
Tests for SQLAlchemy database models.

This module tests the database models, relationships, and constraints
of the household store.
"""

import pytest
from sqlalchemy.exc import IntegrityError

from app.database.models import FinancialItemRecord, Household, ProjectionRun, SnapshotRow
from app.models.financial_items import parse_item


class TestDatabaseModels:
    """Test suite for database models and relationships."""

    @pytest.fixture
    def household(self, db_session):
        """Create a sample household for testing."""
        household = Household(
            name="Kim family",
            profile={"birth_year": 1985, "retirement_age": 60},
        )
        db_session.add(household)
        db_session.commit()
        db_session.refresh(household)
        return household

    def test_household_creation(self, db_session, household):
        assert household.id is not None
        assert household.created_at is not None
        assert household.profile["birth_year"] == 1985
        assert household.assumptions is None
        assert "Kim family" in repr(household)

    def test_item_record_round_trips_to_item(self, db_session, household):
        record = FinancialItemRecord(
            household_id=household.id,
            item_key="salary",
            category="income",
            type="labor",
            title="Salary",
            owner="self",
            start_year=2025,
            start_month=1,
            end_type="self_retirement",
            data={"amount": 3000, "growth_rate": 2.0},
        )
        db_session.add(record)
        db_session.commit()

        item = parse_item(db_session.get(FinancialItemRecord, record.id).to_item_dict())
        assert item.id == "salary"
        assert item.amount == 3000
        assert item.end_type == "self_retirement"

    def test_item_key_unique_per_household(self, db_session, household):
        for _ in range(2):
            db_session.add(
                FinancialItemRecord(
                    household_id=household.id,
                    item_key="dup",
                    category="expense",
                    type="living",
                    title="Living",
                    data={"amount": 1},
                )
            )
        with pytest.raises(IntegrityError):
            db_session.commit()

    def test_item_category_constraint(self, db_session, household):
        db_session.add(
            FinancialItemRecord(
                household_id=household.id,
                item_key="x",
                category="lottery",
                type="other",
                title="X",
                data={},
            )
        )
        with pytest.raises(IntegrityError):
            db_session.commit()

    def test_items_ordered_by_sort_order(self, db_session, household):
        for key, order in [("b", 2), ("a", 1)]:
            household.items.append(
                FinancialItemRecord(
                    item_key=key,
                    category="expense",
                    type="living",
                    title=key,
                    sort_order=order,
                    data={"amount": 1},
                )
            )
        db_session.commit()
        db_session.expire_all()

        assert [r.item_key for r in db_session.get(Household, household.id).items] == ["a", "b"]

    def test_run_status_constraint(self, db_session, household):
        db_session.add(ProjectionRun(household_id=household.id, status="exploded"))
        with pytest.raises(IntegrityError):
            db_session.commit()

    def test_run_with_snapshot_rows(self, db_session, household):
        run = ProjectionRun(household_id=household.id, status="completed", summary={"peak": 1})
        run.snapshot_rows = [
            SnapshotRow(year=2026, age=41, net_worth=200.5),
            SnapshotRow(year=2025, age=40, net_worth=100.25, is_depleted=True),
        ]
        db_session.add(run)
        db_session.commit()
        db_session.expire_all()

        stored = db_session.get(ProjectionRun, run.id)
        assert [row.year for row in stored.snapshot_rows] == [2025, 2026]
        assert stored.snapshot_rows[0].net_worth == 100.25
        assert stored.snapshot_rows[0].is_depleted is True
        assert stored.household.name == "Kim family"

    def test_snapshot_year_unique_per_run(self, db_session, household):
        run = ProjectionRun(household_id=household.id)
        run.snapshot_rows = [SnapshotRow(year=2025, age=40), SnapshotRow(year=2025, age=40)]
        db_session.add(run)
        with pytest.raises(IntegrityError):
            db_session.commit()

    def test_cascade_delete(self, db_session, household):
        household.items.append(
            FinancialItemRecord(
                item_key="x", category="expense", type="living", title="X", data={"amount": 1}
            )
        )
        household.runs.append(ProjectionRun(status="pending"))
        db_session.commit()

        db_session.delete(household)
        db_session.commit()

        assert db_session.query(FinancialItemRecord).count() == 0
        assert db_session.query(ProjectionRun).count() == 0
