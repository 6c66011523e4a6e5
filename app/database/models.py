"""
SQLAlchemy database models for the household cash-flow planner.

This module defines the tables backing the external store: households with
their profile, assumptions and waterfall; the financial items they own; and
projection runs with their yearly snapshot rows.
"""

from datetime import datetime
from sqlalchemy import (
    JSON, Boolean, CheckConstraint, Column, DateTime, ForeignKey, Index,
    Integer, Numeric, String, Text, UniqueConstraint
)
from sqlalchemy.orm import relationship

from .base import Base

ITEM_CATEGORIES = "('income', 'expense', 'savings', 'pension', 'debt', 'real_estate', 'asset')"


class Household(Base):
    """Household model holding profile, assumptions and cash-flow rules."""

    __tablename__ = 'households'

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    profile = Column(JSON, nullable=False)  # Profile model as JSON
    assumptions = Column(JSON)  # SimulationAssumptions; None means default scenario
    cash_flow_rules = Column(JSON)  # List of rule dicts; None means no waterfall
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    items = relationship(
        "FinancialItemRecord",
        back_populates="household",
        cascade="all, delete-orphan",
        order_by="FinancialItemRecord.sort_order",
    )
    runs = relationship("ProjectionRun", back_populates="household", cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_households_name', 'name'),
    )

    def __repr__(self):
        return f"<Household(id={self.id}, name='{self.name}')>"


class FinancialItemRecord(Base):
    """Stored financial item: common columns plus the category payload."""

    __tablename__ = 'financial_items'

    id = Column(Integer, primary_key=True, index=True)
    household_id = Column(Integer, ForeignKey('households.id', ondelete='CASCADE'), nullable=False, index=True)
    item_key = Column(String(100), nullable=False)  # Stable id used inside projections
    category = Column(String(50), nullable=False, index=True)
    type = Column(String(50), nullable=False)
    title = Column(String(255), nullable=False)
    owner = Column(String(20), nullable=False, default='self')
    start_year = Column(Integer)
    start_month = Column(Integer, default=1)
    end_year = Column(Integer)
    end_month = Column(Integer)
    end_type = Column(String(30), nullable=False, default='custom')
    is_active = Column(Boolean, nullable=False, default=True)
    sort_order = Column(Integer, nullable=False, default=0)
    data = Column(JSON, nullable=False, default=dict)  # Category-specific payload
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    household = relationship("Household", back_populates="items")

    __table_args__ = (
        UniqueConstraint('household_id', 'item_key', name='uq_item_household_key'),
        CheckConstraint(f"category IN {ITEM_CATEGORIES}", name='ck_item_category'),
        CheckConstraint("owner IN ('self', 'spouse', 'common')", name='ck_item_owner'),
        CheckConstraint("end_type IN ('custom', 'self_retirement', 'spouse_retirement')", name='ck_item_end_type'),
        CheckConstraint("start_month IS NULL OR (start_month >= 1 AND start_month <= 12)", name='ck_item_start_month'),
        CheckConstraint("end_month IS NULL OR (end_month >= 1 AND end_month <= 12)", name='ck_item_end_month'),
        Index('idx_items_household_category', 'household_id', 'category'),
    )

    def to_item_dict(self):
        """Flatten the record into the dict shape of a FinancialItem."""
        item = dict(self.data or {})
        item.update(
            id=self.item_key,
            category=self.category,
            type=self.type,
            title=self.title,
            owner=self.owner,
            start_year=self.start_year,
            start_month=self.start_month or 1,
            end_year=self.end_year,
            end_month=self.end_month,
            end_type=self.end_type,
            is_active=self.is_active,
            sort_order=self.sort_order,
        )
        return item

    def __repr__(self):
        return f"<FinancialItemRecord(id={self.id}, key='{self.item_key}', category='{self.category}')>"


class ProjectionRun(Base):
    """ProjectionRun model for tracking projection runs and their summaries."""

    __tablename__ = 'projection_runs'

    id = Column(Integer, primary_key=True, index=True)
    household_id = Column(Integer, ForeignKey('households.id', ondelete='CASCADE'), nullable=False, index=True)
    status = Column(String(50), nullable=False, default='pending', index=True)
    fingerprint = Column(String(64), index=True)  # Input fingerprint of the run
    start_year = Column(Integer)
    end_year = Column(Integer)
    summary = Column(JSON)  # SimulationSummary as JSON
    error_message = Column(Text)  # Store error details if run failed
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    started_at = Column(DateTime)
    completed_at = Column(DateTime)

    # Relationships
    household = relationship("Household", back_populates="runs")
    snapshot_rows = relationship(
        "SnapshotRow",
        back_populates="run",
        cascade="all, delete-orphan",
        order_by="SnapshotRow.year",
    )

    __table_args__ = (
        CheckConstraint("status IN ('pending', 'running', 'completed', 'failed')", name='ck_run_status'),
        Index('idx_runs_household_status', 'household_id', 'status'),
        Index('idx_runs_created', 'created_at'),
    )

    def __repr__(self):
        return f"<ProjectionRun(id={self.id}, household_id={self.household_id}, status='{self.status}')>"


class SnapshotRow(Base):
    """Yearly snapshot figures of a completed projection run."""

    __tablename__ = 'snapshot_rows'

    id = Column(Integer, primary_key=True, index=True)
    run_id = Column(Integer, ForeignKey('projection_runs.id', ondelete='CASCADE'), nullable=False, index=True)
    year = Column(Integer, nullable=False, index=True)
    age = Column(Integer, nullable=False)
    spouse_age = Column(Integer)
    income = Column(Numeric(18, 2, asdecimal=False), nullable=False, default=0)
    expense = Column(Numeric(18, 2, asdecimal=False), nullable=False, default=0)
    contributions = Column(Numeric(18, 2, asdecimal=False), nullable=False, default=0)
    debt_service = Column(Numeric(18, 2, asdecimal=False), nullable=False, default=0)
    net_cash_flow = Column(Numeric(18, 2, asdecimal=False), nullable=False, default=0)
    allocated = Column(Numeric(18, 2, asdecimal=False), nullable=False, default=0)
    withdrawn = Column(Numeric(18, 2, asdecimal=False), nullable=False, default=0)
    uncovered_deficit = Column(Numeric(18, 2, asdecimal=False), nullable=False, default=0)
    financial_assets = Column(Numeric(18, 2, asdecimal=False), nullable=False, default=0)
    pension_assets = Column(Numeric(18, 2, asdecimal=False), nullable=False, default=0)
    real_estate_value = Column(Numeric(18, 2, asdecimal=False), nullable=False, default=0)
    physical_asset_value = Column(Numeric(18, 2, asdecimal=False), nullable=False, default=0)
    total_debt = Column(Numeric(18, 2, asdecimal=False), nullable=False, default=0)
    net_worth = Column(Numeric(18, 2, asdecimal=False), nullable=False, default=0)
    is_depleted = Column(Boolean, nullable=False, default=False)
    breakdown = Column(JSON)  # Merged yearly breakdown lines

    # Relationships
    run = relationship("ProjectionRun", back_populates="snapshot_rows")

    __table_args__ = (
        UniqueConstraint('run_id', 'year', name='uq_snapshot_run_year'),
        CheckConstraint("year >= 1900 AND year <= 2200", name='ck_snapshot_year_range'),
        Index('idx_snapshot_run_year', 'run_id', 'year'),
    )

    def __repr__(self):
        return f"<SnapshotRow(run_id={self.run_id}, year={self.year}, net_worth={self.net_worth})>"
