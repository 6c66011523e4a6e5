"""Database models and configuration for the household planner."""

from .base import Base, get_engine, get_session
from .models import FinancialItemRecord, Household, ProjectionRun, SnapshotRow

__all__ = [
    "Base",
    "get_engine",
    "get_session",
    "Household",
    "FinancialItemRecord",
    "ProjectionRun",
    "SnapshotRow",
]
