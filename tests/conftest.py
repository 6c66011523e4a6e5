"""
Pytest configuration and shared fixtures for the household planner tests.
"""

import os

# Settings need a secret before the application is imported
os.environ.setdefault("SECRET_KEY", "test-secret-key-123")

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.config import reset_global_settings  # noqa: E402
from app.database import models  # noqa: E402,F401  register tables
from app.database.base import Base, reset_engine  # noqa: E402
from app.models.assumptions import ScenarioRates, SimulationAssumptions  # noqa: E402
from app.models.household import Profile  # noqa: E402
from app.services.projection_service import reset_result_cache  # noqa: E402


@pytest.fixture(autouse=True)
def reset_globals():
    """Drop cached settings, engine and results around every test."""
    reset_global_settings()
    reset_result_cache()
    reset_engine()
    yield
    reset_global_settings()
    reset_result_cache()
    reset_engine()


@pytest.fixture(scope="function")
def db_engine():
    """Create an in-memory SQLite database shared across connections."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(db_engine):
    """Create a database session for testing."""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def profile():
    """Primary person born January 1966, retiring at 65 (last month 2030-12)."""
    return Profile(birth_year=1966, birth_month=1, retirement_age=65, life_expectancy=90)


@pytest.fixture
def zero_rates():
    """Fixed-mode assumptions with every rate at zero."""
    return SimulationAssumptions(
        mode="fixed",
        rates=ScenarioRates(
            savings=0,
            investment=0,
            pension=0,
            real_estate=0,
            inflation=0,
            income_growth=0,
        ),
        base_rate=0,
    )
