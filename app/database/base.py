"""
Database base configuration and session management.

This module provides the SQLAlchemy base class, engine, and session management
for the household planner. SQLite URLs get a thread-tolerant connection so the
Flask development server can share the file database.
"""

from typing import Generator, Optional

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from app.config import get_global_settings

# Create the declarative base
Base = declarative_base()

# Global variables for engine and session factory
_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


def build_engine(db_url: str, echo: bool = False) -> Engine:
    """Create an engine with dialect-appropriate options."""
    if db_url.startswith("sqlite"):
        return create_engine(
            db_url, echo=echo, connect_args={"check_same_thread": False}
        )
    return create_engine(
        db_url,
        echo=echo,
        pool_pre_ping=True,  # Verify connections before use
        pool_recycle=3600,  # Recycle connections after 1 hour
    )


def get_engine() -> Engine:
    """Get or create the database engine."""
    global _engine
    if _engine is None:
        settings = get_global_settings()
        _engine = build_engine(settings.db_url, echo=settings.log_level == "DEBUG")
    return _engine


def get_session_factory() -> sessionmaker:
    """Get or create the session factory."""
    global _session_factory
    if _session_factory is None:
        engine = get_engine()
        _session_factory = sessionmaker(bind=engine)
    return _session_factory


def get_session() -> Session:
    """Get a new database session."""
    session_factory = get_session_factory()
    return session_factory()  # type: ignore[no-any-return]


def get_db() -> Generator[Session, None, None]:
    """Dependency for Flask views to get database sessions."""
    session = get_session()
    try:
        yield session
    finally:
        session.close()


def reset_engine() -> None:
    """Dispose the global engine and session factory (useful for testing)."""
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None


def create_tables() -> None:
    """Create all tables in the database."""
    from app.database import models  # noqa: F401  register tables

    engine = get_engine()
    Base.metadata.create_all(bind=engine)


def drop_tables() -> None:
    """Drop all tables in the database."""
    engine = get_engine()
    Base.metadata.drop_all(bind=engine)
