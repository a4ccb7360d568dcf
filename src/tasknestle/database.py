"""Database engine and session factory construction."""
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from .config import Settings


def create_db_engine(database_url: str) -> Engine:
    """
    Create a SQLAlchemy engine for the configured database.

    SQLite URLs (tests, local development) share one connection so that an
    in-memory database survives across sessions.

    Args:
        database_url: SQLAlchemy database URL

    Returns:
        Engine: configured engine
    """
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    return create_engine(
        database_url,
        pool_pre_ping=True,          # Verify connections before using
        pool_size=5,
        max_overflow=10,
        pool_recycle=3600,           # Recycle connections every hour
        pool_timeout=30,
    )


def create_session_factory(settings: Settings) -> sessionmaker:
    """Build a session factory bound to a fresh engine for ``settings``."""
    engine = create_db_engine(settings.database_url)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)
