from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager

from loguru import logger
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from config import get_settings
from cfplanner.db.models.base import Base

settings = get_settings()

engine = create_engine(
    settings.database_url,
    echo=settings.database_echo or settings.log_level == "DEBUG",
    pool_pre_ping=True,
)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


def get_engine():
    """Get the database engine."""
    return engine


def init_db() -> None:
    """Initialize database tables."""
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables initialized")


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """Provide a transactional scope around a series of operations."""
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:  # Intentionally broad - rollback on any error before re-raising
        session.rollback()
        raise
    finally:
        session.close()
