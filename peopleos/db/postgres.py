"""
Relational database engine and sessions.

PostgreSQL in deployment; `DATABASE_URL=sqlite://` gives the in-memory
database the test-suite runs on.
"""
import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from peopleos.core.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


def build_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        # One shared connection, otherwise every session would see its own empty in-memory database
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=settings.debug,
        )
    return create_engine(url, pool_size=5, max_overflow=10, pool_pre_ping=True, echo=settings.debug)


engine = build_engine(settings.sqlalchemy_url)

# Objects stay readable after commit so handlers can build responses from them
SessionLocal = sessionmaker(autoflush=False, expire_on_commit=False, bind=engine)


@contextmanager
def get_db_session() -> Iterator[Session]:
    """
    Unit of work: commits when the block exits, rolls back if it raises.

        with get_db_session() as db:
            job = db.get(Job, job_id)
    """
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db() -> None:
    """Create missing tables. There are no migrations."""
    from peopleos.models import Base

    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ready")


def test_postgres_connection() -> bool:
    try:
        with engine.connect() as connection:
            return connection.scalar(text("SELECT 1")) == 1
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False
