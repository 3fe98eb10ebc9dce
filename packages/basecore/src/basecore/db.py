"""
Database access for basecore.

Each core package owns its declarative base (GamificationBase,
NotificationBase); services share one engine built from DATABASE_URL.
"""

import functools
import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from basecore.settings import get_settings

logger = logging.getLogger(__name__)


@functools.lru_cache()
def get_engine() -> Engine:
    """
    Get SQLAlchemy engine (cached).

    Lazily initialized to avoid import-time side effects. SQLite URLs (local
    development) allow use from worker threads.
    """
    url = get_settings().DATABASE_URL
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, pool_pre_ping=True, echo=False, connect_args=connect_args)


@functools.lru_cache()
def get_sessionmaker() -> sessionmaker:
    """Get SQLAlchemy sessionmaker (cached)."""
    return sessionmaker(autocommit=False, autoflush=False, bind=get_engine())


def get_db():
    """
    Dependency generator for FastAPI to get database session.

    Yields a database session and ensures it's closed after use.
    """
    db = get_sessionmaker()()
    try:
        yield db
    finally:
        db.close()


def create_tables(*bases) -> None:
    """Create the tables of the given declarative bases if missing."""
    engine = get_engine()
    for base in bases:
        base.metadata.create_all(engine)
        logger.info(f"Ensured tables: {', '.join(sorted(base.metadata.tables))}")
