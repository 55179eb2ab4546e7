import logging

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import settings

logger = logging.getLogger(__name__)


def normalize_database_url(database_url: str) -> str:
    """Hosted Postgres often hands out postgres://, SQLAlchemy needs postgresql://"""
    if database_url.startswith("postgres://"):
        return database_url.replace("postgres://", "postgresql://", 1)
    return database_url


def build_connect_args(database_url: str, lock_timeout_ms: int) -> dict:
    """
    Bound how long a transaction may wait on a lock.

    PostgreSQL gets a session-level lock_timeout, SQLite a busy timeout.
    Either way a timed-out wait surfaces as an OperationalError that the
    write path turns into a TransientStoreError.
    """
    if database_url.startswith("sqlite"):
        return {"check_same_thread": False, "timeout": lock_timeout_ms / 1000}
    if database_url.startswith("postgresql"):
        return {"options": f"-c lock_timeout={lock_timeout_ms}"}
    return {}


def create_db_engine(database_url: str, lock_timeout_ms: int = None, echo: bool = False):
    database_url = normalize_database_url(database_url)
    if lock_timeout_ms is None:
        lock_timeout_ms = settings.store_lock_timeout_ms

    return create_engine(
        database_url,
        connect_args=build_connect_args(database_url, lock_timeout_ms),
        echo=echo,
        pool_pre_ping=True,
    )


database_url = normalize_database_url(settings.database_url)

engine = create_db_engine(database_url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """Dependency to get database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables():
    """Create all tables in the database"""
    # Models must be imported so they register on Base.metadata
    from . import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ready (%s)", database_url.split("://", 1)[0])
