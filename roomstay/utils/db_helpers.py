"""
Database Helper Utilities for Concurrency Control

Provides:
- Database dialect detection (PostgreSQL vs SQLite)
- Row locking helpers
- A unit-of-work scope that maps store errors onto the engine taxonomy
- Bounded retry for transient store errors
"""

import logging
import time
from contextlib import contextmanager
from typing import Callable, Optional, TypeVar, Type

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.exc import DBAPIError, IntegrityError

from ..exceptions import EngineError, Conflict, TransientStoreError

logger = logging.getLogger(__name__)

T = TypeVar('T')

# Fragments of driver messages that mean "lost a lock race, try again later"
TRANSIENT_ERROR_MARKERS = (
    "database is locked",
    "database table is locked",
    "lock timeout",
    "could not obtain lock",
    "deadlock detected",
    "could not serialize access",
)


def is_postgres(db: Session) -> bool:
    """Check if the database is PostgreSQL"""
    try:
        return db.bind.dialect.name == 'postgresql'
    except AttributeError:
        return False


def is_sqlite(db: Session) -> bool:
    """Check if the database is SQLite"""
    try:
        return db.bind.dialect.name == 'sqlite'
    except AttributeError:
        return True  # Default to SQLite for safety


def is_transient_store_error(error: Exception) -> bool:
    message = str(getattr(error, "orig", error)).lower()
    return any(marker in message for marker in TRANSIENT_ERROR_MARKERS)


def acquire_row_lock(
    db: Session,
    model: Type[T],
    filter_condition,
    nowait: bool = False,
) -> Optional[T]:
    """
    Acquire a row-level lock on a database record.

    Args:
        db: Database session
        model: SQLAlchemy model class
        filter_condition: Filter to find the row
        nowait: If True, raise immediately if the lock is held (PostgreSQL only)

    Returns:
        The locked model instance, or None if not found

    On SQLite there is no row locking; writers are serialized by the
    database lock and the compare-and-set claim instead.

    Example:
        room = acquire_row_lock(db, Room, Room.id == room_id)
    """
    query = db.query(model).filter(filter_condition)

    if is_postgres(db):
        query = query.with_for_update(nowait=nowait)

    return query.first()


@contextmanager
def unit_of_work(db: Session):
    """
    One atomic unit of work: commit on success, roll back everything on failure.

    Store errors are translated so callers only ever see engine errors:
    - IntegrityError (unique (room, date) violation) -> Conflict
    - StaleDataError (optimistic version check failed) -> Conflict
    - lock timeouts / serialization failures -> TransientStoreError

    Usage:
        with unit_of_work(db):
            ...
    """
    try:
        yield db
        db.commit()
    except EngineError:
        db.rollback()
        raise
    except IntegrityError as e:
        db.rollback()
        logger.warning(f"Unique constraint rejected a write: {e.orig}")
        raise Conflict("Another writer claimed the same room-night") from e
    except StaleDataError as e:
        db.rollback()
        logger.warning(f"Optimistic version check failed: {e}")
        raise Conflict("The reservation was modified concurrently") from e
    except DBAPIError as e:
        db.rollback()
        if is_transient_store_error(e):
            logger.warning(f"Transient store error: {e.orig}")
            raise TransientStoreError("The store is busy, retry the operation") from e
        raise
    except Exception:
        db.rollback()
        raise


def run_with_retry(
    operation: Callable[[], T],
    attempts: int = 3,
    backoff_seconds: float = 0.05,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Run a whole operation, retrying on TransientStoreError with exponential backoff.

    Only whole operations are retried: `operation` must open its own unit of
    work so a retry never resumes a half-applied claim.
    """
    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except TransientStoreError:
            if attempt >= attempts:
                logger.warning(f"Giving up after {attempts} attempts on transient store errors")
                raise
            delay = backoff_seconds * (2 ** (attempt - 1))
            logger.info(f"Transient store error, retry {attempt}/{attempts - 1} in {delay:.3f}s")
            sleep(delay)

    # attempts < 1 never reaches here because Settings validates it
    raise TransientStoreError("No attempts were made")
