"""
Shared fixtures: an in-memory SQLite store with the engine schema,
a company context and small factories for rooms and reservations.
"""

import pytest
from datetime import date
from decimal import Decimal

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from roomstay.database import Base
from roomstay import models  # noqa: F401
from roomstay.context import CompanyContext
from roomstay.models import Room, Reservation

# Every test books in the future relative to this reference "today"
TODAY = date(2027, 6, 1)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def ctx():
    return CompanyContext(company_id="company-1", user_id="operator-1")


@pytest.fixture
def other_ctx():
    return CompanyContext(company_id="company-2", user_id="operator-2")


@pytest.fixture
def make_room(db, ctx):
    def _make_room(name="Room 101", base_price="100.00", room_type="Standard",
                   max_occupancy=2, is_active=True, company_id=None):
        room = Room(
            company_id=company_id or ctx.company_id,
            name=name,
            room_type=room_type,
            base_price=Decimal(base_price),
            max_occupancy=max_occupancy,
            is_active=is_active,
        )
        db.add(room)
        db.commit()
        db.refresh(room)
        return room
    return _make_room


@pytest.fixture
def room(make_room):
    return make_room()


@pytest.fixture
def insert_reservation(db, ctx):
    """Reservation row written directly, bypassing the writer (no night claims)."""
    def _insert(room, check_in, check_out, status="confirmed", guest_name="Ana Ruiz"):
        reservation = Reservation(
            company_id=ctx.company_id,
            room_id=room.id,
            check_in_date=check_in,
            check_out_date=check_out,
            status=status,
            guest_name=guest_name,
            guests=1,
        )
        db.add(reservation)
        db.commit()
        db.refresh(reservation)
        return reservation
    return _insert
