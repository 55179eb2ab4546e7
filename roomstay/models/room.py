"""
Room Model

Read-only view of the room catalog owned by the catalog service.
The engine reads base price, active flag and max occupancy from here.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Numeric, Integer, Boolean, DateTime, Index

from ..database import Base


class Room(Base):
    __tablename__ = "rooms"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    company_id = Column(String(36), nullable=False)

    name = Column(String(200), nullable=False)
    room_code = Column(String(50), nullable=True)  # e.g. SUITE-101
    room_type = Column(String(50), nullable=True)  # Standard, Suite, Deluxe...
    floor_number = Column(Integer, nullable=True)

    base_price = Column(Numeric(10, 2), nullable=False, default=0)
    max_occupancy = Column(Integer, nullable=False, default=2)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_rooms_company_active", "company_id", "is_active"),
    )

    def __repr__(self):
        return f"<Room {self.name} ({self.id})>"
