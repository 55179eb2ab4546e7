"""
Room Date Cell Model

One row per room per calendar date.
This is the source of truth for availability state.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Date, DateTime, Boolean, Integer, Numeric, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import relationship

from ..database import Base


class RoomDateCell(Base):
    """
    Daily availability state for each room.

    Used for:
    - Fast availability lookups (grid, checkout check)
    - Collision detection when claiming nights for a reservation
    - Per-date operator overrides (custom price, minimum nights)

    Rows are never deleted, only flag-reset.
    """
    __tablename__ = "room_date_cells"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    company_id = Column(String(36), nullable=False)

    # Room reference
    room_id = Column(String(36), ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False)

    # Date
    date = Column(Date, nullable=False)

    # Availability state
    is_available = Column(Boolean, default=True, nullable=False)
    is_blocked = Column(Boolean, default=False, nullable=False)  # Set by block periods only
    block_reason = Column(String(200), nullable=True)

    # Operator overrides for this exact date
    custom_price = Column(Numeric(10, 2), nullable=True)
    min_nights = Column(Integer, nullable=True)

    # Reservation occupying this night (set only by the reservation writer)
    reservation_id = Column(String(36), ForeignKey("reservations.id", ondelete="SET NULL"), nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    room = relationship("Room", backref="date_cells")
    reservation = relationship("Reservation", backref="claimed_cells")

    __table_args__ = (
        # One cell per room per date: the collision detector for reservation claims
        UniqueConstraint('room_id', 'date', name='uq_room_date_cell'),
        Index('ix_room_date_cells_company_date', 'company_id', 'date'),
        Index('ix_room_date_cells_reservation', 'reservation_id'),
    )

    def __repr__(self):
        if self.reservation_id:
            status = "reserved"
        elif self.is_blocked:
            status = "blocked"
        else:
            status = "available" if self.is_available else "closed"
        return f"<RoomDateCell {self.room_id} {self.date} {status}>"
