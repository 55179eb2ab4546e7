import uuid
from datetime import datetime
from sqlalchemy import Column, String, Date, Numeric, Integer, Text, ForeignKey, DateTime, Index
from sqlalchemy.orm import relationship
import enum

from ..database import Base


class ReservationStatus(str, enum.Enum):
    PENDING = "pending"          # Hold placed by checkout, occupies nights
    CONFIRMED = "confirmed"
    CHECKED_IN = "checked_in"
    CHECKED_OUT = "checked_out"
    CANCELLED = "cancelled"


# Every status except cancelled keeps its nights claimed
OCCUPYING_STATUSES = (
    ReservationStatus.PENDING.value,
    ReservationStatus.CONFIRMED.value,
    ReservationStatus.CHECKED_IN.value,
    ReservationStatus.CHECKED_OUT.value,
)

# Statuses a guest has already acted on; these cannot be cancelled
SETTLED_STATUSES = (
    ReservationStatus.CHECKED_IN.value,
    ReservationStatus.CHECKED_OUT.value,
)


class Reservation(Base):
    """
    A stay on one room over [check_in_date, check_out_date).

    The booking flow owns the guest-facing fields; the engine only
    creates, re-dates and cancels. `version` is the optimistic
    concurrency counter: a concurrent update of the same row raises
    StaleDataError on flush.
    """
    __tablename__ = "reservations"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    company_id = Column(String(36), nullable=False)
    room_id = Column(String(36), ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False)

    check_in_date = Column(Date, nullable=False)
    check_out_date = Column(Date, nullable=False)  # Exclusive: guest leaves this day

    status = Column(String(20), nullable=False, default=ReservationStatus.PENDING.value)
    guest_name = Column(String(200), nullable=True)
    guests = Column(Integer, nullable=False, default=1)
    total_price = Column(Numeric(10, 2), default=0)
    notes = Column(Text, nullable=True)

    cancel_reason = Column(String(255), nullable=True)
    cancelled_at = Column(DateTime, nullable=True)

    created_by_id = Column(String(36), nullable=True)
    updated_by_id = Column(String(36), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    version = Column(Integer, nullable=False, default=1)

    room = relationship("Room", backref="reservations")

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("ix_reservations_room_dates", "room_id", "check_in_date", "check_out_date"),
        Index("ix_reservations_company_status", "company_id", "status"),
    )

    @property
    def nights(self) -> int:
        return (self.check_out_date - self.check_in_date).days

    def __repr__(self):
        return f"<Reservation {self.id} {self.room_id} {self.check_in_date}..{self.check_out_date} {self.status}>"
