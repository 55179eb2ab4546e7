"""
Availability Rule Model

Priority-ordered constraints and price overrides.

The payload column holds the type-specific config; it is validated
into a typed variant (see schemas.rules) before it reaches the resolver.
"""

import uuid
import enum
from datetime import datetime
from sqlalchemy import Column, String, Date, DateTime, Boolean, Integer, JSON, ForeignKey, Index
from sqlalchemy.orm import relationship

from ..database import Base


class RuleType(str, enum.Enum):
    MIN_STAY = "min_stay"
    MAX_STAY = "max_stay"
    CLOSED_TO_ARRIVAL = "closed_to_arrival"
    CLOSED_TO_DEPARTURE = "closed_to_departure"
    PRICE_OVERRIDE = "price_override"
    ADVANCE_BOOKING = "advance_booking"


RULE_TYPE_LABELS = {
    RuleType.MIN_STAY.value: "Minimum Nights",
    RuleType.MAX_STAY.value: "Maximum Nights",
    RuleType.CLOSED_TO_ARRIVAL.value: "Check-in Day Restrictions",
    RuleType.CLOSED_TO_DEPARTURE.value: "Check-out Day Restrictions",
    RuleType.PRICE_OVERRIDE.value: "Price Override",
    RuleType.ADVANCE_BOOKING.value: "Advance Booking Limit",
}


class AvailabilityRule(Base):
    __tablename__ = "availability_rules"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    company_id = Column(String(36), nullable=False)
    room_id = Column(String(36), ForeignKey("rooms.id", ondelete="CASCADE"), nullable=True)  # NULL = all rooms

    rule_type = Column(String(40), nullable=False)
    payload = Column(JSON, nullable=False, default=dict)

    priority = Column(Integer, nullable=False, default=0)  # Lower wins
    is_active = Column(Boolean, default=True, nullable=False)

    # Optional validity window (inclusive)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    room = relationship("Room")

    __table_args__ = (
        Index("ix_rules_company_active", "company_id", "is_active"),
        Index("ix_rules_room", "room_id"),
    )

    @property
    def label(self) -> str:
        return RULE_TYPE_LABELS.get(self.rule_type, self.rule_type)

    def __repr__(self):
        scope = self.room_id or "all"
        return f"<AvailabilityRule {self.rule_type} room={scope} priority={self.priority}>"
