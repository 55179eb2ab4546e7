"""
Block Period Models

Operator-declared unavailable date ranges, optionally recurring.

- BlockPeriod: the declaration (room set, range, reason, recurrence)
- BlockPeriodRoom: rooms a period applies to (empty + applies_to_all_rooms = every room)
- CellBlockClaim: one row per (room, date) a period has blocked, so that
  deactivating a period only unblocks the cells no other active period claims
"""

import uuid
from datetime import datetime
from sqlalchemy import (
    Column, String, Date, DateTime, Boolean, Text, JSON, ForeignKey, Index, UniqueConstraint
)
from sqlalchemy.orm import relationship

from ..database import Base


class BlockPeriod(Base):
    __tablename__ = "block_periods"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    company_id = Column(String(36), nullable=False)

    applies_to_all_rooms = Column(Boolean, default=False, nullable=False)

    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)  # Inclusive; NULL only for open-ended recurring periods

    reason = Column(String(200), nullable=False)
    notes = Column(Text, nullable=True)

    # {"kind": "weekly", ...} / {"kind": "annual", ...}; NULL = plain range
    recurrence = Column(JSON, nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)
    deactivated_at = Column(DateTime, nullable=True)

    created_by_id = Column(String(36), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    rooms = relationship(
        "BlockPeriodRoom",
        back_populates="block_period",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        Index("ix_block_periods_company_active", "company_id", "is_active"),
    )

    @property
    def room_ids(self) -> list:
        return [link.room_id for link in self.rooms]

    @property
    def is_recurring(self) -> bool:
        return self.recurrence is not None

    def __repr__(self):
        return f"<BlockPeriod {self.id} {self.start_date}..{self.end_date} {self.reason}>"


class BlockPeriodRoom(Base):
    __tablename__ = "block_period_rooms"

    block_period_id = Column(
        String(36), ForeignKey("block_periods.id", ondelete="CASCADE"), primary_key=True
    )
    room_id = Column(String(36), ForeignKey("rooms.id", ondelete="CASCADE"), primary_key=True)

    block_period = relationship("BlockPeriod", back_populates="rooms")


class CellBlockClaim(Base):
    __tablename__ = "cell_block_claims"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    block_period_id = Column(
        String(36), ForeignKey("block_periods.id", ondelete="CASCADE"), nullable=False
    )
    room_id = Column(String(36), ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False)
    date = Column(Date, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        # Re-expanding a period never duplicates its markers
        UniqueConstraint("block_period_id", "room_id", "date", name="uq_block_claim"),
        Index("ix_block_claims_room_date", "room_id", "date"),
    )
