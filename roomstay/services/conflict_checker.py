"""
Conflict Checker

Answers "can this room be booked for [check_in, check_out)?" using the
same per-day evaluation as the availability grid, plus the stay-level
policies (minimum / maximum nights, arrival and departure restrictions,
advance booking window, occupancy).

The check is advisory and read-only; the reservation writer re-runs it
inside its unit of work before claiming any night.
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from ..config import settings
from ..context import CompanyContext
from ..utils.dates import validate_stay_dates
from ..utils.logging_config import get_logger
from .grid_builder import GridBuilder

logger = get_logger(__name__)


@dataclass
class NightlyPrice:
    date: date
    price: Decimal


@dataclass
class AvailabilityResult:
    """Outcome of an availability check"""
    room_id: str
    check_in: date
    check_out: date
    nights: int
    available: bool
    reason: Optional[str] = None
    reasons: List[str] = field(default_factory=list)
    blocked_dates: List[date] = field(default_factory=list)
    reserved_dates: List[date] = field(default_factory=list)
    closed_dates: List[date] = field(default_factory=list)
    total_price: Decimal = Decimal("0.00")
    currency: str = "USD"
    min_nights_required: int = 1
    max_nights_allowed: Optional[int] = None
    nightly_prices: List[NightlyPrice] = field(default_factory=list)
    applied_rules: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "room_id": self.room_id,
            "check_in": self.check_in.isoformat(),
            "check_out": self.check_out.isoformat(),
            "nights": self.nights,
            "available": self.available,
            "reason": self.reason,
            "reasons": list(self.reasons),
            "blocked_dates": [d.isoformat() for d in self.blocked_dates],
            "reserved_dates": [d.isoformat() for d in self.reserved_dates],
            "closed_dates": [d.isoformat() for d in self.closed_dates],
            "total_price": str(self.total_price),
            "currency": self.currency,
            "min_nights_required": self.min_nights_required,
            "max_nights_allowed": self.max_nights_allowed,
            "nightly_prices": [
                {"date": n.date.isoformat(), "price": str(n.price)} for n in self.nightly_prices
            ],
            "applied_rules": list(self.applied_rules),
        }


class ConflictChecker:
    def __init__(self, db: Session):
        self.db = db
        self.grid = GridBuilder(db)

    def check_availability(
        self,
        ctx: CompanyContext,
        room_id: str,
        check_in: date,
        check_out: date,
        exclude_reservation_id: Optional[str] = None,
        guests: Optional[int] = None,
        today: Optional[date] = None,
    ) -> AvailabilityResult:
        """
        Check a stay on one room.

        Args:
            ctx: Company scope
            room_id: Room to check
            check_in: First night
            check_out: Departure day (not consumed)
            exclude_reservation_id: Reservation whose own nights count as free
                (modify flows)
            guests: Party size, checked against the room's max occupancy
            today: Reference date for the advance booking window

        Returns:
            AvailabilityResult; available=False carries every failing reason

        Raises:
            ValidationError: check_out not after check_in, or stay too long
            NotFound: room not in the company
        """
        stay = validate_stay_dates(check_in, check_out, settings.max_stay_nights)
        today = today or date.today()

        room = self.grid.inventory.get_room(ctx, room_id)
        cells = self.grid.evaluate_rooms(
            ctx, [room], check_in, check_out - timedelta(days=1)
        )[room.id]

        result = AvailabilityResult(
            room_id=room_id,
            check_in=check_in,
            check_out=check_out,
            nights=stay,
            available=True,
            currency=settings.default_currency,
        )
        reasons = result.reasons

        if not room.is_active:
            reasons.append("Room is not active")

        labels = []
        total = Decimal("0.00")
        for cell in cells:
            if cell.is_blocked:
                result.blocked_dates.append(cell.date)
            if cell.reservation_id and cell.reservation_id != exclude_reservation_id:
                result.reserved_dates.append(cell.date)
            elif cell.manually_closed:
                result.closed_dates.append(cell.date)

            total += cell.price
            result.nightly_prices.append(NightlyPrice(date=cell.date, price=cell.price))
            for applied in cell.applied_rules:
                if applied.label not in labels:
                    labels.append(applied.label)

        result.total_price = total
        result.applied_rules = labels
        result.min_nights_required = max(cell.min_nights for cell in cells)
        max_values = [cell.max_nights for cell in cells if cell.max_nights is not None]
        result.max_nights_allowed = min(max_values) if max_values else None

        if result.blocked_dates:
            reasons.append(f"Blocked on {len(result.blocked_dates)} night(s)")
        if result.reserved_dates:
            reasons.append(f"Already reserved on {len(result.reserved_dates)} night(s)")
        if result.closed_dates:
            reasons.append(f"Closed for sale on {len(result.closed_dates)} night(s)")
        if result.min_nights_required > stay:
            reasons.append(f"Minimum stay is {result.min_nights_required} nights")
        if result.max_nights_allowed is not None and stay > result.max_nights_allowed:
            reasons.append(f"Maximum stay is {result.max_nights_allowed} nights")
        if cells[0].closed_to_arrival:
            reasons.append(f"Check-in is not allowed on {check_in.isoformat()}")
        if cells[-1].closed_to_departure:
            reasons.append(f"Check-out is not allowed on {check_out.isoformat()}")

        days_ahead = (check_in - today).days
        ahead_limits = [cell.max_days_ahead for cell in cells if cell.max_days_ahead is not None]
        if ahead_limits and days_ahead > min(ahead_limits):
            reasons.append(f"Bookings open at most {min(ahead_limits)} days ahead")
        elif days_ahead > settings.max_advance_days:
            reasons.append(f"Check-in is more than {settings.max_advance_days} days ahead")

        if guests is not None and guests > room.max_occupancy:
            reasons.append(f"Room allows at most {room.max_occupancy} guests")

        if reasons:
            result.available = False
            result.reason = reasons[0]

        return result

    def validate_stay(
        self,
        ctx: CompanyContext,
        room_id: str,
        check_in: date,
        check_out: date,
        exclude_reservation_id: Optional[str] = None,
        today: Optional[date] = None,
    ) -> bool:
        """True when the stay passes every availability rule."""
        return self.check_availability(
            ctx, room_id, check_in, check_out,
            exclude_reservation_id=exclude_reservation_id,
            today=today,
        ).available


def get_conflict_checker(db: Session) -> ConflictChecker:
    """Factory function to get conflict checker instance"""
    return ConflictChecker(db)
