"""
Availability Grid Builder

Builds the rooms x dates availability and price matrix for a window.

Everything is read in bulk, so the number of queries does not depend on
the window length or the number of rooms:
1. rooms
2. room date cells in the window
3. candidate availability rules
4. active block periods overlapping the window (+ their room links)
5. occupying reservations touching the window

Active block periods are also expanded in memory, so nights beyond the
materialized horizon of an open-ended recurring period still show blocked.

Per cell:
    is_available = cell.is_available AND NOT blocked AND no reservation
    price        = cell.custom_price ?? rule price override ?? room.base_price
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..config import settings
from ..context import CompanyContext
from ..exceptions import InvariantViolation
from ..models.block_period import BlockPeriod
from ..models.reservation import Reservation, OCCUPYING_STATUSES
from ..models.room import Room
from ..models.room_date_cell import RoomDateCell
from ..utils.dates import days_inclusive, guest_initials, iter_nights, validate_window
from ..utils.logging_config import get_logger
from .block_expander import expand_dates
from .inventory_service import InventoryService
from .rule_resolver import AppliedRule, EffectiveConstraint, effective_price, prepare_rules, resolve_many
from .rule_service import RuleService

logger = get_logger(__name__)

CellKey = Tuple[str, date]


@dataclass
class GridCell:
    """Computed view of one room on one date"""
    room_id: str
    date: date
    is_available: bool
    is_blocked: bool
    is_reserved: bool
    manually_closed: bool
    price: Decimal
    min_nights: int = 1
    max_nights: Optional[int] = None
    max_days_ahead: Optional[int] = None
    closed_to_arrival: bool = False
    closed_to_departure: bool = False
    custom_price: Optional[Decimal] = None
    block_reason: Optional[str] = None
    reservation_id: Optional[str] = None
    reservation_status: Optional[str] = None
    guest_name: Optional[str] = None
    guest_initials: Optional[str] = None
    is_check_in: bool = False
    is_check_out: bool = False
    applied_rules: Tuple[AppliedRule, ...] = ()


@dataclass
class GridRoom:
    room_id: str
    name: str
    room_code: Optional[str]
    room_type: Optional[str]
    floor_number: Optional[int]
    base_price: Decimal
    max_occupancy: int
    is_active: bool
    cells: List[GridCell] = field(default_factory=list)


@dataclass
class AvailabilityGrid:
    """Rooms x dates matrix, built per request and never cached"""
    start_date: date
    end_date: date
    currency: str
    rooms: List[GridRoom]
    generated_at: datetime

    @property
    def dates(self) -> List[date]:
        return days_inclusive(self.start_date, self.end_date)

    def cell(self, room_id: str, target_date: date) -> Optional[GridCell]:
        for room in self.rooms:
            if room.room_id != room_id:
                continue
            index = (target_date - self.start_date).days
            if 0 <= index < len(room.cells):
                return room.cells[index]
        return None


class GridBuilder:
    """
    Builds availability grids and single-room calendars.

    The per-day evaluation (evaluate_rooms) is shared with the conflict
    checker so the checkout check and the admin grid always agree.
    """

    def __init__(self, db: Session):
        self.db = db
        self.inventory = InventoryService(db)
        self.rules = RuleService(db)

    def _load_block_days(
        self,
        ctx: CompanyContext,
        room_ids: List[str],
        start_date: date,
        end_date: date,
    ) -> Dict[CellKey, str]:
        """(room, date) -> reason for every active block period overlapping the window."""
        periods = self.db.query(BlockPeriod).filter(
            BlockPeriod.company_id == ctx.company_id,
            BlockPeriod.is_active == True,  # noqa: E712
            BlockPeriod.start_date <= end_date,
            or_(BlockPeriod.end_date.is_(None), BlockPeriod.end_date >= start_date)
        ).order_by(BlockPeriod.created_at).all()

        blocked: Dict[CellKey, str] = {}
        for period in periods:
            targets = room_ids if period.applies_to_all_rooms else [
                room_id for room_id in period.room_ids if room_id in room_ids
            ]
            if not targets:
                continue
            for d in expand_dates(period, since=start_date, until=end_date):
                for room_id in targets:
                    blocked.setdefault((room_id, d), period.reason)
        return blocked

    def _load_reservations(
        self,
        ctx: CompanyContext,
        room_ids: List[str],
        start_date: date,
        end_date: date,
    ) -> List[Reservation]:
        # Touching the window: a night inside it, or a check-out day inside it
        return self.db.query(Reservation).filter(
            Reservation.company_id == ctx.company_id,
            Reservation.room_id.in_(room_ids),
            Reservation.status.in_(OCCUPYING_STATUSES),
            Reservation.check_in_date <= end_date,
            Reservation.check_out_date >= start_date
        ).all()

    def evaluate_rooms(
        self,
        ctx: CompanyContext,
        rooms: List[Room],
        start_date: date,
        end_date: date,
    ) -> Dict[str, List[GridCell]]:
        """
        Evaluate every room on every date of [start_date, end_date].

        Returns:
            room_id -> list of GridCell, one per date in order
        """
        room_ids = [room.id for room in rooms]
        if not room_ids:
            return {}

        cells = self.inventory.load_cells(ctx, room_ids, start_date, end_date)
        rules = prepare_rules(self.rules.load_candidate_rules(ctx, room_ids, start_date, end_date))
        block_days = self._load_block_days(ctx, room_ids, start_date, end_date)
        reservations = self._load_reservations(ctx, room_ids, start_date, end_date)

        reservations_by_id = {r.id: r for r in reservations}
        night_owner: Dict[CellKey, Reservation] = {}
        check_ins: Dict[CellKey, Reservation] = {}
        check_outs: Dict[CellKey, Reservation] = {}
        for reservation in reservations:
            check_ins[(reservation.room_id, reservation.check_in_date)] = reservation
            check_outs[(reservation.room_id, reservation.check_out_date)] = reservation
            for d in iter_nights(reservation.check_in_date, reservation.check_out_date):
                night_owner[(reservation.room_id, d)] = reservation

        dates = days_inclusive(start_date, end_date)
        result: Dict[str, List[GridCell]] = {}
        for room in rooms:
            cell_min_nights = {
                d: cells[(room.id, d)].min_nights
                for d in dates
                if (room.id, d) in cells and cells[(room.id, d)].min_nights
            }
            constraints = resolve_many(room.id, dates, rules, cell_min_nights)

            result[room.id] = [
                self._evaluate_cell(
                    room,
                    d,
                    cells.get((room.id, d)),
                    constraints[d],
                    block_days.get((room.id, d)),
                    reservations_by_id,
                    night_owner.get((room.id, d)),
                    (room.id, d) in check_ins,
                    (room.id, d) in check_outs,
                )
                for d in dates
            ]
        return result

    def _evaluate_cell(
        self,
        room: Room,
        target_date: date,
        cell: Optional[RoomDateCell],
        constraint: EffectiveConstraint,
        period_reason: Optional[str],
        reservations_by_id: Dict[str, Reservation],
        night_owner: Optional[Reservation],
        is_check_in: bool,
        is_check_out: bool,
    ) -> GridCell:
        if cell is not None and cell.reservation_id and cell.is_available:
            logger.invariant_violation(
                "Reserved cell is marked available",
                entity_type="room_date_cell",
                entity_id=cell.id,
                room_id=room.id,
                date=target_date.isoformat(),
                reservation_id=cell.reservation_id,
            )
            raise InvariantViolation(
                f"Room {room.id} on {target_date} is reserved and available at once"
            )

        cell_blocked = bool(cell is not None and cell.is_blocked)
        is_blocked = cell_blocked or period_reason is not None
        block_reason = (cell.block_reason if cell_blocked else None) or period_reason

        reservation_id = cell.reservation_id if cell is not None else None
        if reservation_id is None and night_owner is not None:
            reservation_id = night_owner.id
        reservation = reservations_by_id.get(reservation_id) if reservation_id else None

        open_flag = cell.is_available if cell is not None else True
        manually_closed = cell is not None and not cell.is_available and not cell.is_blocked and not cell.reservation_id

        custom_price = cell.custom_price if cell is not None else None
        guest_name = reservation.guest_name if reservation else None

        return GridCell(
            room_id=room.id,
            date=target_date,
            is_available=open_flag and not is_blocked and reservation_id is None,
            is_blocked=is_blocked,
            is_reserved=reservation_id is not None,
            manually_closed=manually_closed,
            price=effective_price(room.base_price, constraint, custom_price),
            min_nights=constraint.min_nights,
            max_nights=constraint.max_nights,
            max_days_ahead=constraint.max_days_ahead,
            closed_to_arrival=constraint.closed_to_arrival,
            closed_to_departure=constraint.closed_to_departure,
            custom_price=custom_price,
            block_reason=block_reason if is_blocked else None,
            reservation_id=reservation_id,
            reservation_status=reservation.status if reservation else None,
            guest_name=guest_name,
            guest_initials=guest_initials(guest_name) if reservation else None,
            is_check_in=is_check_in,
            is_check_out=is_check_out,
            applied_rules=constraint.applied_rules,
        )

    @staticmethod
    def _grid_room(room: Room, cells: List[GridCell]) -> GridRoom:
        return GridRoom(
            room_id=room.id,
            name=room.name,
            room_code=room.room_code,
            room_type=room.room_type,
            floor_number=room.floor_number,
            base_price=Decimal(str(room.base_price or 0)),
            max_occupancy=room.max_occupancy,
            is_active=room.is_active,
            cells=cells,
        )

    def build_grid(
        self,
        ctx: CompanyContext,
        start_date: date,
        end_date: date,
        room_ids: Optional[List[str]] = None,
    ) -> AvailabilityGrid:
        """
        Build the grid for [start_date, end_date] (inclusive).

        Args:
            ctx: Company scope
            start_date: First date
            end_date: Last date
            room_ids: Rooms to include; all active rooms of the company if omitted

        Raises:
            ValidationError: window reversed or longer than MAX_GRID_DAYS
            NotFound: a requested room is not in the company
            InvariantViolation: a reserved cell is marked available
        """
        validate_window(start_date, end_date, settings.max_grid_days)
        rooms = self.inventory.get_rooms(ctx, room_ids)
        evaluated = self.evaluate_rooms(ctx, rooms, start_date, end_date)

        return AvailabilityGrid(
            start_date=start_date,
            end_date=end_date,
            currency=settings.default_currency,
            rooms=[self._grid_room(room, evaluated[room.id]) for room in rooms],
            generated_at=datetime.utcnow(),
        )

    def room_calendar(
        self,
        ctx: CompanyContext,
        room_id: str,
        start_date: date,
        end_date: date,
    ) -> GridRoom:
        """One room's calendar, inactive rooms included."""
        validate_window(start_date, end_date, settings.max_grid_days)
        room = self.inventory.get_room(ctx, room_id)
        evaluated = self.evaluate_rooms(ctx, [room], start_date, end_date)
        return self._grid_room(room, evaluated[room.id])


def get_grid_builder(db: Session) -> GridBuilder:
    """Factory function to get grid builder instance"""
    return GridBuilder(db)
