"""
Block Period Expander

Turns a (possibly recurring) block period into concrete blocked
(room, date) cells, and keeps the cells in step when a period is
created, updated or deactivated.

Each blocked cell is tagged with a CellBlockClaim row naming the period
that blocked it. Applying a period is a set-union over its claims, so
re-expanding an unchanged period never duplicates markers. Releasing a
period only unblocks the cells no other active period still claims.
"""

import calendar
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional, Set, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..config import settings
from ..context import CompanyContext
from ..exceptions import NotFound, ValidationError
from ..models.block_period import BlockPeriod, BlockPeriodRoom, CellBlockClaim
from ..models.room import Room
from ..models.room_date_cell import RoomDateCell
from ..schemas.block_period import (
    AnnualRecurrence, BlockPeriodCreate, WeeklyRecurrence, parse_recurrence
)
from ..utils.db_helpers import unit_of_work
from ..utils.logging_config import get_logger
from .inventory_service import InventoryService

logger = get_logger(__name__)

CellKey = Tuple[str, date]
DateRange = Tuple[date, date]


# ==============================================
# Pure expansion
# ==============================================

def _clamp_day(year: int, month: int, day: int) -> date:
    """Feb 29 falls back to Feb 28 in non-leap years."""
    return date(year, month, min(day, calendar.monthrange(year, month)[1]))


def _merge_consecutive(days: Iterable[date]) -> List[DateRange]:
    ranges: List[DateRange] = []
    for d in sorted(days):
        if ranges and ranges[-1][1] + timedelta(days=1) == d:
            ranges[-1] = (ranges[-1][0], d)
        else:
            ranges.append((d, d))
    return ranges


def _weekly_occurrences(pattern: WeeklyRecurrence, anchor: date, first: date, last: date) -> List[DateRange]:
    # Weeks are counted from the Monday of the period's first week
    week_zero = anchor - timedelta(days=anchor.weekday())
    days = []
    current = first
    while current <= last:
        week = (current - week_zero).days // 7
        if current.weekday() in pattern.weekdays and week % pattern.interval_weeks == 0:
            days.append(current)
        current += timedelta(days=1)
    return _merge_consecutive(days)


def _annual_occurrences(pattern: AnnualRecurrence, first: date, last: date) -> List[DateRange]:
    ranges = []
    # Start a year early so a year-end wrap that began last year is included
    for year in range(first.year - 1, last.year + 1):
        occ_start = _clamp_day(year, pattern.start_month, pattern.start_day)
        end_year = year + 1 if pattern.wraps_year else year
        occ_end = _clamp_day(end_year, pattern.end_month, pattern.end_day)

        clipped_start = max(occ_start, first)
        clipped_end = min(occ_end, last)
        if clipped_start <= clipped_end:
            ranges.append((clipped_start, clipped_end))
    return ranges


def occurrences(
    period,
    horizon_days: Optional[int] = None,
    since: Optional[date] = None,
    until: Optional[date] = None,
) -> List[DateRange]:
    """
    Concrete inclusive date ranges a period covers.

    Args:
        period: BlockPeriod (or anything with start_date, end_date, recurrence)
        horizon_days: Projection length for open-ended recurring periods
        since: Clip occurrences to start on or after this date
        until: Clip occurrences to end on or before this date; for an
            open-ended period this replaces the horizon

    Returns:
        Sorted list of (first_day, last_day) ranges
    """
    pattern = parse_recurrence(period.recurrence)

    if period.end_date is not None:
        last = period.end_date
    elif pattern is None:
        raise ValidationError("end_date is required for non-recurring block periods")
    elif until is not None:
        last = until
    else:
        horizon_days = horizon_days or settings.block_recurrence_horizon_days
        last = period.start_date + timedelta(days=horizon_days - 1)

    if until is not None:
        last = min(last, until)
    first = max(period.start_date, since) if since else period.start_date
    if first > last:
        return []

    if pattern is None:
        return [(first, last)]
    if isinstance(pattern, WeeklyRecurrence):
        return _weekly_occurrences(pattern, period.start_date, first, last)
    return _annual_occurrences(pattern, first, last)


def expand_dates(period, horizon_days: Optional[int] = None, **clip) -> Set[date]:
    dates: Set[date] = set()
    for first, last in occurrences(period, horizon_days, **clip):
        current = first
        while current <= last:
            dates.add(current)
            current += timedelta(days=1)
    return dates


def expand(period, room_ids: Iterable[str], horizon_days: Optional[int] = None) -> Set[CellKey]:
    """Every (room_id, date) cell the period blocks."""
    dates = expand_dates(period, horizon_days)
    return {(room_id, d) for room_id in room_ids for d in dates}


# ==============================================
# Block period service
# ==============================================

@dataclass
class BlockApplyResult:
    period: BlockPeriod
    cells_blocked: int = 0
    cells_released: int = 0
    reserved_overlap: int = 0


class BlockPeriodService:
    """
    Service for operator block periods.

    Key responsibilities:
    - Create / update / deactivate / list block periods
    - Apply the expansion to room date cells with claim tagging
    - Release cells only when no other active period claims them
    """

    def __init__(self, db: Session, horizon_days: Optional[int] = None):
        self.db = db
        self.horizon_days = horizon_days or settings.block_recurrence_horizon_days
        self.inventory = InventoryService(db)

    def get_block_period(self, ctx: CompanyContext, period_id: str) -> BlockPeriod:
        period = self.db.query(BlockPeriod).filter(
            BlockPeriod.id == period_id,
            BlockPeriod.company_id == ctx.company_id
        ).first()
        if not period:
            raise NotFound(f"Block period {period_id} not found")
        return period

    def list_block_periods(
        self,
        ctx: CompanyContext,
        include_inactive: bool = False,
        room_id: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[BlockPeriod]:
        """
        Company block periods, optionally limited to one room and to those
        overlapping [start_date, end_date]. Open-ended periods overlap any
        window that ends on or after their start.
        """
        if start_date and end_date and end_date < start_date:
            raise ValidationError("end_date must not be before start_date")

        query = self.db.query(BlockPeriod).filter(BlockPeriod.company_id == ctx.company_id)
        if not include_inactive:
            query = query.filter(BlockPeriod.is_active == True)  # noqa: E712
        if room_id:
            query = query.filter(or_(
                BlockPeriod.applies_to_all_rooms == True,  # noqa: E712
                BlockPeriod.rooms.any(BlockPeriodRoom.room_id == room_id)
            ))
        if start_date:
            query = query.filter(or_(BlockPeriod.end_date.is_(None), BlockPeriod.end_date >= start_date))
        if end_date:
            query = query.filter(BlockPeriod.start_date <= end_date)
        return query.order_by(BlockPeriod.start_date, BlockPeriod.created_at).all()

    def _target_room_ids(self, ctx: CompanyContext, period: BlockPeriod) -> List[str]:
        if period.applies_to_all_rooms:
            rows = self.db.query(Room.id).filter(Room.company_id == ctx.company_id).all()
            return [row.id for row in rows]
        return period.room_ids

    def _validate_rooms(self, ctx: CompanyContext, room_ids: List[str]) -> None:
        rows = self.db.query(Room.id).filter(
            Room.company_id == ctx.company_id,
            Room.id.in_(room_ids)
        ).all()
        missing = set(room_ids) - {row.id for row in rows}
        if missing:
            raise NotFound(f"Room(s) not found: {', '.join(sorted(missing))}")

    def _assign(self, ctx: CompanyContext, period: BlockPeriod, data: BlockPeriodCreate) -> None:
        room_ids = sorted(set(data.room_ids or []))
        if room_ids:
            self._validate_rooms(ctx, room_ids)

        period.applies_to_all_rooms = not room_ids
        period.start_date = data.start_date
        period.end_date = data.end_date
        period.reason = data.reason
        period.notes = data.notes
        period.recurrence = data.recurrence.model_dump(mode="json") if data.recurrence else None
        current = {link.room_id: link for link in period.rooms}
        period.rooms = [current.get(room_id) or BlockPeriodRoom(room_id=room_id) for room_id in room_ids]

    def _claimed_cells(self, period: BlockPeriod) -> Set[CellKey]:
        rows = self.db.query(CellBlockClaim.room_id, CellBlockClaim.date).filter(
            CellBlockClaim.block_period_id == period.id
        ).all()
        return {(row.room_id, row.date) for row in rows}

    def _apply_claims(self, ctx: CompanyContext, period: BlockPeriod, keys: Set[CellKey]) -> Tuple[int, int]:
        """
        Block the given cells for this period.

        Returns (cells blocked, cells that already carry a reservation).
        """
        if not keys:
            return 0, 0

        room_ids = {room_id for room_id, _ in keys}
        days = [d for _, d in keys]
        cells = self.inventory.load_cells(ctx, room_ids, min(days), max(days))

        reserved_overlap = 0
        for room_id, d in sorted(keys):
            cell = cells.get((room_id, d))
            if cell is None:
                cell = RoomDateCell(
                    company_id=ctx.company_id,
                    room_id=room_id,
                    date=d,
                )
                self.db.add(cell)

            if cell.reservation_id:
                reserved_overlap += 1
            cell.is_blocked = True
            cell.is_available = False
            if not cell.block_reason:
                cell.block_reason = period.reason

            self.db.add(CellBlockClaim(block_period_id=period.id, room_id=room_id, date=d))

        return len(keys), reserved_overlap

    def _release_claims(
        self,
        ctx: CompanyContext,
        period: BlockPeriod,
        keys: Set[CellKey],
        reason: Optional[str] = None,
    ) -> int:
        """
        Drop this period's claims on the given cells and unblock each cell
        no other active period still claims. `reason` is the reason this
        period wrote onto the cells when it differs from the current one.

        Returns count of cells unblocked.
        """
        if not keys:
            return 0

        room_ids = {room_id for room_id, _ in keys}
        days = [d for _, d in keys]
        start, end = min(days), max(days)

        own_claims = self.db.query(CellBlockClaim).filter(
            CellBlockClaim.block_period_id == period.id,
            CellBlockClaim.room_id.in_(room_ids),
            CellBlockClaim.date >= start,
            CellBlockClaim.date <= end
        ).all()
        for claim in own_claims:
            if (claim.room_id, claim.date) in keys:
                self.db.delete(claim)

        # Other active periods still holding any of these cells
        other_rows = self.db.query(
            CellBlockClaim.room_id, CellBlockClaim.date, BlockPeriod.reason
        ).join(
            BlockPeriod, BlockPeriod.id == CellBlockClaim.block_period_id
        ).filter(
            BlockPeriod.company_id == ctx.company_id,
            BlockPeriod.is_active == True,  # noqa: E712
            BlockPeriod.id != period.id,
            CellBlockClaim.room_id.in_(room_ids),
            CellBlockClaim.date >= start,
            CellBlockClaim.date <= end
        ).order_by(BlockPeriod.created_at).all()
        still_claimed: Dict[CellKey, str] = {}
        for row in other_rows:
            still_claimed.setdefault((row.room_id, row.date), row.reason)

        cells = self.inventory.load_cells(ctx, room_ids, start, end)
        released = 0
        for key in keys:
            cell = cells.get(key)
            if cell is None:
                continue
            if key in still_claimed:
                if cell.block_reason == (reason or period.reason):
                    cell.block_reason = still_claimed[key]
                continue

            cell.is_blocked = False
            cell.block_reason = None
            # A reservation on the night keeps it unavailable
            cell.is_available = cell.reservation_id is None
            released += 1

        return released

    def _rename_reason(self, ctx: CompanyContext, keys: Set[CellKey], old: str, new: str) -> None:
        """Cells still showing this period's old reason take the new one."""
        if not keys or old == new:
            return
        days = [d for _, d in keys]
        cells = self.inventory.load_cells(ctx, {room_id for room_id, _ in keys}, min(days), max(days))
        for key in keys:
            cell = cells.get(key)
            if cell is not None and cell.block_reason == old:
                cell.block_reason = new

    def create_block_period(self, ctx: CompanyContext, data: BlockPeriodCreate) -> BlockApplyResult:
        """Create a block period and block every cell it covers."""
        with unit_of_work(self.db):
            period = BlockPeriod(company_id=ctx.company_id, created_by_id=ctx.user_id, is_active=True)
            self._assign(ctx, period, data)
            self.db.add(period)
            self.db.flush()

            targets = expand(period, self._target_room_ids(ctx, period), self.horizon_days)
            blocked, reserved_overlap = self._apply_claims(ctx, period, targets)
            result = BlockApplyResult(period=period, cells_blocked=blocked, reserved_overlap=reserved_overlap)

        logger.block_period_applied(period.id, blocked, 0, reserved_overlap)
        if reserved_overlap:
            logger.warning(f"Block period {period.id} covers {reserved_overlap} already reserved nights")
        return result

    def update_block_period(
        self,
        ctx: CompanyContext,
        period_id: str,
        data: BlockPeriodCreate,
    ) -> BlockApplyResult:
        """
        Replace a period's definition and apply the diff:
        cells no longer covered are released, newly covered cells are blocked.
        """
        with unit_of_work(self.db):
            period = self.get_block_period(ctx, period_id)
            if not period.is_active:
                raise ValidationError("Cannot update an inactive block period")

            old_keys = self._claimed_cells(period)
            old_reason = period.reason
            self._assign(ctx, period, data)
            self.db.flush()

            new_keys = expand(period, self._target_room_ids(ctx, period), self.horizon_days)
            released = self._release_claims(ctx, period, old_keys - new_keys, reason=old_reason)
            self._rename_reason(ctx, old_keys & new_keys, old_reason, period.reason)
            self.db.flush()
            blocked, reserved_overlap = self._apply_claims(ctx, period, new_keys - old_keys)

            result = BlockApplyResult(
                period=period,
                cells_blocked=blocked,
                cells_released=released,
                reserved_overlap=reserved_overlap,
            )

        logger.block_period_applied(period.id, blocked, released, reserved_overlap)
        return result

    def deactivate_block_period(self, ctx: CompanyContext, period_id: str) -> BlockApplyResult:
        """
        Deactivate a period and re-evaluate every cell it blocked.

        Idempotent: deactivating an inactive period changes nothing.
        """
        with unit_of_work(self.db):
            period = self.get_block_period(ctx, period_id)
            if not period.is_active:
                return BlockApplyResult(period=period)

            period.is_active = False
            period.deactivated_at = datetime.utcnow()
            released = self._release_claims(ctx, period, self._claimed_cells(period))
            result = BlockApplyResult(period=period, cells_released=released)

        logger.block_period_applied(period.id, 0, released)
        return result

    def reapply_block_period(self, ctx: CompanyContext, period_id: str) -> BlockApplyResult:
        """
        Re-expand an unchanged active period (e.g. after rooms were added).

        Only cells without a claim of this period are touched.
        """
        with unit_of_work(self.db):
            period = self.get_block_period(ctx, period_id)
            if not period.is_active:
                raise ValidationError("Cannot apply an inactive block period")

            targets = expand(period, self._target_room_ids(ctx, period), self.horizon_days)
            blocked, reserved_overlap = self._apply_claims(
                ctx, period, targets - self._claimed_cells(period)
            )
            result = BlockApplyResult(period=period, cells_blocked=blocked, reserved_overlap=reserved_overlap)

        logger.block_period_applied(period.id, blocked, 0, reserved_overlap)
        return result


def get_block_period_service(db: Session) -> BlockPeriodService:
    """Factory function to get block period service instance"""
    return BlockPeriodService(db)
