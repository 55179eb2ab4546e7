"""
Inventory Service

Manages the per-room daily cells (room_date_cells).

Key responsibilities:
- Lazy cell creation and bulk loading for a window
- Rolling-window pre-materialization
- Manual per-date overrides: custom price, minimum nights, open/close
- Re-deriving reservation claims from the reservations table

Overrides never touch the reservation flag; only the reservation
writer claims and releases nights.
"""

from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..config import settings
from ..context import CompanyContext
from ..exceptions import Conflict, InvariantViolation, NotFound, ValidationError
from ..models.reservation import Reservation, OCCUPYING_STATUSES
from ..models.room import Room
from ..models.room_date_cell import RoomDateCell
from ..utils.dates import days_inclusive, nights, validate_window
from ..utils.db_helpers import unit_of_work
from ..utils.logging_config import get_logger

logger = get_logger(__name__)

CellKey = Tuple[str, date]

OVERRIDE_FIELDS = ("is_available", "custom_price", "min_nights")


class InventoryService:
    """
    Service for reading and overriding room date cells.

    Every query is scoped to the caller's company.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_room(self, ctx: CompanyContext, room_id: str) -> Room:
        room = self.db.query(Room).filter(
            Room.id == room_id,
            Room.company_id == ctx.company_id
        ).first()
        if not room:
            raise NotFound(f"Room {room_id} not found")
        return room

    def get_rooms(self, ctx: CompanyContext, room_ids: Optional[Iterable[str]] = None) -> List[Room]:
        """Requested rooms, or every active room of the company when none are given."""
        query = self.db.query(Room).filter(Room.company_id == ctx.company_id)
        if room_ids:
            wanted = set(room_ids)
            rooms = query.filter(Room.id.in_(wanted)).all()
            missing = wanted - {room.id for room in rooms}
            if missing:
                raise NotFound(f"Room(s) not found: {', '.join(sorted(missing))}")
        else:
            rooms = query.filter(Room.is_active == True).all()  # noqa: E712

        return sorted(rooms, key=lambda r: (r.name or "", r.id))

    def get_or_create_cell(self, ctx: CompanyContext, room_id: str, target_date: date) -> RoomDateCell:
        """Get or create the cell for a date (added to the session, not flushed)."""
        cell = self.db.query(RoomDateCell).filter(
            RoomDateCell.room_id == room_id,
            RoomDateCell.date == target_date
        ).first()

        if not cell:
            cell = RoomDateCell(
                company_id=ctx.company_id,
                room_id=room_id,
                date=target_date,
                is_available=True,
            )
            self.db.add(cell)

        return cell

    def load_cells(
        self,
        ctx: CompanyContext,
        room_ids: Iterable[str],
        start_date: date,
        end_date: date,
    ) -> Dict[CellKey, RoomDateCell]:
        """All existing cells for the rooms over [start_date, end_date], in one query."""
        room_ids = list(room_ids)
        if not room_ids:
            return {}

        cells = self.db.query(RoomDateCell).filter(
            RoomDateCell.company_id == ctx.company_id,
            RoomDateCell.room_id.in_(room_ids),
            RoomDateCell.date >= start_date,
            RoomDateCell.date <= end_date
        ).all()

        return {(cell.room_id, cell.date): cell for cell in cells}

    def materialize_window(
        self,
        ctx: CompanyContext,
        start_date: Optional[date] = None,
        days: Optional[int] = None,
        room_ids: Optional[List[str]] = None,
    ) -> int:
        """
        Pre-create missing cells for a rolling window.

        Returns count of cells created.
        """
        start_date = start_date or date.today()
        days = days or settings.materialize_window_days
        if days < 1 or days > settings.max_grid_days:
            raise ValidationError(f"days must be between 1 and {settings.max_grid_days}")
        end_date = start_date + timedelta(days=days - 1)

        with unit_of_work(self.db):
            rooms = self.get_rooms(ctx, room_ids)
            existing = self.load_cells(ctx, [r.id for r in rooms], start_date, end_date)

            created = 0
            for room in rooms:
                for d in days_inclusive(start_date, end_date):
                    if (room.id, d) in existing:
                        continue
                    self.db.add(RoomDateCell(
                        company_id=ctx.company_id,
                        room_id=room.id,
                        date=d,
                        is_available=True,
                    ))
                    created += 1

        logger.info(f"Materialized {created} cells for {len(rooms)} rooms from {start_date} ({days} days)")
        return created

    def _validate_changes(self, changes: dict) -> dict:
        unknown = set(changes) - set(OVERRIDE_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown cell fields: {', '.join(sorted(unknown))}")
        if not changes:
            raise ValidationError("No changes given")

        if "is_available" in changes and changes["is_available"] is None:
            raise ValidationError("is_available cannot be null")
        if changes.get("custom_price") is not None:
            price = Decimal(str(changes["custom_price"]))
            if price < 0:
                raise ValidationError("custom_price must not be negative")
            changes["custom_price"] = price
        if changes.get("min_nights") is not None and changes["min_nights"] < 1:
            raise ValidationError("min_nights must be at least 1")
        return changes

    def _apply_changes(self, cell: RoomDateCell, changes: dict) -> bool:
        """Apply overrides to one cell. Returns False when opening a reserved/blocked cell."""
        if changes.get("is_available") and (cell.reservation_id or cell.is_blocked):
            return False

        for key, value in changes.items():
            setattr(cell, key, value)
        cell.updated_at = datetime.utcnow()
        return True

    def update_cell(
        self,
        ctx: CompanyContext,
        room_id: str,
        target_date: date,
        changes: dict,
    ) -> RoomDateCell:
        """
        Override one night of one room.

        changes may hold is_available, custom_price (None clears it) and
        min_nights (None clears it). Opening a reserved or blocked night
        raises Conflict.
        """
        changes = self._validate_changes(dict(changes))

        with unit_of_work(self.db):
            self.get_room(ctx, room_id)
            cell = self.get_or_create_cell(ctx, room_id, target_date)
            if not self._apply_changes(cell, changes):
                state = "reserved" if cell.reservation_id else "blocked"
                raise Conflict(f"Cannot open {target_date}: the night is {state}")

        self.db.refresh(cell)
        logger.info(f"Updated cell {room_id} {target_date}: {sorted(changes)}")
        return cell

    def bulk_update(
        self,
        ctx: CompanyContext,
        room_ids: List[str],
        start_date: date,
        end_date: date,
        changes: dict,
    ) -> dict:
        """
        Apply the same overrides to every night in [start_date, end_date].

        Reserved or blocked nights are left closed and reported as skipped
        when the change opens nights.

        Returns dict with counts of updated, created and skipped cells.
        """
        changes = self._validate_changes(dict(changes))
        validate_window(start_date, end_date, settings.max_grid_days)
        if not room_ids:
            raise ValidationError("room_ids must not be empty")

        result = {"updated": 0, "created": 0, "skipped": []}
        with unit_of_work(self.db):
            rooms = self.get_rooms(ctx, room_ids)
            cells = self.load_cells(ctx, [r.id for r in rooms], start_date, end_date)

            for room in rooms:
                for d in days_inclusive(start_date, end_date):
                    cell = cells.get((room.id, d))
                    if cell is None:
                        cell = RoomDateCell(
                            company_id=ctx.company_id,
                            room_id=room.id,
                            date=d,
                            is_available=True,
                        )
                        self.db.add(cell)
                        result["created"] += 1

                    if self._apply_changes(cell, changes):
                        result["updated"] += 1
                    else:
                        result["skipped"].append({"room_id": room.id, "date": d.isoformat()})

        logger.info(
            f"Bulk update {start_date}..{end_date} on {len(room_ids)} rooms: "
            f"updated={result['updated']}, created={result['created']}, skipped={len(result['skipped'])}"
        )
        return result

    def sync_with_reservations(self, ctx: CompanyContext) -> dict:
        """
        Re-derive reservation claims from the reservations table.

        - Missing claims of occupying reservations are added
        - Claims held by cancelled reservations, or outside a reservation's
          nights, are released
        - A night claimed by a different occupying reservation is an
          invariant violation: logged and the sync is aborted

        Returns dict with counts of claimed and released nights.
        """
        result = {"reservations": 0, "claimed": 0, "released": 0}

        with unit_of_work(self.db):
            reservations = self.db.query(Reservation).filter(
                Reservation.company_id == ctx.company_id,
                Reservation.status.in_(OCCUPYING_STATUSES)
            ).all()
            by_id = {r.id: r for r in reservations}
            result["reservations"] = len(reservations)

            # Release stale claims
            claimed_cells = self.db.query(RoomDateCell).filter(
                RoomDateCell.company_id == ctx.company_id,
                RoomDateCell.reservation_id.isnot(None)
            ).all()
            for cell in claimed_cells:
                owner = by_id.get(cell.reservation_id)
                if owner and owner.room_id == cell.room_id and owner.check_in_date <= cell.date < owner.check_out_date:
                    continue
                cell.reservation_id = None
                cell.is_available = not cell.is_blocked
                result["released"] += 1
            self.db.flush()

            for reservation in reservations:
                cells = self.load_cells(
                    ctx, [reservation.room_id], reservation.check_in_date, reservation.check_out_date
                )
                for d in nights(reservation.check_in_date, reservation.check_out_date):
                    cell = cells.get((reservation.room_id, d))
                    if cell is None:
                        self.db.add(RoomDateCell(
                            company_id=ctx.company_id,
                            room_id=reservation.room_id,
                            date=d,
                            is_available=False,
                            reservation_id=reservation.id,
                        ))
                        result["claimed"] += 1
                    elif cell.reservation_id is None:
                        cell.reservation_id = reservation.id
                        cell.is_available = False
                        result["claimed"] += 1
                    elif cell.reservation_id != reservation.id:
                        logger.invariant_violation(
                            "Night claimed by two occupying reservations",
                            entity_type="room_date_cell",
                            entity_id=cell.id,
                            room_id=reservation.room_id,
                            date=d.isoformat(),
                            reservation_ids=[cell.reservation_id, reservation.id],
                        )
                        raise InvariantViolation(
                            f"Room {reservation.room_id} on {d} is claimed by two reservations"
                        )
                # Later reservations must see these claims
                self.db.flush()

        logger.info(
            f"Synced {result['reservations']} reservations: "
            f"claimed={result['claimed']}, released={result['released']}"
        )
        return result


def get_inventory_service(db: Session) -> InventoryService:
    """Factory function to get inventory service instance"""
    return InventoryService(db)
