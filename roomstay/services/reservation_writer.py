"""
Reservation Writer

Creates, re-dates, confirms and cancels reservations while keeping the
"one reservation per room-night" guarantee.

Write path for a new reservation, all inside one unit of work:
1. Lock the room row (SELECT ... FOR UPDATE on PostgreSQL)
2. Re-run the conflict check
3. Insert the reservation
4. Claim each night:
   - missing cells are inserted with reservation_id already set; the
     unique (room_id, date) constraint rejects a concurrent insert
   - existing cells are claimed with a compare-and-set UPDATE
     (WHERE reservation_id IS NULL AND is_blocked = false); a row count
     short of the number of nights means another writer got there first

Any failure rolls the whole unit back. Lock timeouts and serialization
failures are retried for the whole operation with exponential backoff.
"""

import time
from datetime import date, datetime
from typing import Callable, Iterable, List, Optional

from sqlalchemy.orm import Session

from ..config import settings
from ..context import CompanyContext
from ..exceptions import Conflict, NotFound, ValidationError
from ..models.reservation import Reservation, ReservationStatus, SETTLED_STATUSES
from ..models.room import Room
from ..models.room_date_cell import RoomDateCell
from ..utils.dates import nights, validate_stay_dates
from ..utils.db_helpers import acquire_row_lock, run_with_retry, unit_of_work
from ..utils.logging_config import get_logger
from .conflict_checker import ConflictChecker

logger = get_logger(__name__)

CREATABLE_STATUSES = (
    ReservationStatus.PENDING.value,
    ReservationStatus.CONFIRMED.value,
)


class ReservationWriter:
    def __init__(
        self,
        db: Session,
        retry_attempts: Optional[int] = None,
        retry_backoff_seconds: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.db = db
        self.checker = ConflictChecker(db)
        self.retry_attempts = retry_attempts or settings.transient_retry_attempts
        self.retry_backoff_seconds = (
            settings.transient_retry_backoff_seconds
            if retry_backoff_seconds is None else retry_backoff_seconds
        )
        self.sleep = sleep

    def _with_retry(self, operation: Callable):
        return run_with_retry(
            operation,
            attempts=self.retry_attempts,
            backoff_seconds=self.retry_backoff_seconds,
            sleep=self.sleep,
        )

    def _lock_room(self, ctx: CompanyContext, room_id: str) -> Room:
        room = acquire_row_lock(
            self.db, Room, (Room.id == room_id) & (Room.company_id == ctx.company_id)
        )
        if not room:
            raise NotFound(f"Room {room_id} not found")
        return room

    def _lock_reservation(self, ctx: CompanyContext, reservation_id: str) -> Reservation:
        reservation = acquire_row_lock(
            self.db,
            Reservation,
            (Reservation.id == reservation_id) & (Reservation.company_id == ctx.company_id)
        )
        if not reservation:
            raise NotFound(f"Reservation {reservation_id} not found")
        return reservation

    def _claim_nights(
        self,
        ctx: CompanyContext,
        room_id: str,
        reservation_id: str,
        dates: Iterable[date],
    ) -> int:
        """
        Claim nights for a reservation.

        Returns count of nights claimed; raises Conflict if any night
        was taken in the meantime.
        """
        dates = sorted(set(dates))
        if not dates:
            return 0

        rows = self.db.query(RoomDateCell.date).filter(
            RoomDateCell.room_id == room_id,
            RoomDateCell.date.in_(dates)
        ).all()
        existing = sorted(row.date for row in rows)
        existing_set = set(existing)
        missing = [d for d in dates if d not in existing_set]

        for d in missing:
            self.db.add(RoomDateCell(
                company_id=ctx.company_id,
                room_id=room_id,
                date=d,
                is_available=False,
                reservation_id=reservation_id,
            ))
        # Unique (room_id, date) violation here surfaces as Conflict
        self.db.flush()

        if existing:
            claimed = self.db.query(RoomDateCell).filter(
                RoomDateCell.room_id == room_id,
                RoomDateCell.date.in_(existing),
                RoomDateCell.reservation_id.is_(None),
                RoomDateCell.is_blocked == False,  # noqa: E712
                RoomDateCell.is_available == True  # noqa: E712
            ).update({
                "reservation_id": reservation_id,
                "is_available": False,
                "updated_at": datetime.utcnow(),
            }, synchronize_session=False)

            if claimed != len(existing):
                raise Conflict(
                    f"{len(existing) - claimed} night(s) were claimed by another writer"
                )

        return len(dates)

    def _release_nights(
        self,
        reservation_id: str,
        dates: Optional[Iterable[date]] = None,
    ) -> int:
        """Release the reservation's own cells (all, or only the given dates)."""
        query = self.db.query(RoomDateCell).filter(RoomDateCell.reservation_id == reservation_id)
        if dates is not None:
            dates = list(dates)
            if not dates:
                return 0
            query = query.filter(RoomDateCell.date.in_(dates))

        released = 0
        for cell in query.all():
            cell.reservation_id = None
            # Still unavailable when an independent block covers the night
            cell.is_available = not cell.is_blocked
            cell.updated_at = datetime.utcnow()
            released += 1

        self.db.flush()
        return released

    def create_reservation(
        self,
        ctx: CompanyContext,
        room_id: str,
        check_in: date,
        check_out: date,
        guest_name: Optional[str] = None,
        guests: int = 1,
        status: str = ReservationStatus.PENDING.value,
        notes: Optional[str] = None,
        today: Optional[date] = None,
    ) -> Reservation:
        """
        Create a reservation and claim its nights atomically.

        Raises:
            ValidationError: bad dates, guests or status
            NotFound: room not in the company
            Conflict: a night is no longer available (carries the AvailabilityResult)
        """
        stay = validate_stay_dates(check_in, check_out, settings.max_stay_nights)
        if status not in CREATABLE_STATUSES:
            raise ValidationError(f"New reservations must be {' or '.join(CREATABLE_STATUSES)}")
        if guests is None or guests < 1:
            raise ValidationError("guests must be at least 1")

        def attempt() -> Reservation:
            started = time.monotonic()
            with unit_of_work(self.db):
                self._lock_room(ctx, room_id)

                availability = self.checker.check_availability(
                    ctx, room_id, check_in, check_out, guests=guests, today=today
                )
                if not availability.available:
                    logger.conflict_detected(
                        room_id, check_in, check_out, availability.reason,
                        blocked=len(availability.blocked_dates),
                        reserved=len(availability.reserved_dates),
                    )
                    raise Conflict(availability.reason, availability)

                reservation = Reservation(
                    company_id=ctx.company_id,
                    room_id=room_id,
                    check_in_date=check_in,
                    check_out_date=check_out,
                    status=status,
                    guest_name=guest_name,
                    guests=guests,
                    total_price=availability.total_price,
                    notes=notes,
                    created_by_id=ctx.user_id,
                )
                self.db.add(reservation)
                self.db.flush()

                self._claim_nights(ctx, room_id, reservation.id, nights(check_in, check_out))

            self.db.refresh(reservation)
            logger.reservation_created(
                reservation.id,
                room_id,
                stay,
                str(reservation.total_price),
                duration_ms=round((time.monotonic() - started) * 1000, 2),
            )
            return reservation

        return self._with_retry(attempt)

    def cancel_reservation(
        self,
        ctx: CompanyContext,
        reservation_id: str,
        reason: Optional[str] = None,
    ) -> Reservation:
        """
        Cancel a reservation and release exactly the nights it claimed.

        Idempotent: cancelling a cancelled reservation returns it unchanged.
        A concurrent modification of the same reservation raises Conflict.
        """
        def attempt() -> Reservation:
            released = 0
            with unit_of_work(self.db):
                reservation = self._lock_reservation(ctx, reservation_id)
                if reservation.status == ReservationStatus.CANCELLED.value:
                    return reservation
                if reservation.status in SETTLED_STATUSES:
                    raise ValidationError(
                        f"Cannot cancel a reservation that is {reservation.status}"
                    )

                released = self._release_nights(reservation.id)

                reservation.status = ReservationStatus.CANCELLED.value
                reservation.cancel_reason = reason
                reservation.cancelled_at = datetime.utcnow()
                reservation.updated_by_id = ctx.user_id
                # Version check: StaleDataError if someone else updated the row
                self.db.flush()

            self.db.refresh(reservation)
            logger.reservation_cancelled(reservation.id, released, reason)
            return reservation

        return self._with_retry(attempt)

    def confirm_reservation(self, ctx: CompanyContext, reservation_id: str) -> Reservation:
        """Promote a pending hold to confirmed. Confirming twice is a no-op."""
        def attempt() -> Reservation:
            with unit_of_work(self.db):
                reservation = self._lock_reservation(ctx, reservation_id)
                if reservation.status == ReservationStatus.CONFIRMED.value:
                    return reservation
                if reservation.status != ReservationStatus.PENDING.value:
                    raise ValidationError(
                        f"Cannot confirm a reservation that is {reservation.status}"
                    )

                reservation.status = ReservationStatus.CONFIRMED.value
                reservation.updated_by_id = ctx.user_id
                self.db.flush()

            self.db.refresh(reservation)
            logger.info(f"Reservation {reservation.id} confirmed")
            return reservation

        return self._with_retry(attempt)

    def modify_reservation(
        self,
        ctx: CompanyContext,
        reservation_id: str,
        new_check_in: date,
        new_check_out: date,
        new_room_id: Optional[str] = None,
        today: Optional[date] = None,
    ) -> Reservation:
        """
        Move a reservation to new dates (and optionally another room).

        The reservation's own nights count as free during the check.
        Same room: nights no longer covered are released and new nights
        are claimed (diff). Room change: every old night is released and
        every new night claimed. All-or-nothing.
        """
        validate_stay_dates(new_check_in, new_check_out, settings.max_stay_nights)

        def attempt() -> Reservation:
            result = {"released": 0, "claimed": 0}
            with unit_of_work(self.db):
                reservation = self._lock_reservation(ctx, reservation_id)
                if reservation.status in (
                    ReservationStatus.CANCELLED.value,
                    ReservationStatus.CHECKED_OUT.value,
                ):
                    raise ValidationError(
                        f"Cannot modify a reservation that is {reservation.status}"
                    )

                old_room_id = reservation.room_id
                target_room_id = new_room_id or old_room_id
                self._lock_room(ctx, target_room_id)

                availability = self.checker.check_availability(
                    ctx,
                    target_room_id,
                    new_check_in,
                    new_check_out,
                    exclude_reservation_id=reservation.id,
                    guests=reservation.guests,
                    today=today,
                )
                if not availability.available:
                    logger.conflict_detected(
                        target_room_id, new_check_in, new_check_out, availability.reason,
                        reservation_id=reservation.id,
                    )
                    raise Conflict(availability.reason, availability)

                old_nights = set(nights(reservation.check_in_date, reservation.check_out_date))
                new_nights = set(nights(new_check_in, new_check_out))

                if target_room_id != old_room_id:
                    result["released"] = self._release_nights(reservation.id)
                    to_claim: List[date] = sorted(new_nights)
                else:
                    result["released"] = self._release_nights(reservation.id, old_nights - new_nights)
                    to_claim = sorted(new_nights - old_nights)

                result["claimed"] = self._claim_nights(ctx, target_room_id, reservation.id, to_claim)

                reservation.room_id = target_room_id
                reservation.check_in_date = new_check_in
                reservation.check_out_date = new_check_out
                reservation.total_price = availability.total_price
                reservation.updated_by_id = ctx.user_id
                self.db.flush()

            self.db.refresh(reservation)
            logger.info(
                f"Reservation {reservation.id} modified: room={reservation.room_id}, "
                f"released={result['released']}, claimed={result['claimed']}"
            )
            return reservation

        return self._with_retry(attempt)

    def get_reservation(self, ctx: CompanyContext, reservation_id: str) -> Reservation:
        reservation = self.db.query(Reservation).filter(
            Reservation.id == reservation_id,
            Reservation.company_id == ctx.company_id
        ).first()
        if not reservation:
            raise NotFound(f"Reservation {reservation_id} not found")
        return reservation


def get_reservation_writer(db: Session) -> ReservationWriter:
    """Factory function to get reservation writer instance"""
    return ReservationWriter(db)
