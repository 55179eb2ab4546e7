"""
Tests for the Reservation Writer

Tests cover:
- Create claims every night (fresh and pre-materialized cells)
- Conflicts leave no partial state behind
- Cancel releases exactly the reservation's nights, idempotently
- Cancel under a block period keeps the night blocked
- Confirm, and re-dating on the same room or onto another room
"""

import pytest
from datetime import date
from decimal import Decimal

from roomstay.exceptions import Conflict, NotFound, ValidationError
from roomstay.models import Reservation, RoomDateCell
from roomstay.schemas.block_period import BlockPeriodCreate
from roomstay.services.block_expander import BlockPeriodService
from roomstay.services.inventory_service import InventoryService
from roomstay.services.reservation_writer import ReservationWriter

TODAY = date(2027, 6, 1)


def cells_for(db, room_id):
    db.expire_all()
    return {
        cell.date: cell
        for cell in db.query(RoomDateCell).filter(RoomDateCell.room_id == room_id).all()
    }


def claimed_dates(db, reservation_id):
    db.expire_all()
    rows = db.query(RoomDateCell.date).filter(RoomDateCell.reservation_id == reservation_id).all()
    return sorted(row.date for row in rows)


@pytest.fixture
def writer(db):
    return ReservationWriter(db, retry_backoff_seconds=0)


class TestCreateReservation:

    def test_claims_every_night(self, db, ctx, room, writer):
        reservation = writer.create_reservation(
            ctx, room.id, date(2027, 7, 1), date(2027, 7, 4), guest_name="Ana Ruiz", today=TODAY
        )

        assert reservation.status == "pending"
        assert reservation.nights == 3
        assert reservation.total_price == Decimal("300.00")
        assert reservation.created_by_id == ctx.user_id
        assert claimed_dates(db, reservation.id) == [date(2027, 7, 1), date(2027, 7, 2), date(2027, 7, 3)]
        cells = cells_for(db, room.id)
        assert all(cell.is_available is False for cell in cells.values())
        # Check-out day is never claimed
        assert date(2027, 7, 4) not in cells

    def test_claims_materialized_cells(self, db, ctx, room, writer):
        InventoryService(db).materialize_window(ctx, start_date=date(2027, 7, 1), days=10)

        reservation = writer.create_reservation(
            ctx, room.id, date(2027, 7, 2), date(2027, 7, 4), status="confirmed", today=TODAY
        )

        assert reservation.status == "confirmed"
        assert claimed_dates(db, reservation.id) == [date(2027, 7, 2), date(2027, 7, 3)]
        cells = cells_for(db, room.id)
        assert len(cells) == 10
        assert cells[date(2027, 7, 1)].is_available is True

    def test_overlap_is_conflict_without_partial_state(self, db, ctx, room, writer):
        first = writer.create_reservation(ctx, room.id, date(2027, 7, 1), date(2027, 7, 3), today=TODAY)

        with pytest.raises(Conflict) as exc_info:
            writer.create_reservation(ctx, room.id, date(2027, 7, 2), date(2027, 7, 5), today=TODAY)

        assert exc_info.value.result.reserved_dates == [date(2027, 7, 2)]
        assert exc_info.value.to_dict()["availability"]["available"] is False
        assert db.query(Reservation).count() == 1
        assert claimed_dates(db, first.id) == [date(2027, 7, 1), date(2027, 7, 2)]
        # No cell was created for the rejected stay
        assert date(2027, 7, 4) not in cells_for(db, room.id)

    def test_blocked_night_is_conflict(self, db, ctx, room, writer):
        BlockPeriodService(db).create_block_period(ctx, BlockPeriodCreate(
            room_ids=[room.id], start_date=date(2027, 7, 2), end_date=date(2027, 7, 2), reason="Repair"
        ))
        with pytest.raises(Conflict):
            writer.create_reservation(ctx, room.id, date(2027, 7, 1), date(2027, 7, 3), today=TODAY)

    def test_invalid_input(self, db, ctx, room, writer):
        with pytest.raises(ValidationError):
            writer.create_reservation(ctx, room.id, date(2027, 7, 3), date(2027, 7, 1), today=TODAY)
        with pytest.raises(ValidationError):
            writer.create_reservation(ctx, room.id, date(2027, 7, 1), date(2027, 7, 2), status="cancelled")
        with pytest.raises(ValidationError):
            writer.create_reservation(ctx, room.id, date(2027, 7, 1), date(2027, 7, 2), guests=0)

    def test_unknown_room(self, db, ctx, writer):
        with pytest.raises(NotFound):
            writer.create_reservation(ctx, "missing", date(2027, 7, 1), date(2027, 7, 2), today=TODAY)


class TestCancelReservation:

    def test_cancel_releases_nights(self, db, ctx, room, writer):
        reservation = writer.create_reservation(ctx, room.id, date(2027, 7, 1), date(2027, 7, 3), today=TODAY)

        cancelled = writer.cancel_reservation(ctx, reservation.id, "Guest request")

        assert cancelled.status == "cancelled"
        assert cancelled.cancel_reason == "Guest request"
        assert cancelled.cancelled_at is not None
        assert claimed_dates(db, reservation.id) == []
        assert all(cell.is_available for cell in cells_for(db, room.id).values())

        # The nights can be sold again
        again = writer.create_reservation(ctx, room.id, date(2027, 7, 1), date(2027, 7, 3), today=TODAY)
        assert claimed_dates(db, again.id) == [date(2027, 7, 1), date(2027, 7, 2)]

    def test_cancel_only_releases_own_nights(self, db, ctx, room, writer):
        first = writer.create_reservation(ctx, room.id, date(2027, 7, 1), date(2027, 7, 3), today=TODAY)
        second = writer.create_reservation(ctx, room.id, date(2027, 7, 3), date(2027, 7, 5), today=TODAY)

        writer.cancel_reservation(ctx, first.id)

        assert claimed_dates(db, second.id) == [date(2027, 7, 3), date(2027, 7, 4)]

    def test_cancel_is_idempotent(self, db, ctx, room, writer):
        reservation = writer.create_reservation(ctx, room.id, date(2027, 7, 1), date(2027, 7, 3), today=TODAY)
        first = writer.cancel_reservation(ctx, reservation.id)
        version = first.version

        second = writer.cancel_reservation(ctx, reservation.id)

        assert second.status == "cancelled"
        assert second.version == version

    def test_cancel_under_block_keeps_night_closed(self, db, ctx, room, writer):
        reservation = writer.create_reservation(ctx, room.id, date(2027, 7, 1), date(2027, 7, 3), today=TODAY)
        BlockPeriodService(db).create_block_period(ctx, BlockPeriodCreate(
            room_ids=[room.id], start_date=date(2027, 7, 2), end_date=date(2027, 7, 2), reason="Leak"
        ))

        writer.cancel_reservation(ctx, reservation.id)

        cells = cells_for(db, room.id)
        assert cells[date(2027, 7, 1)].is_available is True
        assert cells[date(2027, 7, 2)].is_available is False
        assert cells[date(2027, 7, 2)].is_blocked is True
        assert cells[date(2027, 7, 2)].reservation_id is None

    def test_cancel_checked_in_rejected(self, db, ctx, room, writer):
        reservation = writer.create_reservation(ctx, room.id, date(2027, 7, 1), date(2027, 7, 3), today=TODAY)
        reservation.status = "checked_in"
        db.commit()

        with pytest.raises(ValidationError):
            writer.cancel_reservation(ctx, reservation.id)

    def test_cancel_other_company_not_found(self, db, ctx, other_ctx, room, writer):
        reservation = writer.create_reservation(ctx, room.id, date(2027, 7, 1), date(2027, 7, 3), today=TODAY)
        with pytest.raises(NotFound):
            writer.cancel_reservation(other_ctx, reservation.id)


class TestConfirmReservation:

    def test_confirm_pending(self, db, ctx, room, writer):
        reservation = writer.create_reservation(ctx, room.id, date(2027, 7, 1), date(2027, 7, 3), today=TODAY)
        assert reservation.version == 1

        confirmed = writer.confirm_reservation(ctx, reservation.id)

        assert confirmed.status == "confirmed"
        assert confirmed.version == 2
        assert writer.confirm_reservation(ctx, reservation.id).version == 2

    def test_confirm_cancelled_rejected(self, db, ctx, room, writer):
        reservation = writer.create_reservation(ctx, room.id, date(2027, 7, 1), date(2027, 7, 3), today=TODAY)
        writer.cancel_reservation(ctx, reservation.id)

        with pytest.raises(ValidationError):
            writer.confirm_reservation(ctx, reservation.id)


class TestModifyReservation:

    def test_extend_on_same_room(self, db, ctx, room, writer):
        reservation = writer.create_reservation(ctx, room.id, date(2027, 7, 1), date(2027, 7, 3), today=TODAY)

        moved = writer.modify_reservation(ctx, reservation.id, date(2027, 7, 2), date(2027, 7, 5), today=TODAY)

        assert moved.check_in_date == date(2027, 7, 2)
        assert moved.check_out_date == date(2027, 7, 5)
        assert moved.total_price == Decimal("300.00")
        assert claimed_dates(db, reservation.id) == [date(2027, 7, 2), date(2027, 7, 3), date(2027, 7, 4)]
        assert cells_for(db, room.id)[date(2027, 7, 1)].is_available is True

    def test_move_to_other_room(self, db, ctx, make_room, writer):
        room_a = make_room("A")
        room_b = make_room("B", base_price="150.00")
        reservation = writer.create_reservation(ctx, room_a.id, date(2027, 7, 1), date(2027, 7, 3), today=TODAY)

        moved = writer.modify_reservation(
            ctx, reservation.id, date(2027, 7, 1), date(2027, 7, 3), new_room_id=room_b.id, today=TODAY
        )

        assert moved.room_id == room_b.id
        assert moved.total_price == Decimal("300.00")
        assert all(cell.reservation_id is None for cell in cells_for(db, room_a.id).values())
        assert all(cell.is_available for cell in cells_for(db, room_a.id).values())
        assert sorted(cells_for(db, room_b.id)) == [date(2027, 7, 1), date(2027, 7, 2)]

    def test_modify_into_conflict_changes_nothing(self, db, ctx, room, writer):
        reservation = writer.create_reservation(ctx, room.id, date(2027, 7, 1), date(2027, 7, 3), today=TODAY)
        writer.create_reservation(ctx, room.id, date(2027, 7, 10), date(2027, 7, 12), today=TODAY)

        with pytest.raises(Conflict):
            writer.modify_reservation(ctx, reservation.id, date(2027, 7, 8), date(2027, 7, 11), today=TODAY)

        db.expire_all()
        unchanged = writer.get_reservation(ctx, reservation.id)
        assert unchanged.check_in_date == date(2027, 7, 1)
        assert claimed_dates(db, reservation.id) == [date(2027, 7, 1), date(2027, 7, 2)]

    def test_modify_cancelled_rejected(self, db, ctx, room, writer):
        reservation = writer.create_reservation(ctx, room.id, date(2027, 7, 1), date(2027, 7, 3), today=TODAY)
        writer.cancel_reservation(ctx, reservation.id)

        with pytest.raises(ValidationError):
            writer.modify_reservation(ctx, reservation.id, date(2027, 7, 5), date(2027, 7, 6), today=TODAY)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
