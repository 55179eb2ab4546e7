"""
Tests for occupancy statistics
"""

import pytest
from datetime import date, datetime
from decimal import Decimal

from roomstay.schemas.block_period import BlockPeriodCreate
from roomstay.services.block_expander import BlockPeriodService
from roomstay.services.grid_builder import AvailabilityGrid
from roomstay.services.occupancy_service import OccupancyService
from roomstay.services.reservation_writer import ReservationWriter

TODAY = date(2027, 6, 1)


class TestOccupancyStats:

    @pytest.fixture
    def stats(self, db, ctx, make_room):
        standard = make_room("101", base_price="100.00", room_type="Standard")
        suite = make_room("201", base_price="200.00", room_type="Suite")
        ReservationWriter(db).create_reservation(
            ctx, standard.id, date(2027, 7, 1), date(2027, 7, 3), today=TODAY
        )
        BlockPeriodService(db).create_block_period(ctx, BlockPeriodCreate(
            room_ids=[suite.id], start_date=date(2027, 7, 4), end_date=date(2027, 7, 4), reason="Deep clean"
        ))
        return OccupancyService(db).compute_stats(
            ctx, date(2027, 7, 1), date(2027, 7, 4), today=date(2027, 7, 1)
        )

    def test_totals(self, stats):
        assert stats.total_rooms == 2
        assert stats.total_nights == 8
        assert stats.occupied_nights == 2
        assert stats.blocked_nights == 1
        assert stats.available_nights == 5
        assert stats.occupancy_rate == 0.25
        assert stats.projected_revenue == Decimal("200.00")

    def test_daily_breakdown(self, stats):
        first, second, third, fourth = stats.daily
        assert first.occupied == 1
        assert first.check_ins == 1
        assert first.occupancy_rate == 0.5
        assert second.revenue == Decimal("100.00")
        assert third.check_outs == 1
        assert third.occupied == 0
        assert fourth.blocked == 1

    def test_by_room_type(self, stats):
        by_type = {s.room_type: s for s in stats.by_room_type}
        assert by_type["Standard"].occupancy_rate == 0.5
        assert by_type["Standard"].revenue == Decimal("200.00")
        assert by_type["Suite"].occupied_nights == 0
        assert by_type["Suite"].room_nights == 4

    def test_today_figures(self, stats):
        assert stats.check_ins_today == 1
        assert stats.available_today == 1
        assert stats.blocked_today == 0

    def test_today_outside_window(self, db, ctx, room):
        stats = OccupancyService(db).compute_stats(
            ctx, date(2027, 7, 1), date(2027, 7, 2), today=date(2027, 8, 1)
        )
        assert stats.available_today is None
        assert stats.available_nights == 2


class TestReduceGrid:

    def test_empty_grid(self):
        grid = AvailabilityGrid(
            start_date=date(2027, 7, 1),
            end_date=date(2027, 7, 2),
            currency="USD",
            rooms=[],
            generated_at=datetime(2027, 6, 1),
        )
        stats = OccupancyService(db=None).reduce_grid(grid)

        assert stats.total_nights == 0
        assert stats.occupancy_rate == 0.0
        assert [d.occupancy_rate for d in stats.daily] == [0.0, 0.0]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
