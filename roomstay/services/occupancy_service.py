"""
Occupancy Service

Reduces an availability grid into occupancy statistics for reporting.

Occupancy rate = occupied room-nights / total room-nights, as a ratio
(0..1, four decimals). Revenue is the sum of the effective nightly
price over occupied nights.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from ..context import CompanyContext
from .grid_builder import AvailabilityGrid, GridBuilder


def _rate(occupied: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return round(occupied / total, 4)


@dataclass
class DailyStats:
    date: date
    total_rooms: int
    occupied: int = 0
    available: int = 0
    blocked: int = 0
    closed: int = 0
    check_ins: int = 0
    check_outs: int = 0
    revenue: Decimal = Decimal("0.00")
    occupancy_rate: float = 0.0


@dataclass
class RoomTypeStats:
    room_type: str
    rooms: int = 0
    room_nights: int = 0
    occupied_nights: int = 0
    revenue: Decimal = Decimal("0.00")
    occupancy_rate: float = 0.0


@dataclass
class OccupancyStats:
    start_date: date
    end_date: date
    currency: str
    total_rooms: int
    total_nights: int
    occupied_nights: int
    blocked_nights: int
    available_nights: int
    occupancy_rate: float
    projected_revenue: Decimal
    daily: List[DailyStats] = field(default_factory=list)
    by_room_type: List[RoomTypeStats] = field(default_factory=list)
    # Today's figures, only when today falls inside the window
    available_today: Optional[int] = None
    blocked_today: Optional[int] = None
    check_ins_today: Optional[int] = None
    check_outs_today: Optional[int] = None


class OccupancyService:
    def __init__(self, db: Session):
        self.db = db
        self.grid_builder = GridBuilder(db)

    def compute_stats(
        self,
        ctx: CompanyContext,
        start_date: date,
        end_date: date,
        room_ids: Optional[List[str]] = None,
        today: Optional[date] = None,
    ) -> OccupancyStats:
        grid = self.grid_builder.build_grid(ctx, start_date, end_date, room_ids)
        return self.reduce_grid(grid, today=today or date.today())

    def reduce_grid(self, grid: AvailabilityGrid, today: Optional[date] = None) -> OccupancyStats:
        dates = grid.dates
        total_rooms = len(grid.rooms)
        daily = [DailyStats(date=d, total_rooms=total_rooms) for d in dates]
        by_type: Dict[str, RoomTypeStats] = {}

        for room in grid.rooms:
            type_stats = by_type.setdefault(
                room.room_type or "Unspecified",
                RoomTypeStats(room_type=room.room_type or "Unspecified"),
            )
            type_stats.rooms += 1
            type_stats.room_nights += len(room.cells)

            for index, cell in enumerate(room.cells):
                day = daily[index]
                if cell.is_check_in:
                    day.check_ins += 1
                if cell.is_check_out:
                    day.check_outs += 1

                if cell.is_reserved:
                    day.occupied += 1
                    day.revenue += cell.price
                    type_stats.occupied_nights += 1
                    type_stats.revenue += cell.price
                elif cell.is_blocked:
                    day.blocked += 1
                elif cell.is_available:
                    day.available += 1
                else:
                    day.closed += 1

        for day in daily:
            day.occupancy_rate = _rate(day.occupied, total_rooms)
        for type_stats in by_type.values():
            type_stats.occupancy_rate = _rate(type_stats.occupied_nights, type_stats.room_nights)

        total_nights = total_rooms * len(dates)
        occupied = sum(day.occupied for day in daily)

        stats = OccupancyStats(
            start_date=grid.start_date,
            end_date=grid.end_date,
            currency=grid.currency,
            total_rooms=total_rooms,
            total_nights=total_nights,
            occupied_nights=occupied,
            blocked_nights=sum(day.blocked for day in daily),
            available_nights=sum(day.available for day in daily),
            occupancy_rate=_rate(occupied, total_nights),
            projected_revenue=sum((day.revenue for day in daily), Decimal("0.00")),
            daily=daily,
            by_room_type=sorted(by_type.values(), key=lambda s: s.room_type),
        )

        if today is not None and grid.start_date <= today <= grid.end_date:
            today_stats = daily[(today - grid.start_date).days]
            stats.available_today = today_stats.available
            stats.blocked_today = today_stats.blocked
            stats.check_ins_today = today_stats.check_ins
            stats.check_outs_today = today_stats.check_outs

        return stats


def get_occupancy_service(db: Session) -> OccupancyService:
    """Factory function to get occupancy service instance"""
    return OccupancyService(db)
