"""
Availability Schemas

Request/response models for the availability check, grid, per-date
overrides and occupancy statistics.
"""

from pydantic import BaseModel, Field, model_validator
from typing import List, Optional
from datetime import datetime, date
from decimal import Decimal


# ================================
# Availability check
# ================================

class AvailabilityCheckRequest(BaseModel):
    room_id: str = Field(..., min_length=1, max_length=36)
    check_in: date
    check_out: date
    exclude_reservation_id: Optional[str] = None
    guests: Optional[int] = Field(None, ge=1, le=50)


class AvailabilityValidateResponse(BaseModel):
    is_valid: bool


class NightlyPriceResponse(BaseModel):
    date: date
    price: Decimal

    class Config:
        from_attributes = True


class AvailabilityCheckResponse(BaseModel):
    room_id: str
    check_in: date
    check_out: date
    nights: int
    available: bool
    reason: Optional[str] = None
    reasons: List[str] = []
    blocked_dates: List[date] = []
    reserved_dates: List[date] = []
    closed_dates: List[date] = []
    total_price: Decimal
    currency: str
    min_nights_required: int
    max_nights_allowed: Optional[int] = None
    nightly_prices: List[NightlyPriceResponse] = []
    applied_rules: List[str] = []

    class Config:
        from_attributes = True


# ================================
# Grid
# ================================

class AppliedRuleResponse(BaseModel):
    rule_id: str
    rule_type: str
    label: str

    class Config:
        from_attributes = True


class GridCellResponse(BaseModel):
    date: date
    is_available: bool
    is_blocked: bool
    is_reserved: bool
    manually_closed: bool
    price: Decimal
    custom_price: Optional[Decimal] = None
    min_nights: int
    max_nights: Optional[int] = None
    closed_to_arrival: bool
    closed_to_departure: bool
    block_reason: Optional[str] = None
    reservation_id: Optional[str] = None
    reservation_status: Optional[str] = None
    guest_name: Optional[str] = None
    guest_initials: Optional[str] = None
    is_check_in: bool
    is_check_out: bool
    applied_rules: List[AppliedRuleResponse] = []

    class Config:
        from_attributes = True


class GridRoomResponse(BaseModel):
    room_id: str
    name: str
    room_code: Optional[str] = None
    room_type: Optional[str] = None
    floor_number: Optional[int] = None
    base_price: Decimal
    max_occupancy: int
    is_active: bool
    cells: List[GridCellResponse]

    class Config:
        from_attributes = True


class AvailabilityGridResponse(BaseModel):
    start_date: date
    end_date: date
    currency: str
    generated_at: datetime
    rooms: List[GridRoomResponse]

    class Config:
        from_attributes = True


# ================================
# Per-date overrides
# ================================

class CellUpdate(BaseModel):
    """Only the fields sent are changed; null clears custom_price / min_nights"""
    is_available: Optional[bool] = None
    custom_price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    min_nights: Optional[int] = Field(None, ge=1, le=365)


class BulkCellUpdate(CellUpdate):
    room_ids: List[str] = Field(..., min_length=1)
    start_date: date
    end_date: date

    @model_validator(mode='after')
    def validate_dates(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self

    def changes(self) -> dict:
        return self.model_dump(
            exclude_unset=True,
            include={"is_available", "custom_price", "min_nights"},
        )


class CellResponse(BaseModel):
    id: str
    room_id: str
    date: date
    is_available: bool
    is_blocked: bool
    block_reason: Optional[str] = None
    custom_price: Optional[Decimal] = None
    min_nights: Optional[int] = None
    reservation_id: Optional[str] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SkippedCell(BaseModel):
    room_id: str
    date: date


class BulkUpdateResponse(BaseModel):
    updated: int
    created: int
    skipped: List[SkippedCell] = []


class MaterializeRequest(BaseModel):
    start_date: Optional[date] = None
    days: Optional[int] = Field(None, ge=1)
    room_ids: Optional[List[str]] = None


class MaterializeResponse(BaseModel):
    created: int


class SyncResponse(BaseModel):
    reservations: int
    claimed: int
    released: int


# ================================
# Occupancy
# ================================

class DailyStatsResponse(BaseModel):
    date: date
    total_rooms: int
    occupied: int
    available: int
    blocked: int
    closed: int
    check_ins: int
    check_outs: int
    revenue: Decimal
    occupancy_rate: float

    class Config:
        from_attributes = True


class RoomTypeStatsResponse(BaseModel):
    room_type: str
    rooms: int
    room_nights: int
    occupied_nights: int
    revenue: Decimal
    occupancy_rate: float

    class Config:
        from_attributes = True


class OccupancyStatsResponse(BaseModel):
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
    available_today: Optional[int] = None
    blocked_today: Optional[int] = None
    check_ins_today: Optional[int] = None
    check_outs_today: Optional[int] = None
    by_room_type: List[RoomTypeStatsResponse] = []
    daily: List[DailyStatsResponse] = []

    class Config:
        from_attributes = True

