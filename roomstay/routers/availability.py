"""
Availability API Router

Endpoints for the availability check, grid, per-date overrides,
maintenance (materialize / resync) and occupancy statistics.
"""

from datetime import date, timedelta
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from ..context import CompanyContext
from ..database import get_db
from ..utils.dependencies import get_company_context
from ..utils.rate_limiter import limiter, get_rate_limit
from ..services.conflict_checker import get_conflict_checker
from ..services.grid_builder import get_grid_builder
from ..services.inventory_service import get_inventory_service
from ..services.occupancy_service import get_occupancy_service
from ..schemas.availability import (
    AvailabilityCheckRequest,
    AvailabilityCheckResponse,
    AvailabilityValidateResponse,
    AvailabilityGridResponse,
    GridRoomResponse,
    CellUpdate,
    CellResponse,
    BulkCellUpdate,
    BulkUpdateResponse,
    MaterializeRequest,
    MaterializeResponse,
    SyncResponse,
    OccupancyStatsResponse,
)

router = APIRouter(prefix="/api/availability", tags=["Availability"])


def _parse_room_ids(room_ids: Optional[str]) -> Optional[List[str]]:
    """Comma-separated room ids from the query string"""
    if not room_ids:
        return None
    return [r.strip() for r in room_ids.split(",") if r.strip()] or None


# ==================
# Checkout check
# ==================

@router.post("/check", response_model=AvailabilityCheckResponse)
@limiter.limit(get_rate_limit("availability_check"))
def check_availability(
    request: Request,
    data: AvailabilityCheckRequest,
    db: Session = Depends(get_db),
    ctx: CompanyContext = Depends(get_company_context)
):
    """Can this room be booked for [check_in, check_out)? Read-only."""
    checker = get_conflict_checker(db)
    return checker.check_availability(
        ctx,
        data.room_id,
        data.check_in,
        data.check_out,
        exclude_reservation_id=data.exclude_reservation_id,
        guests=data.guests,
    )


@router.post("/validate", response_model=AvailabilityValidateResponse)
def validate_stay(
    data: AvailabilityCheckRequest,
    db: Session = Depends(get_db),
    ctx: CompanyContext = Depends(get_company_context)
):
    """Yes/no form of the availability check"""
    is_valid = get_conflict_checker(db).validate_stay(
        ctx,
        data.room_id,
        data.check_in,
        data.check_out,
        exclude_reservation_id=data.exclude_reservation_id,
    )
    return {"is_valid": is_valid}


# ==================
# Grid & calendars
# ==================

@router.get("/grid", response_model=AvailabilityGridResponse)
def get_availability_grid(
    start_date: date = Query(...),
    end_date: date = Query(...),
    room_ids: Optional[str] = Query(None, description="Comma-separated room ids; all active rooms if omitted"),
    db: Session = Depends(get_db),
    ctx: CompanyContext = Depends(get_company_context)
):
    """Rooms x dates availability and price matrix (end_date inclusive)"""
    return get_grid_builder(db).build_grid(ctx, start_date, end_date, _parse_room_ids(room_ids))


@router.get("/room/{room_id}", response_model=GridRoomResponse)
def get_room_calendar(
    room_id: str,
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: Session = Depends(get_db),
    ctx: CompanyContext = Depends(get_company_context)
):
    """One room's calendar; defaults to the next 30 days"""
    start_date = start_date or date.today()
    end_date = end_date or start_date + timedelta(days=29)
    return get_grid_builder(db).room_calendar(ctx, room_id, start_date, end_date)


# ==================
# Per-date overrides
# ==================

@router.put("/room/{room_id}/date/{target_date}", response_model=CellResponse)
def update_room_date(
    room_id: str,
    target_date: date,
    data: CellUpdate,
    db: Session = Depends(get_db),
    ctx: CompanyContext = Depends(get_company_context)
):
    """Override price / minimum nights / open-close for one night"""
    return get_inventory_service(db).update_cell(
        ctx, room_id, target_date, data.model_dump(exclude_unset=True)
    )


@router.post("/bulk-update", response_model=BulkUpdateResponse)
def bulk_update_availability(
    data: BulkCellUpdate,
    db: Session = Depends(get_db),
    ctx: CompanyContext = Depends(get_company_context)
):
    """Apply the same override to every night of a range for several rooms"""
    return get_inventory_service(db).bulk_update(
        ctx, data.room_ids, data.start_date, data.end_date, data.changes()
    )


# ==================
# Maintenance
# ==================

@router.post("/materialize", response_model=MaterializeResponse)
def materialize_cells(
    data: MaterializeRequest,
    db: Session = Depends(get_db),
    ctx: CompanyContext = Depends(get_company_context)
):
    """Pre-create cells for a rolling window"""
    created = get_inventory_service(db).materialize_window(
        ctx, start_date=data.start_date, days=data.days, room_ids=data.room_ids
    )
    return {"created": created}


@router.post("/sync", response_model=SyncResponse)
def sync_with_reservations(
    db: Session = Depends(get_db),
    ctx: CompanyContext = Depends(get_company_context)
):
    """Re-derive night claims from the reservations table"""
    return get_inventory_service(db).sync_with_reservations(ctx)


# ==================
# Reporting
# ==================

@router.get("/stats", response_model=OccupancyStatsResponse)
def get_occupancy_stats(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    room_ids: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    ctx: CompanyContext = Depends(get_company_context)
):
    """Occupancy statistics; defaults to the next 30 days"""
    start_date = start_date or date.today()
    end_date = end_date or start_date + timedelta(days=29)
    return get_occupancy_service(db).compute_stats(
        ctx, start_date, end_date, _parse_room_ids(room_ids)
    )
