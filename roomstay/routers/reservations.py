"""
Reservations API Router

The write path used by checkout and the admin calendar:
create (hold or confirmed), confirm, re-date / move, cancel.
"""

from fastapi import APIRouter, Depends, Request
from typing import Optional
from sqlalchemy.orm import Session

from ..context import CompanyContext
from ..database import get_db
from ..utils.dependencies import get_company_context
from ..utils.rate_limiter import limiter, get_rate_limit
from ..services.reservation_writer import get_reservation_writer
from ..schemas.reservation import (
    ReservationCreate,
    ReservationDatesUpdate,
    ReservationCancel,
    ReservationResponse,
)

router = APIRouter(prefix="/api/reservations", tags=["Reservations"])


@router.post("", response_model=ReservationResponse, status_code=201)
@router.post("/", response_model=ReservationResponse, status_code=201)
@limiter.limit(get_rate_limit("reservation_create"))
def create_reservation(
    request: Request,
    data: ReservationCreate,
    db: Session = Depends(get_db),
    ctx: CompanyContext = Depends(get_company_context)
):
    """
    Create a reservation and claim its nights.

    409 when any night is no longer available; the body carries the
    availability result explaining why.
    """
    writer = get_reservation_writer(db)
    return writer.create_reservation(
        ctx,
        data.room_id,
        data.check_in_date,
        data.check_out_date,
        guest_name=data.guest_name,
        guests=data.guests,
        status=data.status,
        notes=data.notes,
    )


@router.get("/{reservation_id}", response_model=ReservationResponse)
def get_reservation(
    reservation_id: str,
    db: Session = Depends(get_db),
    ctx: CompanyContext = Depends(get_company_context)
):
    return get_reservation_writer(db).get_reservation(ctx, reservation_id)


@router.post("/{reservation_id}/confirm", response_model=ReservationResponse)
def confirm_reservation(
    reservation_id: str,
    db: Session = Depends(get_db),
    ctx: CompanyContext = Depends(get_company_context)
):
    return get_reservation_writer(db).confirm_reservation(ctx, reservation_id)


@router.put("/{reservation_id}/dates", response_model=ReservationResponse)
def modify_reservation(
    reservation_id: str,
    data: ReservationDatesUpdate,
    db: Session = Depends(get_db),
    ctx: CompanyContext = Depends(get_company_context)
):
    """Re-date a reservation, optionally moving it to another room"""
    return get_reservation_writer(db).modify_reservation(
        ctx,
        reservation_id,
        data.check_in_date,
        data.check_out_date,
        new_room_id=data.room_id,
    )


@router.post("/{reservation_id}/cancel", response_model=ReservationResponse)
def cancel_reservation(
    reservation_id: str,
    data: Optional[ReservationCancel] = None,
    db: Session = Depends(get_db),
    ctx: CompanyContext = Depends(get_company_context)
):
    """Cancel and release the nights. Cancelling twice is a no-op."""
    reason = data.reason if data else None
    return get_reservation_writer(db).cancel_reservation(ctx, reservation_id, reason)
