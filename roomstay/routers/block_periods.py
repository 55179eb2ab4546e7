"""
Block Periods API Router

Operator-declared unavailable periods (maintenance, owner stays,
seasonal closures), optionally recurring.
"""

from datetime import date
from fastapi import APIRouter, Depends, Query
from typing import List, Optional
from sqlalchemy.orm import Session

from ..context import CompanyContext
from ..database import get_db
from ..utils.dependencies import get_company_context
from ..services.block_expander import BlockApplyResult, get_block_period_service
from ..schemas.block_period import BlockPeriodCreate, BlockPeriodResponse, BlockPeriodApplyResponse

router = APIRouter(prefix="/api/availability/block-periods", tags=["Block Periods"])


def _apply_response(result: BlockApplyResult) -> BlockPeriodApplyResponse:
    period = BlockPeriodResponse.model_validate(result.period)
    return BlockPeriodApplyResponse(
        **period.model_dump(),
        cells_blocked=result.cells_blocked,
        cells_released=result.cells_released,
        reserved_overlap=result.reserved_overlap,
    )


@router.get("")
@router.get("/", response_model=List[BlockPeriodResponse])
def list_block_periods(
    include_inactive: bool = Query(False),
    room_id: Optional[str] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: Session = Depends(get_db),
    ctx: CompanyContext = Depends(get_company_context)
):
    """Block periods, optionally those overlapping [start_date, end_date]"""
    service = get_block_period_service(db)
    periods = service.list_block_periods(
        ctx,
        include_inactive=include_inactive,
        room_id=room_id,
        start_date=start_date,
        end_date=end_date,
    )
    return [BlockPeriodResponse.model_validate(p) for p in periods]


@router.post("", response_model=BlockPeriodApplyResponse, status_code=201)
@router.post("/", response_model=BlockPeriodApplyResponse, status_code=201)
def create_block_period(
    data: BlockPeriodCreate,
    db: Session = Depends(get_db),
    ctx: CompanyContext = Depends(get_company_context)
):
    """Create a block period and block every night it covers"""
    return _apply_response(get_block_period_service(db).create_block_period(ctx, data))


@router.get("/{period_id}", response_model=BlockPeriodResponse)
def get_block_period(
    period_id: str,
    db: Session = Depends(get_db),
    ctx: CompanyContext = Depends(get_company_context)
):
    return get_block_period_service(db).get_block_period(ctx, period_id)


@router.put("/{period_id}", response_model=BlockPeriodApplyResponse)
def update_block_period(
    period_id: str,
    data: BlockPeriodCreate,
    db: Session = Depends(get_db),
    ctx: CompanyContext = Depends(get_company_context)
):
    """Replace a block period; nights no longer covered are released"""
    return _apply_response(get_block_period_service(db).update_block_period(ctx, period_id, data))


@router.post("/{period_id}/apply", response_model=BlockPeriodApplyResponse)
def reapply_block_period(
    period_id: str,
    db: Session = Depends(get_db),
    ctx: CompanyContext = Depends(get_company_context)
):
    """Re-expand an active period, e.g. after rooms were added"""
    return _apply_response(get_block_period_service(db).reapply_block_period(ctx, period_id))


@router.delete("/{period_id}", response_model=BlockPeriodApplyResponse)
def deactivate_block_period(
    period_id: str,
    db: Session = Depends(get_db),
    ctx: CompanyContext = Depends(get_company_context)
):
    """Deactivate a block period; nights still claimed elsewhere stay blocked"""
    return _apply_response(get_block_period_service(db).deactivate_block_period(ctx, period_id))
