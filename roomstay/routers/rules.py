"""
Availability Rules API Router

Minimum / maximum stay, arrival and departure restrictions, price
overrides and advance booking windows. Rules are deactivated, never deleted.
"""

from fastapi import APIRouter, Depends, Query
from typing import List, Optional
from sqlalchemy.orm import Session

from ..context import CompanyContext
from ..database import get_db
from ..models.availability_rule import AvailabilityRule
from ..utils.dependencies import get_company_context
from ..services.rule_service import get_rule_service
from ..schemas.rules import AvailabilityRuleUpsert, AvailabilityRuleResponse

router = APIRouter(prefix="/api/availability/rules", tags=["Availability Rules"])


def _to_response(rule: AvailabilityRule) -> AvailabilityRuleResponse:
    return AvailabilityRuleResponse(
        id=rule.id,
        room_id=rule.room_id,
        room_name=rule.room.name if rule.room else None,
        rule_type=rule.rule_type,
        rule_type_label=rule.label,
        config=rule.payload or {},
        priority=rule.priority,
        is_active=rule.is_active,
        start_date=rule.start_date,
        end_date=rule.end_date,
        created_at=rule.created_at,
    )


@router.get("")
@router.get("/", response_model=List[AvailabilityRuleResponse])
def list_rules(
    room_id: Optional[str] = Query(None),
    include_inactive: bool = Query(False),
    db: Session = Depends(get_db),
    ctx: CompanyContext = Depends(get_company_context)
):
    """Company rules; with room_id, that room's rules plus company-wide ones"""
    rules = get_rule_service(db).list_rules(ctx, room_id=room_id, include_inactive=include_inactive)
    return [_to_response(rule) for rule in rules]


@router.post("", response_model=AvailabilityRuleResponse, status_code=201)
@router.post("/", response_model=AvailabilityRuleResponse, status_code=201)
def create_rule(
    data: AvailabilityRuleUpsert,
    db: Session = Depends(get_db),
    ctx: CompanyContext = Depends(get_company_context)
):
    return _to_response(get_rule_service(db).upsert_rule(ctx, data))


@router.put("/{rule_id}", response_model=AvailabilityRuleResponse)
def update_rule(
    rule_id: str,
    data: AvailabilityRuleUpsert,
    db: Session = Depends(get_db),
    ctx: CompanyContext = Depends(get_company_context)
):
    """Replace every field of an existing rule"""
    return _to_response(get_rule_service(db).upsert_rule(ctx, data, rule_id=rule_id))


@router.delete("/{rule_id}", response_model=AvailabilityRuleResponse)
def deactivate_rule(
    rule_id: str,
    db: Session = Depends(get_db),
    ctx: CompanyContext = Depends(get_company_context)
):
    return _to_response(get_rule_service(db).deactivate_rule(ctx, rule_id))
