"""
Rule Service

Create, replace, list and deactivate availability rules.
Rules are never deleted, only deactivated.
"""

import logging
from datetime import date
from typing import Iterable, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..context import CompanyContext
from ..exceptions import NotFound
from ..models.availability_rule import AvailabilityRule
from ..models.room import Room
from ..schemas.rules import AvailabilityRuleUpsert, dump_rule_payload
from ..utils.db_helpers import unit_of_work
from ..utils.logging_config import get_logger

logger = get_logger(__name__)


class RuleService:
    def __init__(self, db: Session):
        self.db = db

    def get_rule(self, ctx: CompanyContext, rule_id: str) -> AvailabilityRule:
        rule = self.db.query(AvailabilityRule).filter(
            AvailabilityRule.id == rule_id,
            AvailabilityRule.company_id == ctx.company_id
        ).first()
        if not rule:
            raise NotFound(f"Availability rule {rule_id} not found")
        return rule

    def upsert_rule(
        self,
        ctx: CompanyContext,
        data: AvailabilityRuleUpsert,
        rule_id: Optional[str] = None,
    ) -> AvailabilityRule:
        """Create a rule, or replace every field of an existing one when rule_id is given."""
        with unit_of_work(self.db):
            if data.room_id:
                room = self.db.query(Room.id).filter(
                    Room.id == data.room_id,
                    Room.company_id == ctx.company_id
                ).first()
                if not room:
                    raise NotFound(f"Room {data.room_id} not found")

            if rule_id:
                rule = self.get_rule(ctx, rule_id)
            else:
                rule = AvailabilityRule(company_id=ctx.company_id)
                self.db.add(rule)

            rule.room_id = data.room_id
            rule.rule_type = data.config.type
            rule.payload = dump_rule_payload(data.config)
            rule.priority = data.priority
            rule.is_active = data.is_active
            rule.start_date = data.start_date
            rule.end_date = data.end_date

        self.db.refresh(rule)
        logger.log_with_context(
            logging.INFO,
            f"{'Updated' if rule_id else 'Created'} {rule.rule_type} rule",
            entity_type="availability_rule",
            entity_id=rule.id,
            room_id=rule.room_id,
            priority=rule.priority,
        )
        return rule

    def list_rules(
        self,
        ctx: CompanyContext,
        room_id: Optional[str] = None,
        include_inactive: bool = False,
    ) -> List[AvailabilityRule]:
        """Rules for the company; with room_id, the room's own rules plus company-wide ones."""
        query = self.db.query(AvailabilityRule).filter(AvailabilityRule.company_id == ctx.company_id)
        if room_id:
            query = query.filter(or_(
                AvailabilityRule.room_id == room_id,
                AvailabilityRule.room_id.is_(None)
            ))
        if not include_inactive:
            query = query.filter(AvailabilityRule.is_active == True)  # noqa: E712

        return query.order_by(
            AvailabilityRule.priority,
            AvailabilityRule.created_at,
            AvailabilityRule.id
        ).all()

    def deactivate_rule(self, ctx: CompanyContext, rule_id: str) -> AvailabilityRule:
        with unit_of_work(self.db):
            rule = self.get_rule(ctx, rule_id)
            rule.is_active = False

        self.db.refresh(rule)
        logger.info(f"Deactivated availability rule {rule_id}")
        return rule

    def load_candidate_rules(
        self,
        ctx: CompanyContext,
        room_ids: Iterable[str],
        start_date: date,
        end_date: date,
    ) -> List[AvailabilityRule]:
        """Active rules that may apply to any of the rooms in the window (one query)."""
        room_ids = list(room_ids)
        return self.db.query(AvailabilityRule).filter(
            AvailabilityRule.company_id == ctx.company_id,
            AvailabilityRule.is_active == True,  # noqa: E712
            or_(AvailabilityRule.room_id.is_(None), AvailabilityRule.room_id.in_(room_ids)),
            or_(AvailabilityRule.start_date.is_(None), AvailabilityRule.start_date <= end_date),
            or_(AvailabilityRule.end_date.is_(None), AvailabilityRule.end_date >= start_date)
        ).all()


def get_rule_service(db: Session) -> RuleService:
    """Factory function to get rule service instance"""
    return RuleService(db)
