"""
Tests for availability rule management
"""

import pytest
import pydantic
from datetime import date

from roomstay.exceptions import NotFound
from roomstay.schemas.rules import AvailabilityRuleUpsert, parse_rule_payload
from roomstay.services.rule_service import RuleService


class TestRulePayloads:
    """Typed payload variants"""

    def test_discriminated_by_type(self):
        data = AvailabilityRuleUpsert(config={"type": "max_stay", "max_nights": 7})
        assert data.config.type == "max_stay"
        assert data.config.max_nights == 7

    def test_unknown_type_rejected(self):
        with pytest.raises(pydantic.ValidationError):
            AvailabilityRuleUpsert(config={"type": "surcharge", "amount": 5})

    def test_weekdays_normalized(self):
        payload = parse_rule_payload("closed_to_arrival", {"weekdays": [6, 5, 5]})
        assert payload.weekdays == [5, 6]

    def test_reversed_window_rejected(self):
        with pytest.raises(pydantic.ValidationError):
            AvailabilityRuleUpsert(
                config={"type": "min_stay", "min_nights": 2},
                start_date=date(2027, 7, 10),
                end_date=date(2027, 7, 1),
            )


class TestRuleService:

    def test_create_stores_config_without_type(self, db, ctx, room):
        rule = RuleService(db).upsert_rule(ctx, AvailabilityRuleUpsert(
            room_id=room.id, config={"type": "min_stay", "min_nights": 3}, priority=2
        ))

        assert rule.rule_type == "min_stay"
        assert rule.payload == {"min_nights": 3}
        assert rule.label == "Minimum Nights"
        assert rule.priority == 2
        assert rule.company_id == ctx.company_id

    def test_replace_existing(self, db, ctx, room):
        service = RuleService(db)
        rule = service.upsert_rule(ctx, AvailabilityRuleUpsert(config={"type": "min_stay", "min_nights": 3}))

        updated = service.upsert_rule(
            ctx,
            AvailabilityRuleUpsert(config={"type": "price_override", "price": "120.00"}),
            rule_id=rule.id,
        )

        assert updated.id == rule.id
        assert updated.rule_type == "price_override"
        assert updated.payload == {"price": "120.00"}

    def test_list_includes_company_wide_rules(self, db, ctx, make_room):
        a = make_room("A")
        b = make_room("B")
        service = RuleService(db)
        service.upsert_rule(ctx, AvailabilityRuleUpsert(config={"type": "min_stay", "min_nights": 2}))
        service.upsert_rule(ctx, AvailabilityRuleUpsert(room_id=a.id, config={"type": "max_stay", "max_nights": 9}))
        service.upsert_rule(ctx, AvailabilityRuleUpsert(room_id=b.id, config={"type": "max_stay", "max_nights": 5}))

        assert len(service.list_rules(ctx)) == 3
        assert sorted(r.rule_type for r in service.list_rules(ctx, room_id=a.id)) == ["max_stay", "min_stay"]

    def test_deactivate_hides_rule(self, db, ctx, room):
        service = RuleService(db)
        rule = service.upsert_rule(ctx, AvailabilityRuleUpsert(config={"type": "min_stay", "min_nights": 2}))

        deactivated = service.deactivate_rule(ctx, rule.id)

        assert deactivated.is_active is False
        assert service.list_rules(ctx) == []
        assert len(service.list_rules(ctx, include_inactive=True)) == 1
        assert service.load_candidate_rules(ctx, [room.id], date(2027, 7, 1), date(2027, 7, 31)) == []

    def test_candidate_rules_respect_window(self, db, ctx, room):
        service = RuleService(db)
        service.upsert_rule(ctx, AvailabilityRuleUpsert(
            config={"type": "min_stay", "min_nights": 2},
            start_date=date(2027, 8, 1),
            end_date=date(2027, 8, 31),
        ))

        assert service.load_candidate_rules(ctx, [room.id], date(2027, 7, 1), date(2027, 7, 31)) == []
        assert len(service.load_candidate_rules(ctx, [room.id], date(2027, 7, 1), date(2027, 8, 1))) == 1

    def test_unknown_room_rejected(self, db, ctx):
        with pytest.raises(NotFound):
            RuleService(db).upsert_rule(ctx, AvailabilityRuleUpsert(
                room_id="missing", config={"type": "min_stay", "min_nights": 2}
            ))

    def test_rules_scoped_to_company(self, db, ctx, other_ctx, room):
        rule = RuleService(db).upsert_rule(ctx, AvailabilityRuleUpsert(config={"type": "min_stay", "min_nights": 2}))
        with pytest.raises(NotFound):
            RuleService(db).get_rule(other_ctx, rule.id)
        assert RuleService(db).list_rules(other_ctx) == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
