"""
Tests for the Rule Resolver

These tests verify the resolution policy without a database:
- Room-specific rules beat company-wide rules for exclusive fields
- Lower priority value wins inside a tier, then the older rule
- min_nights takes the most restrictive value across both tiers
- Weekday filters and validity windows
- Price precedence: cell custom price > rule override > base price
"""

import pytest
from datetime import date, datetime, timedelta
from decimal import Decimal

from roomstay.exceptions import InvariantViolation
from roomstay.models import AvailabilityRule
from roomstay.services.rule_resolver import (
    EffectiveConstraint, effective_price, prepare_rules, resolve, resolve_many
)

ROOM = "room-1"
OTHER_ROOM = "room-2"
SATURDAY = date(2027, 7, 3)
MONDAY = date(2027, 7, 5)

_counter = {"n": 0}


def rule(rule_type, payload, room_id=None, priority=0, created_at=None, rule_id=None,
         is_active=True, start_date=None, end_date=None):
    """Unsaved AvailabilityRule row with every column set explicitly"""
    _counter["n"] += 1
    return AvailabilityRule(
        id=rule_id or f"rule-{_counter['n']:03d}",
        company_id="company-1",
        room_id=room_id,
        rule_type=rule_type,
        payload=payload,
        priority=priority,
        is_active=is_active,
        start_date=start_date,
        end_date=end_date,
        created_at=created_at or datetime(2027, 1, 1),
    )


class TestDefaults:
    """No matching rules"""

    def test_no_rules(self):
        constraint = resolve(ROOM, MONDAY, [])
        assert constraint == EffectiveConstraint()
        assert constraint.min_nights == 1
        assert constraint.price_override is None
        assert constraint.applied_rules == ()

    def test_cell_minimum_without_rules(self):
        assert resolve(ROOM, MONDAY, [], cell_min_nights=4).min_nights == 4


class TestExclusiveFields:
    """Closed flags and price overrides: a single winner"""

    def test_room_rule_beats_company_rule_regardless_of_priority(self):
        rules = [
            rule("price_override", {"price": "80.00"}, priority=0),
            rule("price_override", {"price": "120.00"}, room_id=ROOM, priority=5),
        ]
        assert resolve(ROOM, MONDAY, rules).price_override == Decimal("120.00")

    def test_lower_priority_value_wins_within_tier(self):
        rules = [
            rule("price_override", {"price": "95.00"}, room_id=ROOM, priority=2),
            rule("price_override", {"price": "90.00"}, room_id=ROOM, priority=1),
        ]
        assert resolve(ROOM, MONDAY, rules).price_override == Decimal("90.00")

    def test_older_rule_wins_on_priority_tie(self):
        rules = [
            rule("price_override", {"price": "70.00"}, created_at=datetime(2027, 3, 1)),
            rule("price_override", {"price": "60.00"}, created_at=datetime(2027, 2, 1)),
        ]
        assert resolve(ROOM, MONDAY, rules).price_override == Decimal("60.00")

    def test_order_of_input_does_not_matter(self):
        rules = [
            rule("price_override", {"price": "70.00"}, priority=3),
            rule("closed_to_arrival", {"closed": True}, priority=1),
            rule("price_override", {"price": "65.00"}, priority=1),
        ]
        assert resolve(ROOM, MONDAY, rules) == resolve(ROOM, MONDAY, list(reversed(rules)))

    def test_closed_to_arrival_weekday_filter(self):
        rules = [rule("closed_to_arrival", {"closed": True, "weekdays": [5]})]
        assert resolve(ROOM, SATURDAY, rules).closed_to_arrival is True
        assert resolve(ROOM, MONDAY, rules).closed_to_arrival is False

    def test_closed_to_departure_weekday_is_check_out_day(self):
        # No check-out on Sunday: closes the Saturday night, the last night before a Sunday departure
        rules = [rule("closed_to_departure", {"closed": True, "weekdays": [6]})]
        assert resolve(ROOM, SATURDAY, rules).closed_to_departure is True
        assert resolve(ROOM, SATURDAY + timedelta(days=1), rules).closed_to_departure is False

    def test_room_rule_can_reopen_company_closure(self):
        rules = [
            rule("closed_to_departure", {"closed": True}),
            rule("closed_to_departure", {"closed": False}, room_id=ROOM),
        ]
        assert resolve(ROOM, MONDAY, rules).closed_to_departure is False
        assert resolve(OTHER_ROOM, MONDAY, rules).closed_to_departure is True


class TestCumulativeFields:
    """min_nights / max_nights / max_days_ahead"""

    def test_min_stay_takes_maximum_across_tiers(self):
        rules = [
            rule("min_stay", {"min_nights": 3}),
            rule("min_stay", {"min_nights": 2}, room_id=ROOM),
        ]
        constraint = resolve(ROOM, MONDAY, rules)
        assert constraint.min_nights == 3
        assert constraint.applied_labels == ["Minimum Nights"]

    def test_cell_minimum_can_exceed_rules(self):
        rules = [rule("min_stay", {"min_nights": 3})]
        assert resolve(ROOM, MONDAY, rules, cell_min_nights=5).min_nights == 5

    def test_max_stay_takes_minimum(self):
        rules = [
            rule("max_stay", {"max_nights": 14}),
            rule("max_stay", {"max_nights": 7}, room_id=ROOM),
        ]
        assert resolve(ROOM, MONDAY, rules).max_nights == 7

    def test_advance_booking_takes_minimum(self):
        rules = [
            rule("advance_booking", {"max_days_ahead": 90}),
            rule("advance_booking", {"max_days_ahead": 30}),
        ]
        assert resolve(ROOM, MONDAY, rules).max_days_ahead == 30


class TestFiltering:
    """Rules that must not apply"""

    def test_inactive_rule_ignored(self):
        rules = [rule("min_stay", {"min_nights": 5}, is_active=False)]
        assert resolve(ROOM, MONDAY, rules).min_nights == 1

    def test_other_room_rule_ignored(self):
        rules = [rule("min_stay", {"min_nights": 5}, room_id=OTHER_ROOM)]
        assert resolve(ROOM, MONDAY, rules).min_nights == 1

    def test_validity_window_is_inclusive(self):
        rules = [rule("min_stay", {"min_nights": 4}, start_date=date(2027, 7, 5), end_date=date(2027, 7, 6))]
        assert resolve(ROOM, date(2027, 7, 4), rules).min_nights == 1
        assert resolve(ROOM, date(2027, 7, 5), rules).min_nights == 4
        assert resolve(ROOM, date(2027, 7, 6), rules).min_nights == 4
        assert resolve(ROOM, date(2027, 7, 7), rules).min_nights == 1

    def test_corrupted_payload_is_invariant_violation(self):
        with pytest.raises(InvariantViolation):
            prepare_rules([rule("min_stay", {"min_nights": 0})])


class TestResolveMany:

    def test_one_constraint_per_date(self):
        rules = [rule("closed_to_arrival", {"closed": True, "weekdays": [5]})]
        dates = [date(2027, 7, d) for d in range(1, 8)]
        result = resolve_many(ROOM, dates, rules, {date(2027, 7, 2): 3})

        assert list(result) == dates
        assert result[SATURDAY].closed_to_arrival is True
        assert result[date(2027, 7, 2)].min_nights == 3
        assert result[date(2027, 7, 1)].min_nights == 1


class TestEffectivePrice:
    """$150 custom > $120 override > $100 base"""

    def test_base_price(self):
        assert effective_price(Decimal("100"), EffectiveConstraint()) == Decimal("100.00")

    def test_override_beats_base(self):
        constraint = EffectiveConstraint(price_override=Decimal("120.00"))
        assert effective_price(Decimal("100"), constraint) == Decimal("120.00")

    def test_custom_beats_override(self):
        constraint = EffectiveConstraint(price_override=Decimal("120.00"))
        assert effective_price(Decimal("100"), constraint, Decimal("150")) == Decimal("150.00")

    def test_rounding_half_up(self):
        assert effective_price("99.995", EffectiveConstraint()) == Decimal("100.00")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
