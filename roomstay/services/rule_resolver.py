"""
Rule Resolver

Turns the active availability rules of a company into the effective
constraint for one room on one date.

Resolution policy:
1. Filter: active, validity window contains the date (or is unset),
   room-specific for this room or company-wide, weekday filter for
   closed-to-arrival rules (arrival day) and closed-to-departure rules
   (check-out day, i.e. the night after the one resolved)
2. Exclusive fields (closed flags, price override): a room-specific rule
   beats any company-wide rule; inside a tier the lowest priority value
   wins, then the oldest rule, then the smallest id
3. Cumulative fields: min_nights takes the maximum over every matching
   rule (and the per-date cell minimum), max_nights and max_days_ahead
   take the minimum

Resolution is pure: no database access, same inputs give the same output.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Optional, Tuple

from ..exceptions import InvariantViolation, ValidationError
from ..models.availability_rule import AvailabilityRule, RuleType, RULE_TYPE_LABELS
from ..schemas.rules import parse_rule_payload
from ..utils.logging_config import get_logger

logger = get_logger(__name__)

ROOM_TIER = 0
COMPANY_TIER = 1

EXCLUSIVE_TYPES = (
    RuleType.CLOSED_TO_ARRIVAL.value,
    RuleType.CLOSED_TO_DEPARTURE.value,
    RuleType.PRICE_OVERRIDE.value,
)


@dataclass(frozen=True)
class AppliedRule:
    rule_id: str
    rule_type: str
    label: str


@dataclass(frozen=True)
class CandidateRule:
    """An availability rule with its payload already validated"""
    id: str
    room_id: Optional[str]
    rule_type: str
    config: object
    priority: int
    created_at: datetime
    is_active: bool = True
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @classmethod
    def from_model(cls, rule: AvailabilityRule) -> "CandidateRule":
        try:
            config = parse_rule_payload(rule.rule_type, rule.payload)
        except ValidationError as e:
            # Payloads are validated on write, a bad one means corrupted data
            logger.invariant_violation(
                f"Stored rule payload is invalid: {e.message}",
                entity_type="availability_rule",
                entity_id=rule.id,
            )
            raise InvariantViolation(f"Availability rule {rule.id} has an invalid payload") from e

        return cls(
            id=rule.id,
            room_id=rule.room_id,
            rule_type=rule.rule_type,
            config=config,
            priority=rule.priority or 0,
            created_at=rule.created_at or datetime.min,
            is_active=bool(rule.is_active),
            start_date=rule.start_date,
            end_date=rule.end_date,
        )

    @property
    def tier(self) -> int:
        return ROOM_TIER if self.room_id else COMPANY_TIER

    @property
    def sort_key(self) -> tuple:
        return (self.tier, self.priority, self.created_at, self.id)

    def as_applied(self) -> AppliedRule:
        return AppliedRule(
            rule_id=self.id,
            rule_type=self.rule_type,
            label=RULE_TYPE_LABELS.get(self.rule_type, self.rule_type),
        )

    def weekday_for(self, target_date: date) -> int:
        """
        Weekday the weekdays filter is tested against for a night.

        A departure restriction lands on the night before check-out but
        names the weekday of the check-out day itself.
        """
        if self.rule_type == RuleType.CLOSED_TO_DEPARTURE.value:
            return (target_date + timedelta(days=1)).weekday()
        return target_date.weekday()

    def matches(self, room_id: str, target_date: date) -> bool:
        if not self.is_active:
            return False
        if self.room_id is not None and self.room_id != room_id:
            return False
        if self.start_date and target_date < self.start_date:
            return False
        if self.end_date and target_date > self.end_date:
            return False
        weekdays = getattr(self.config, "weekdays", None)
        if weekdays is not None and self.weekday_for(target_date) not in weekdays:
            return False
        return True


@dataclass(frozen=True)
class EffectiveConstraint:
    """Resolved constraints for one room on one date"""
    min_nights: int = 1
    max_nights: Optional[int] = None
    closed_to_arrival: bool = False
    closed_to_departure: bool = False
    price_override: Optional[Decimal] = None
    max_days_ahead: Optional[int] = None
    applied_rules: Tuple[AppliedRule, ...] = field(default_factory=tuple)

    @property
    def applied_labels(self) -> List[str]:
        return [rule.label for rule in self.applied_rules]


def prepare_rules(rules: Iterable) -> List[CandidateRule]:
    """Validate ORM rules once so a window can be resolved without re-parsing."""
    prepared = []
    for rule in rules:
        if isinstance(rule, CandidateRule):
            prepared.append(rule)
        else:
            prepared.append(CandidateRule.from_model(rule))
    return prepared


def resolve(
    room_id: str,
    target_date: date,
    candidate_rules: Iterable,
    cell_min_nights: Optional[int] = None,
) -> EffectiveConstraint:
    """
    Resolve the effective constraint for a room on a date.

    Args:
        room_id: Room being resolved
        target_date: Night being resolved
        candidate_rules: AvailabilityRule rows or CandidateRule objects
        cell_min_nights: Operator minimum stored on the cell for this date

    Returns:
        EffectiveConstraint with defaults for every field no rule sets
    """
    matching = sorted(
        (rule for rule in prepare_rules(candidate_rules) if rule.matches(room_id, target_date)),
        key=lambda rule: rule.sort_key,
    )

    applied: List[AppliedRule] = []
    values = {}

    # Exclusive fields: first rule in (tier, priority, created_at, id) order wins
    for rule_type in EXCLUSIVE_TYPES:
        winner = next((r for r in matching if r.rule_type == rule_type), None)
        if winner is None:
            continue
        applied.append(winner.as_applied())
        if rule_type == RuleType.PRICE_OVERRIDE.value:
            values["price_override"] = winner.config.price.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        elif rule_type == RuleType.CLOSED_TO_ARRIVAL.value:
            values["closed_to_arrival"] = winner.config.closed
        else:
            values["closed_to_departure"] = winner.config.closed

    # Cumulative fields: most restrictive value across both tiers
    min_nights = cell_min_nights or 1
    min_winner = None
    for rule in matching:
        if rule.rule_type == RuleType.MIN_STAY.value and rule.config.min_nights > min_nights:
            min_nights = rule.config.min_nights
            min_winner = rule
    if min_winner:
        applied.append(min_winner.as_applied())
    values["min_nights"] = min_nights

    for rule_type, attr, target in (
        (RuleType.MAX_STAY.value, "max_nights", "max_nights"),
        (RuleType.ADVANCE_BOOKING.value, "max_days_ahead", "max_days_ahead"),
    ):
        winner = None
        for rule in matching:
            if rule.rule_type != rule_type:
                continue
            if winner is None or getattr(rule.config, attr) < getattr(winner.config, attr):
                winner = rule
        if winner:
            applied.append(winner.as_applied())
            values[target] = getattr(winner.config, attr)

    return EffectiveConstraint(applied_rules=tuple(applied), **values)


def resolve_many(
    room_id: str,
    dates: Iterable[date],
    candidate_rules: Iterable,
    cell_min_nights: Optional[Dict[date, int]] = None,
) -> Dict[date, EffectiveConstraint]:
    """Resolve a window of dates for one room from a pre-loaded rule list."""
    prepared = [
        rule for rule in prepare_rules(candidate_rules)
        if rule.room_id is None or rule.room_id == room_id
    ]
    cell_min_nights = cell_min_nights or {}
    return {
        d: resolve(room_id, d, prepared, cell_min_nights.get(d))
        for d in dates
    }


def effective_price(
    base_price,
    constraint: EffectiveConstraint,
    custom_price=None,
) -> Decimal:
    """Cell custom price beats a rule price override, which beats the room base price."""
    if custom_price is not None:
        price = Decimal(str(custom_price))
    elif constraint.price_override is not None:
        price = constraint.price_override
    else:
        price = Decimal(str(base_price or 0))
    return price.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
