"""
Availability Rule Schemas

Rule payloads are a tagged variant keyed by `type`: each rule type
carries its own strongly-typed config. The resolver only ever sees
these validated variants, never the raw JSON column.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, List, Literal, Optional, Union

import pydantic
from pydantic import BaseModel, Field, TypeAdapter, field_validator, model_validator

from ..exceptions import ValidationError


def _check_weekdays(v: Optional[List[int]]) -> Optional[List[int]]:
    if v is None:
        return v
    if not v:
        raise ValueError("weekdays must not be empty when given")
    for d in v:
        if d not in range(7):
            raise ValueError("weekdays values must be 0-6 (0=Mon, 6=Sun)")
    return sorted(set(v))


class MinStayPayload(BaseModel):
    type: Literal["min_stay"] = "min_stay"
    min_nights: int = Field(..., ge=1, le=365)


class MaxStayPayload(BaseModel):
    type: Literal["max_stay"] = "max_stay"
    max_nights: int = Field(..., ge=1, le=365)


class ClosedToArrivalPayload(BaseModel):
    type: Literal["closed_to_arrival"] = "closed_to_arrival"
    closed: bool = True
    weekdays: Optional[List[int]] = None  # None = every day of the week

    @field_validator("weekdays")
    @classmethod
    def validate_weekdays(cls, v):
        return _check_weekdays(v)


class ClosedToDeparturePayload(BaseModel):
    type: Literal["closed_to_departure"] = "closed_to_departure"
    closed: bool = True
    weekdays: Optional[List[int]] = None

    @field_validator("weekdays")
    @classmethod
    def validate_weekdays(cls, v):
        return _check_weekdays(v)


class PriceOverridePayload(BaseModel):
    type: Literal["price_override"] = "price_override"
    price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)


class AdvanceBookingPayload(BaseModel):
    type: Literal["advance_booking"] = "advance_booking"
    max_days_ahead: int = Field(..., ge=0)


RulePayload = Annotated[
    Union[
        MinStayPayload,
        MaxStayPayload,
        ClosedToArrivalPayload,
        ClosedToDeparturePayload,
        PriceOverridePayload,
        AdvanceBookingPayload,
    ],
    Field(discriminator="type"),
]

rule_payload_adapter = TypeAdapter(RulePayload)


def parse_rule_payload(rule_type: str, payload: Optional[dict]) -> RulePayload:
    """Validate a stored (type, JSON config) pair into its typed variant."""
    data = dict(payload or {})
    data["type"] = rule_type
    try:
        return rule_payload_adapter.validate_python(data)
    except pydantic.ValidationError as e:
        raise ValidationError(f"Invalid {rule_type} rule payload: {e.errors()[0]['msg']}") from e


def dump_rule_payload(payload: RulePayload) -> dict:
    """JSON config for the payload column (the type lives in its own column)."""
    return payload.model_dump(mode="json", exclude={"type"})


class AvailabilityRuleUpsert(BaseModel):
    """Create or replace an availability rule"""
    room_id: Optional[str] = None  # None = every room of the company
    config: RulePayload
    priority: int = Field(default=0, ge=0)
    is_active: bool = True
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @model_validator(mode='after')
    def validate_window(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class AvailabilityRuleResponse(BaseModel):
    id: str
    room_id: Optional[str] = None
    room_name: Optional[str] = None
    rule_type: str
    rule_type_label: str
    config: dict
    priority: int
    is_active: bool
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    created_at: datetime

    class Config:
        from_attributes = True
