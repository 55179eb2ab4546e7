"""
Block Period Schemas

Recurrence patterns are a tagged variant keyed by `kind`:
- weekly: the given weekdays, every `interval_weeks` weeks from the period start
- annual: a month/day range repeated every year (may wrap the year end)
"""

import calendar
from datetime import date, datetime
from typing import Annotated, List, Literal, Optional, Union

import pydantic
from pydantic import BaseModel, Field, TypeAdapter, field_validator, model_validator

from ..exceptions import ValidationError


class WeeklyRecurrence(BaseModel):
    kind: Literal["weekly"] = "weekly"
    weekdays: List[int] = Field(..., min_length=1)  # 0=Mon .. 6=Sun
    interval_weeks: int = Field(default=1, ge=1, le=52)

    @field_validator("weekdays")
    @classmethod
    def validate_weekdays(cls, v):
        for d in v:
            if d not in range(7):
                raise ValueError("weekdays values must be 0-6 (0=Mon, 6=Sun)")
        return sorted(set(v))


class AnnualRecurrence(BaseModel):
    kind: Literal["annual"] = "annual"
    start_month: int = Field(..., ge=1, le=12)
    start_day: int = Field(..., ge=1, le=31)
    end_month: int = Field(..., ge=1, le=12)
    end_day: int = Field(..., ge=1, le=31)

    @model_validator(mode="after")
    def validate_days(self):
        # Validate against a leap year so Feb 29 is accepted (clamped later)
        for month, day in ((self.start_month, self.start_day), (self.end_month, self.end_day)):
            if day > calendar.monthrange(2000, month)[1]:
                raise ValueError(f"day {day} does not exist in month {month}")
        return self

    @property
    def wraps_year(self) -> bool:
        return (self.end_month, self.end_day) < (self.start_month, self.start_day)


Recurrence = Annotated[
    Union[WeeklyRecurrence, AnnualRecurrence],
    Field(discriminator="kind"),
]

recurrence_adapter = TypeAdapter(Recurrence)


def parse_recurrence(data: Optional[dict]) -> Optional[Union[WeeklyRecurrence, AnnualRecurrence]]:
    if data is None:
        return None
    try:
        return recurrence_adapter.validate_python(data)
    except pydantic.ValidationError as e:
        raise ValidationError(f"Invalid recurrence pattern: {e.errors()[0]['msg']}") from e


class BlockPeriodCreate(BaseModel):
    room_ids: Optional[List[str]] = None  # None or empty = all rooms of the company
    start_date: date
    end_date: Optional[date] = None  # Inclusive; may be omitted only when recurring
    reason: str = Field(..., min_length=1, max_length=200)
    notes: Optional[str] = Field(None, max_length=2000)
    recurrence: Optional[Recurrence] = None

    @model_validator(mode='after')
    def validate_dates(self):
        if self.end_date is None and self.recurrence is None:
            raise ValueError("end_date is required for non-recurring block periods")
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class BlockPeriodResponse(BaseModel):
    id: str
    room_ids: List[str] = []
    applies_to_all_rooms: bool
    start_date: date
    end_date: Optional[date] = None
    reason: str
    notes: Optional[str] = None
    is_recurring: bool
    recurrence: Optional[dict] = None
    is_active: bool
    created_by_id: Optional[str] = None
    created_at: datetime
    deactivated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class BlockPeriodApplyResponse(BlockPeriodResponse):
    cells_blocked: int = 0
    cells_released: int = 0
    reserved_overlap: int = 0
