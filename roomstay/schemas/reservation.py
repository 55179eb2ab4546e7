from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Literal, Optional
from datetime import datetime, date
from decimal import Decimal
import re


def _strip_markup(v):
    """Remove script tags and inline event handlers from free text"""
    if v is None or not isinstance(v, str):
        return v
    v = re.sub(r'<script[^>]*>.*?</script>', '', v, flags=re.IGNORECASE | re.DOTALL)
    v = re.sub(r'on\w+\s*=', '', v, flags=re.IGNORECASE)
    return v


class ReservationCreate(BaseModel):
    room_id: str = Field(..., min_length=1, max_length=36)
    check_in_date: date
    check_out_date: date
    guest_name: Optional[str] = Field(None, max_length=200)
    guests: int = Field(default=1, ge=1, le=50)
    status: Literal["pending", "confirmed"] = "pending"
    notes: Optional[str] = Field(None, max_length=2000)

    @field_validator('guest_name', 'notes', mode='before')
    @classmethod
    def sanitize_text_fields(cls, v):
        return _strip_markup(v)

    @model_validator(mode='after')
    def validate_dates(self):
        if self.check_out_date <= self.check_in_date:
            raise ValueError("check_out_date must be after check_in_date")
        return self


class ReservationDatesUpdate(BaseModel):
    check_in_date: date
    check_out_date: date
    room_id: Optional[str] = Field(None, max_length=36)  # Move to another room

    @model_validator(mode='after')
    def validate_dates(self):
        if self.check_out_date <= self.check_in_date:
            raise ValueError("check_out_date must be after check_in_date")
        return self


class ReservationCancel(BaseModel):
    reason: Optional[str] = Field(None, max_length=255)

    @field_validator('reason', mode='before')
    @classmethod
    def sanitize_reason(cls, v):
        return _strip_markup(v)


class ReservationResponse(BaseModel):
    id: str
    room_id: str
    check_in_date: date
    check_out_date: date
    nights: int
    status: str
    guest_name: Optional[str] = None
    guests: int
    total_price: Decimal
    notes: Optional[str] = None
    cancel_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    created_by_id: Optional[str] = None
    version: int
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
