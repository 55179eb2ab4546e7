"""Date range helpers shared by the availability services."""

from datetime import date, timedelta
from typing import Iterator, List, Optional

from ..exceptions import ValidationError


def iter_nights(start: date, end: date) -> Iterator[date]:
    """Dates from start (inclusive) to end (exclusive)."""
    current = start
    while current < end:
        yield current
        current += timedelta(days=1)


def nights(start: date, end: date) -> List[date]:
    return list(iter_nights(start, end))


def days_inclusive(start: date, end: date) -> List[date]:
    """Dates from start to end, both inclusive."""
    return list(iter_nights(start, end + timedelta(days=1)))


def validate_stay_dates(check_in: date, check_out: date, max_nights: Optional[int] = None) -> int:
    """Return the number of nights, or raise ValidationError."""
    if check_in is None or check_out is None:
        raise ValidationError("check_in and check_out are required")
    if check_out <= check_in:
        raise ValidationError("check_out must be after check_in")

    stay = (check_out - check_in).days
    if max_nights is not None and stay > max_nights:
        raise ValidationError(f"Stay of {stay} nights exceeds the maximum of {max_nights}")
    return stay


def validate_window(start: date, end: date, max_days: Optional[int] = None) -> int:
    """Inclusive window [start, end]; return its length in days."""
    if start is None or end is None:
        raise ValidationError("start_date and end_date are required")
    if end < start:
        raise ValidationError("end_date must not be before start_date")

    length = (end - start).days + 1
    if max_days is not None and length > max_days:
        raise ValidationError(f"Window of {length} days exceeds the maximum of {max_days}")
    return length


def guest_initials(name: Optional[str]) -> str:
    """Two-letter initials for calendar cells ("Ana Ruiz" -> "AR")."""
    if not name or not name.strip():
        return "??"
    parts = name.split()
    if len(parts) >= 2:
        return f"{parts[0][0]}{parts[1][0]}".upper()
    return parts[0][:2].upper()
