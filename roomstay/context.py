from dataclasses import dataclass
from typing import Optional

from .exceptions import ValidationError


@dataclass(frozen=True)
class CompanyContext:
    """
    Tenant scope for every engine call.

    company_id filters every query; user_id is the acting operator,
    supplied by the caller and only used for audit fields.
    """
    company_id: str
    user_id: Optional[str] = None

    def __post_init__(self):
        if not self.company_id or not str(self.company_id).strip():
            raise ValidationError("company_id is required")
