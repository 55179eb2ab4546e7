"""
Rate Limiter Configuration

Limits the public availability check and reservation endpoints per
company and client. Storage is in-memory by default; point
RATE_LIMIT_STORAGE_URI at redis:// when running more than one instance.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address
from fastapi import Request

from ..config import settings


def client_ip(request: Request) -> str:
    """Client address behind the gateway (first X-Forwarded-For hop)"""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return request.headers.get("X-Real-IP", "").strip() or get_remote_address(request)


def company_client_key(request: Request) -> str:
    # Budgets are per (company, client address)
    company_id = request.headers.get("X-Company-Id", "").strip() or "-"
    return f"{company_id}:{client_ip(request)}"


limiter = Limiter(
    key_func=company_client_key,
    storage_uri=settings.rate_limit_storage_uri,
    enabled=settings.rate_limit_enabled,
)

RATE_LIMITS = {
    "availability_check": settings.check_rate_limit,
    "reservation_create": settings.reservation_rate_limit,
}


def get_rate_limit(operation: str) -> str:
    return RATE_LIMITS[operation]
