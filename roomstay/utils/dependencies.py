from typing import Optional

from fastapi import Header, Request

from ..context import CompanyContext
from ..exceptions import ValidationError
from .logging_config import company_id_var


async def get_company_context(
    request: Request,
    x_company_id: Optional[str] = Header(None, alias="X-Company-Id"),
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
) -> CompanyContext:
    """
    Tenant scope from request headers.

    The engine does not authenticate: the gateway in front of it is
    trusted to set X-Company-Id (required) and X-User-Id (audit only).
    """
    if not x_company_id or not x_company_id.strip():
        raise ValidationError("X-Company-Id header is required")

    ctx = CompanyContext(company_id=x_company_id.strip(), user_id=x_user_id)
    request.state.company_id = ctx.company_id
    company_id_var.set(ctx.company_id)
    return ctx
