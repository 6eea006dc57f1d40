from __future__ import annotations

from fastapi import APIRouter, Depends

from couponhub.core.csrf import csrf_tokens
from couponhub.core.deps import RequestContext, guard
from couponhub.core.ratelimit import RateLimit
from couponhub.schemas.auth import CsrfTokenOut
from couponhub.schemas.common import ApiResponse

router = APIRouter(tags=["Security"])


@router.get("/csrf-token", response_model=ApiResponse[CsrfTokenOut])
async def issue_csrf_token(ctx: RequestContext = Depends(guard(rate_limit=RateLimit(20)))):
    """Token for the X-CSRF-Token header, bound to the caller's session (or IP when signed out)."""
    owner = ctx.session_id or f"anon:{ctx.ip}"
    return ApiResponse(data=CsrfTokenOut(csrf_token=csrf_tokens.issue(owner)))
