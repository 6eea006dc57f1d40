from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from couponhub.core.db import get_db
from couponhub.core.deps import RequestContext, guard
from couponhub.core.ratelimit import RateLimit, rate_limiter
from couponhub.core.sessions import session_manager
from couponhub.schemas.admin import ForceLogoutIn, SessionStats, UnlockIn
from couponhub.schemas.common import ApiResponse
from couponhub.services import admin_users, analytics, audit
from couponhub.services.audit import AuditAction

router = APIRouter(prefix="/admin", tags=["Admin Security"])


@router.get("/sessions", response_model=ApiResponse[SessionStats])
async def session_stats(ctx: RequestContext = Depends(guard(require_admin=True, rate_limit=RateLimit(50)))):
    session_manager.cleanup_expired()
    rate_limiter.purge_expired()
    return ApiResponse(data=SessionStats.model_validate(session_manager.stats()))


@router.post("/sessions", response_model=ApiResponse[dict])
async def force_logout(
    payload: ForceLogoutIn,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(guard(require_admin=True, require_csrf=True, rate_limit=RateLimit(20))),
):
    """End every live session of a user. Repeating the call is harmless."""
    user = await admin_users.get_user(db, payload.user_id)
    revoked = session_manager.force_logout_user(user.id, f"{payload.reason} (by {ctx.user.email})")
    await audit.record(
        db,
        ctx,
        AuditAction.USER_STATUS_CHANGED,
        "user",
        resource_id=user.id,
        resource_name=user.email,
        metadata={"action": "force_logout", "reason": payload.reason, "sessionsRevoked": revoked},
    )
    return ApiResponse(data={"sessionsRevoked": revoked}, message="User sessions terminated")


@router.post("/sessions/unlock", response_model=ApiResponse[dict])
async def unlock_account(
    payload: UnlockIn,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(guard(require_admin=True, require_csrf=True, rate_limit=RateLimit(20))),
):
    user = await admin_users.get_user(db, payload.user_id)
    session_manager.unlock(user.id)
    await audit.record(
        db,
        ctx,
        AuditAction.USER_STATUS_CHANGED,
        "user",
        resource_id=user.id,
        resource_name=user.email,
        metadata={"action": "unlock"},
    )
    return ApiResponse(message="Account unlocked")


@router.get("/security-dashboard", response_model=ApiResponse[dict])
async def security_dashboard(
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(guard(require_admin=True, rate_limit=RateLimit(30))),
):
    return ApiResponse(data=await analytics.security_dashboard(db))
