from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from couponhub.core.db import get_db
from couponhub.core.deps import RequestContext, guard
from couponhub.core.errors import ValidationFailed
from couponhub.core.ratelimit import RateLimit
from couponhub.core.sessions import session_manager
from couponhub.schemas.admin import (
    AdminUserOut,
    CouponUsageOut,
    SessionInfo,
    ToggleStatusIn,
    ToggleStatusResult,
)
from couponhub.schemas.audit import AuditLogOut
from couponhub.schemas.common import ApiResponse, Pagination, to_utc_naive
from couponhub.schemas.users import UserOut
from couponhub.services import admin_users, analytics, audit
from couponhub.services.audit import AuditAction

router = APIRouter(prefix="/admin", tags=["Admin"])

admin_only = guard(require_admin=True)


@router.get("/stats", response_model=ApiResponse[dict])
async def stats(
    time_range: str = Query(default="7d", alias="timeRange", max_length=10),
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(admin_only),
):
    return ApiResponse(data=await analytics.admin_stats(db, time_range))


@router.get("/usage-analytics", response_model=ApiResponse[dict])
async def usage_analytics(
    period: Literal["7d", "30d", "90d", "1y"] = Query(default="7d"),
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(admin_only),
):
    return ApiResponse(data=await analytics.usage_analytics(db, period))


@router.get("/coupon-usages", response_model=ApiResponse[List[CouponUsageOut]])
async def coupon_usages(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    coupon_id: Optional[str] = Query(default=None, alias="couponId", max_length=50),
    user_id: Optional[str] = Query(default=None, alias="userId", max_length=50),
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(admin_only),
):
    items, total = await admin_users.list_coupon_usages(
        db, page=page, limit=limit, coupon_id=coupon_id, user_id=user_id
    )
    return ApiResponse(data=items, pagination=Pagination.build(page=page, limit=limit, total=total))


# -------------------------
# Users
# -------------------------
@router.get("/users", response_model=ApiResponse[List[AdminUserOut]])
async def list_users(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    search: Optional[str] = Query(default=None, max_length=100),
    role: Literal["all", "USER", "ADMIN", "SUPER_ADMIN"] = Query(default="all"),
    status: Literal["all", "active", "inactive"] = Query(default="all"),
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(admin_only),
):
    items, total = await admin_users.list_users(
        db, page=page, limit=limit, search=search, role=role, status=status
    )
    return ApiResponse(data=items, pagination=Pagination.build(page=page, limit=limit, total=total))


@router.patch("/users/{user_id}/toggle-status", response_model=ApiResponse[ToggleStatusResult])
async def toggle_user_status(
    user_id: str,
    payload: ToggleStatusIn,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(guard(require_admin=True, require_csrf=True, rate_limit=RateLimit(50))),
):
    previous, user, revoked = await admin_users.set_user_status(db, ctx.user, user_id, payload.is_active)
    await audit.record(
        db,
        ctx,
        AuditAction.USER_STATUS_CHANGED,
        "user",
        resource_id=user.id,
        resource_name=user.email,
        old_values={"isActive": previous},
        new_values={"isActive": user.is_active},
        metadata={"sessionsRevoked": revoked} if revoked else None,
    )
    result = ToggleStatusResult(id=user.id, email=user.email, is_active=user.is_active, sessions_revoked=revoked)
    return ApiResponse(
        data=result, message=f"User {'activated' if user.is_active else 'deactivated'} successfully"
    )


@router.get("/users/{user_id}/sessions", response_model=ApiResponse[dict])
async def user_sessions(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(guard(require_admin=True, rate_limit=RateLimit(100))),
):
    user = await admin_users.get_user(db, user_id)
    info = SessionInfo.model_validate({"userId": user.id, **session_manager.session_info(user.id)})
    return ApiResponse(
        data={
            "user": UserOut.model_validate(user).model_dump(mode="json", by_alias=True),
            "sessionInfo": info.model_dump(mode="json", by_alias=True),
        }
    )


# -------------------------
# Audit trail
# -------------------------
@router.get("/audit-logs", response_model=ApiResponse[List[AuditLogOut]])
async def audit_logs(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=100),
    action: Optional[AuditAction] = Query(default=None),
    user_id: Optional[str] = Query(default=None, alias="userId", max_length=50),
    resource_type: Optional[str] = Query(default=None, alias="resourceType", max_length=50),
    resource_id: Optional[str] = Query(default=None, alias="resourceId", max_length=50),
    start_date: Optional[datetime] = Query(default=None, alias="startDate"),
    end_date: Optional[datetime] = Query(default=None, alias="endDate"),
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(guard(require_admin=True, rate_limit=RateLimit(100))),
):
    start, end = to_utc_naive(start_date), to_utc_naive(end_date)
    if start is not None and end is not None and start > end:
        raise ValidationFailed(
            "Validation failed", errors=[{"field": "startDate", "message": "startDate must be before endDate"}]
        )

    items, total = await audit.query(
        db,
        page=page,
        limit=limit,
        action=action,
        user_id=user_id,
        resource_type=resource_type,
        resource_id=resource_id,
        start_date=start,
        end_date=end,
    )
    return ApiResponse(
        data=[AuditLogOut.model_validate(e) for e in items],
        pagination=Pagination.build(page=page, limit=limit, total=total),
    )
