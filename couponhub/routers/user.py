from __future__ import annotations

from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from couponhub.core.db import get_db
from couponhub.core.deps import RequestContext, guard
from couponhub.core.ratelimit import RateLimit
from couponhub.integrations.mailer import send_favorite_added_email
from couponhub.schemas.common import ApiResponse
from couponhub.schemas.coupons import CouponOut
from couponhub.schemas.users import (
    ChangePassword,
    FavoriteIn,
    ProfileUpdate,
    SettingsOut,
    SettingsUpdate,
    UserOut,
    UserStats,
)
from couponhub.services import audit
from couponhub.services import auth as auth_service
from couponhub.services import users as user_service
from couponhub.services.audit import AuditAction

router = APIRouter(prefix="/user", tags=["User"])

PROFILE_FIELDS = ("name", "email")


@router.get("/profile", response_model=ApiResponse[UserOut])
async def get_profile(ctx: RequestContext = Depends(guard(require_auth=True, rate_limit=RateLimit(50)))):
    return ApiResponse(data=UserOut.model_validate(ctx.user))


@router.put("/profile", response_model=ApiResponse[UserOut])
async def update_profile(
    payload: ProfileUpdate,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(guard(require_auth=True, rate_limit=RateLimit(50))),
):
    old = audit.snapshot(ctx.user, PROFILE_FIELDS)
    user = await user_service.update_profile(db, ctx.user, payload)
    await audit.record(
        db,
        ctx,
        AuditAction.USER_UPDATED,
        "user",
        resource_id=user.id,
        resource_name=user.email,
        old_values=old,
        new_values=audit.snapshot(user, PROFILE_FIELDS),
    )
    return ApiResponse(data=UserOut.model_validate(user), message="Profile updated successfully")


@router.get("/settings", response_model=ApiResponse[SettingsOut])
async def get_settings(ctx: RequestContext = Depends(guard(require_auth=True, rate_limit=RateLimit(50)))):
    return ApiResponse(data=SettingsOut(settings=ctx.user.settings or {}))


@router.put("/settings", response_model=ApiResponse[SettingsOut])
async def update_settings(
    payload: SettingsUpdate,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(guard(require_auth=True, rate_limit=RateLimit(50))),
):
    saved = await user_service.save_settings(db, ctx.user, payload.settings)
    return ApiResponse(data=SettingsOut(settings=saved), message="Settings saved")


@router.put("/change-password", response_model=ApiResponse[dict])
async def change_password(
    payload: ChangePassword,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(guard(require_auth=True, require_csrf=True, rate_limit=RateLimit(5))),
):
    await auth_service.change_password(db, ctx.user, payload.current_password, payload.new_password)
    await audit.record(
        db,
        ctx,
        AuditAction.PASSWORD_CHANGED,
        "user",
        resource_id=ctx.user.id,
        resource_name=ctx.user.email,
    )
    return ApiResponse(message="Password changed successfully")


# -------------------------
# Favorites
# -------------------------
@router.get("/favorites", response_model=ApiResponse[List[CouponOut]])
async def list_favorites(
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(guard(require_auth=True, rate_limit=RateLimit(100))),
):
    coupons = await user_service.list_favorites(db, ctx.user.id)
    return ApiResponse(data=[CouponOut.model_validate(c) for c in coupons])


@router.post("/favorites", response_model=ApiResponse[CouponOut], status_code=status.HTTP_201_CREATED)
async def add_favorite(
    payload: FavoriteIn,
    background: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(guard(require_auth=True, rate_limit=RateLimit(50))),
):
    coupon = await user_service.add_favorite(db, ctx.user.id, payload.coupon_id)
    background.add_task(
        send_favorite_added_email,
        ctx.user.email,
        ctx.user.name,
        coupon.title,
        coupon.brand.name if coupon.brand else "",
    )
    return ApiResponse(data=CouponOut.model_validate(coupon), message="Added to favorites")


@router.delete("/favorites", response_model=ApiResponse[dict])
async def remove_favorite(
    coupon_id: str = Query(..., alias="couponId", min_length=1, max_length=50),
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(guard(require_auth=True, rate_limit=RateLimit(50))),
):
    await user_service.remove_favorite(db, ctx.user.id, coupon_id)
    return ApiResponse(message="Removed from favorites")


@router.get("/stats", response_model=ApiResponse[UserStats])
async def stats(
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(guard(require_auth=True, rate_limit=RateLimit(50))),
):
    return ApiResponse(data=await user_service.user_stats(db, ctx.user.id))
