from __future__ import annotations

import logging
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from couponhub.core.db import get_db
from couponhub.core.deps import RequestContext, guard
from couponhub.core.errors import ApiError
from couponhub.core.ratelimit import RateLimit
from couponhub.schemas.common import ApiResponse, Pagination
from couponhub.schemas.coupons import (
    CouponCreate,
    CouponFilters,
    CouponListItem,
    CouponOut,
    CouponType,
    CouponUpdate,
    DiscountType,
    PopularResult,
)
from couponhub.services import audit
from couponhub.services import coupons as coupon_service
from couponhub.services import redemptions
from couponhub.services.audit import AuditAction

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/coupons", tags=["Coupons"])


@router.get("", response_model=ApiResponse[List[CouponListItem]])
async def list_coupons(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=12, ge=1, le=100),
    q: Optional[str] = Query(default=None, max_length=100),
    category_id: Optional[str] = Query(default=None, alias="categoryId", max_length=50),
    brand_id: Optional[str] = Query(default=None, alias="brandId", max_length=50),
    type: Optional[CouponType] = Query(default=None),
    discount_type: Optional[DiscountType] = Query(default=None, alias="discountType"),
    min_discount: Optional[float] = Query(default=None, alias="minDiscount", ge=0),
    max_discount: Optional[float] = Query(default=None, alias="maxDiscount", ge=0),
    verified: Optional[bool] = Query(default=None),
    exclusive: Optional[bool] = Query(default=None),
    sort_by: Literal["newest", "popular", "discount", "expiry"] = Query(default="newest", alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query(default="desc", alias="sortOrder"),
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(guard(rate_limit=RateLimit(100))),
):
    filters = CouponFilters(
        page=page,
        limit=limit,
        q=q,
        category_id=category_id,
        brand_id=brand_id,
        type=type,
        discount_type=discount_type,
        min_discount=min_discount,
        max_discount=max_discount,
        verified=verified,
        exclusive=exclusive,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    items, total = await coupon_service.list_coupons(db, filters, user_id=ctx.user.id if ctx.user else None)
    return ApiResponse(data=items, pagination=Pagination.build(page=page, limit=limit, total=total))


@router.get("/popular", response_model=ApiResponse[PopularResult])
async def popular_coupons(
    timeframe: Literal["1d", "7d", "30d", "all"] = Query(default="7d"),
    limit: int = Query(default=10, ge=1, le=50),
    db: AsyncSession = Depends(get_db),
):
    return ApiResponse(data=await coupon_service.popular(db, timeframe=timeframe, limit=limit))


@router.get("/sponsored", response_model=ApiResponse[List[CouponListItem]])
async def sponsored_coupons(
    brand_id: Optional[str] = Query(default=None, alias="brandId", max_length=50),
    limit: int = Query(default=8, ge=1, le=50),
    db: AsyncSession = Depends(get_db),
):
    return ApiResponse(data=await coupon_service.sponsored(db, brand_id=brand_id, limit=limit))


@router.post("/create", response_model=ApiResponse[CouponOut], status_code=status.HTTP_201_CREATED)
async def create_coupon(
    payload: CouponCreate,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(guard(require_admin=True, rate_limit=RateLimit(50))),
):
    coupon = await coupon_service.create_coupon(db, payload)
    await audit.record(
        db,
        ctx,
        AuditAction.COUPON_CREATED,
        "coupon",
        resource_id=coupon.id,
        resource_name=coupon.title,
        new_values=audit.snapshot(coupon, coupon_service.AUDIT_FIELDS),
    )
    return ApiResponse(data=CouponOut.model_validate(coupon), message="Coupon created successfully")


@router.get("/{coupon_id}", response_model=ApiResponse[CouponOut])
async def get_coupon(coupon_id: str, db: AsyncSession = Depends(get_db)):
    coupon = await coupon_service.get_coupon(db, coupon_id)
    return ApiResponse(data=CouponOut.model_validate(coupon))


@router.put("/{coupon_id}", response_model=ApiResponse[CouponOut])
async def update_coupon(
    coupon_id: str,
    payload: CouponUpdate,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(guard(require_admin=True, rate_limit=RateLimit(50))),
):
    old, coupon = await coupon_service.update_coupon(db, coupon_id, payload)
    action = AuditAction.COUPON_UPDATED
    if set(payload.model_fields_set) <= {"id", "is_active"} and old["is_active"] != coupon.is_active:
        action = AuditAction.COUPON_STATUS_CHANGED
    await audit.record(
        db,
        ctx,
        action,
        "coupon",
        resource_id=coupon.id,
        resource_name=coupon.title,
        old_values=old,
        new_values=audit.snapshot(coupon, coupon_service.AUDIT_FIELDS),
    )
    return ApiResponse(data=CouponOut.model_validate(coupon), message="Coupon updated successfully")


@router.delete("/{coupon_id}", response_model=ApiResponse[dict])
async def delete_coupon(
    coupon_id: str,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(guard(require_admin=True, require_csrf=True, rate_limit=RateLimit(10))),
):
    coupon = await coupon_service.delete_coupon(db, coupon_id)
    await audit.record(
        db,
        ctx,
        AuditAction.COUPON_DELETED,
        "coupon",
        resource_id=coupon.id,
        resource_name=coupon.title,
        old_values=audit.snapshot(coupon, coupon_service.AUDIT_FIELDS),
    )
    return ApiResponse(message="Coupon deleted successfully")


@router.post("/{coupon_id}/use", response_model=ApiResponse[dict])
async def use_coupon(
    coupon_id: str,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(guard()),
):
    """
    Record a redemption before the client follows the affiliate link.

    Not-found, inactive and exhausted coupons are reported. Any other failure still
    answers success so the redirect is never blocked.
    """
    try:
        redeemed = await redemptions.redeem(
            db,
            coupon_id,
            user_id=ctx.user.id if ctx.user else None,
            ip_address=ctx.ip,
            user_agent=ctx.user_agent,
        )
    except ApiError:
        raise
    except Exception:
        logger.exception("Error recording coupon usage for %s", coupon_id)
        return ApiResponse(message="Coupon opened", data={})

    return ApiResponse(
        message="Coupon usage recorded successfully",
        data={"coupon": redeemed.model_dump(by_alias=True)},
    )
