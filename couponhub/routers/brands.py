from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from couponhub.core.db import get_db
from couponhub.core.deps import RequestContext, guard
from couponhub.core.ratelimit import RateLimit
from couponhub.models.brand import Brand
from couponhub.schemas.brands import BrandCreate, BrandOut, BrandUpdate, BrandWithCount
from couponhub.schemas.common import ApiResponse, Pagination
from couponhub.services import audit
from couponhub.services import brands as brand_service
from couponhub.services.audit import AuditAction

router = APIRouter(prefix="/brands", tags=["Brands"])


def _with_count(brand: Brand, coupon_count: int) -> BrandWithCount:
    out = BrandWithCount.model_validate(brand)
    out.coupon_count = coupon_count
    return out


@router.get("", response_model=ApiResponse[List[BrandWithCount]])
async def list_brands(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    search: Optional[str] = Query(default=None, max_length=100),
    active: Optional[bool] = Query(default=None, description="false includes inactive brands"),
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(guard(rate_limit=RateLimit(100))),
):
    rows, total = await brand_service.list_brands(
        db, page=page, limit=limit, search=search, active_only=active is not False
    )
    return ApiResponse(
        data=[_with_count(b, n) for b, n in rows],
        pagination=Pagination.build(page=page, limit=limit, total=total),
    )


@router.post("", response_model=ApiResponse[BrandOut], status_code=status.HTTP_201_CREATED)
async def create_brand(
    payload: BrandCreate,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(guard(require_admin=True, require_csrf=True, rate_limit=RateLimit(20))),
):
    brand = await brand_service.create_brand(db, payload)
    await audit.record(
        db,
        ctx,
        AuditAction.BRAND_CREATED,
        "brand",
        resource_id=brand.id,
        resource_name=brand.name,
        new_values=audit.snapshot(brand, brand_service.AUDIT_FIELDS),
    )
    return ApiResponse(data=BrandOut.model_validate(brand), message="Brand created successfully")


@router.get("/sponsored", response_model=ApiResponse[List[BrandWithCount]])
async def sponsored_brands(
    limit: int = Query(default=8, ge=1, le=50),
    db: AsyncSession = Depends(get_db),
):
    rows = await brand_service.list_sponsored(db, limit=limit)
    return ApiResponse(data=[_with_count(b, n) for b, n in rows])


@router.get("/slug/{slug}", response_model=ApiResponse[BrandWithCount])
async def get_brand_by_slug(slug: str, db: AsyncSession = Depends(get_db)):
    brand, n = await brand_service.get_brand_by_slug(db, slug)
    return ApiResponse(data=_with_count(brand, n))


@router.get("/{brand_id}", response_model=ApiResponse[BrandWithCount])
async def get_brand(brand_id: str, db: AsyncSession = Depends(get_db)):
    brand, n = await brand_service.get_brand(db, brand_id)
    return ApiResponse(data=_with_count(brand, n))


@router.put("/{brand_id}", response_model=ApiResponse[BrandOut])
async def update_brand(
    brand_id: str,
    payload: BrandUpdate,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(guard(require_admin=True, rate_limit=RateLimit(50))),
):
    old, brand = await brand_service.update_brand(db, brand_id, payload)
    new = audit.snapshot(brand, brand_service.AUDIT_FIELDS)
    action = AuditAction.BRAND_UPDATED
    if set(payload.model_fields_set) <= {"id", "is_active"} and old["is_active"] != brand.is_active:
        action = AuditAction.BRAND_STATUS_CHANGED
    await audit.record(
        db, ctx, action, "brand", resource_id=brand.id, resource_name=brand.name, old_values=old, new_values=new
    )
    return ApiResponse(data=BrandOut.model_validate(brand), message="Brand updated successfully")


@router.delete("/{brand_id}", response_model=ApiResponse[dict])
async def delete_brand(
    brand_id: str,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(guard(require_admin=True, rate_limit=RateLimit(20))),
):
    brand = await brand_service.delete_brand(db, brand_id)
    await audit.record(
        db,
        ctx,
        AuditAction.BRAND_DELETED,
        "brand",
        resource_id=brand.id,
        resource_name=brand.name,
        old_values=audit.snapshot(brand, brand_service.AUDIT_FIELDS),
    )
    return ApiResponse(message="Brand deleted successfully")
