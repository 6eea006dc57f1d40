from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from couponhub.core.db import get_db
from couponhub.core.deps import RequestContext, guard
from couponhub.core.ratelimit import RateLimit
from couponhub.models.category import Category
from couponhub.schemas.categories import CategoryCreate, CategoryOut, CategoryUpdate, CategoryWithCount
from couponhub.schemas.common import ApiResponse, Pagination
from couponhub.services import audit
from couponhub.services import categories as category_service
from couponhub.services.audit import AuditAction

router = APIRouter(prefix="/categories", tags=["Categories"])


def _with_count(cat: Category, coupon_count: int) -> CategoryWithCount:
    out = CategoryWithCount.model_validate(cat)
    out.coupon_count = coupon_count
    return out


@router.get("", response_model=ApiResponse[List[CategoryWithCount]])
async def list_categories(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=100),
    search: Optional[str] = Query(default=None, max_length=100),
    active: Optional[bool] = Query(default=None),
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(guard(rate_limit=RateLimit(100))),
):
    rows, total = await category_service.list_categories(
        db, page=page, limit=limit, search=search, active_only=active is not False
    )
    return ApiResponse(
        data=[_with_count(c, n) for c, n in rows],
        pagination=Pagination.build(page=page, limit=limit, total=total),
    )


@router.post("", response_model=ApiResponse[CategoryOut], status_code=status.HTTP_201_CREATED)
async def create_category(
    payload: CategoryCreate,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(guard(require_admin=True, require_csrf=True, rate_limit=RateLimit(20))),
):
    cat = await category_service.create_category(db, payload)
    await audit.record(
        db,
        ctx,
        AuditAction.CATEGORY_CREATED,
        "category",
        resource_id=cat.id,
        resource_name=cat.name,
        new_values=audit.snapshot(cat, category_service.AUDIT_FIELDS),
    )
    return ApiResponse(data=CategoryOut.model_validate(cat), message="Category created successfully")


@router.get("/slug/{slug}", response_model=ApiResponse[CategoryWithCount])
async def get_category_by_slug(slug: str, db: AsyncSession = Depends(get_db)):
    cat, n = await category_service.get_category_by_slug(db, slug)
    return ApiResponse(data=_with_count(cat, n))


@router.get("/{category_id}", response_model=ApiResponse[CategoryWithCount])
async def get_category(category_id: str, db: AsyncSession = Depends(get_db)):
    cat, n = await category_service.get_category(db, category_id)
    return ApiResponse(data=_with_count(cat, n))


@router.put("/{category_id}", response_model=ApiResponse[CategoryOut])
async def update_category(
    category_id: str,
    payload: CategoryUpdate,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(guard(require_admin=True, rate_limit=RateLimit(50))),
):
    old, cat = await category_service.update_category(db, category_id, payload)
    action = AuditAction.CATEGORY_UPDATED
    if set(payload.model_fields_set) <= {"id", "is_active"} and old["is_active"] != cat.is_active:
        action = AuditAction.CATEGORY_STATUS_CHANGED
    await audit.record(
        db,
        ctx,
        action,
        "category",
        resource_id=cat.id,
        resource_name=cat.name,
        old_values=old,
        new_values=audit.snapshot(cat, category_service.AUDIT_FIELDS),
    )
    return ApiResponse(data=CategoryOut.model_validate(cat), message="Category updated successfully")


@router.delete("/{category_id}", response_model=ApiResponse[dict])
async def delete_category(
    category_id: str,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(guard(require_admin=True, rate_limit=RateLimit(20))),
):
    cat = await category_service.delete_category(db, category_id)
    await audit.record(
        db,
        ctx,
        AuditAction.CATEGORY_DELETED,
        "category",
        resource_id=cat.id,
        resource_name=cat.name,
        old_values=audit.snapshot(cat, category_service.AUDIT_FIELDS),
    )
    return ApiResponse(message="Category deleted successfully")
