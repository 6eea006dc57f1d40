from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Iterable, Optional

from sqlalchemy import and_, delete, exists, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from couponhub.core.db import utcnow
from couponhub.core.errors import NotFound, ValidationFailed
from couponhub.models.brand import Brand
from couponhub.models.category import Category
from couponhub.models.coupon import Coupon
from couponhub.models.coupon_usage import CouponUsage
from couponhub.models.favorite import FavoriteCoupon
from couponhub.schemas.coupons import (
    CouponCreate,
    CouponFilters,
    CouponListItem,
    CouponUpdate,
    PopularResult,
    TrendingBrand,
    TrendingCategory,
)
from couponhub.services.text import contains_pattern

logger = logging.getLogger(__name__)

AUDIT_FIELDS = (
    "title",
    "code",
    "type",
    "discount_type",
    "discount_value",
    "usage_limit",
    "start_date",
    "end_date",
    "is_active",
    "is_verified",
    "is_exclusive",
    "sponsored",
    "brand_id",
    "category_id",
)

TIMEFRAMES = {"1d": timedelta(days=1), "7d": timedelta(days=7), "30d": timedelta(days=30), "all": None}


def _usage_count():
    return (
        select(func.count(CouponUsage.id))
        .where(CouponUsage.coupon_id == Coupon.id)
        .correlate(Coupon)
        .scalar_subquery()
        .label("usage_count")
    )


def _favorite_count():
    return (
        select(func.count(FavoriteCoupon.id))
        .where(FavoriteCoupon.coupon_id == Coupon.id)
        .correlate(Coupon)
        .scalar_subquery()
        .label("favorite_count")
    )


def _list_item(coupon: Coupon, usage_count: int, favorite_count: int, favorites: set[str]) -> CouponListItem:
    item = CouponListItem.model_validate(coupon)
    item.usage_count = int(usage_count or 0)
    item.favorite_count = int(favorite_count or 0)
    item.is_favorite = coupon.id in favorites
    return item


async def favorite_ids(db: AsyncSession, user_id: Optional[str], coupon_ids: Iterable[str]) -> set[str]:
    """Which of `coupon_ids` the user has favorited. Always read fresh from the database."""
    ids = list(coupon_ids)
    if not user_id or not ids:
        return set()
    res = await db.execute(
        select(FavoriteCoupon.coupon_id).where(
            FavoriteCoupon.user_id == user_id, FavoriteCoupon.coupon_id.in_(ids)
        )
    )
    return set(res.scalars().all())


def text_match(q: str):
    pattern = contains_pattern(q)
    return or_(
        Coupon.title.ilike(pattern, escape="\\"),
        Coupon.description.ilike(pattern, escape="\\"),
        Coupon.code.ilike(pattern, escape="\\"),
        Coupon.brand.has(Brand.name.ilike(pattern, escape="\\")),
        Coupon.category.has(Category.name.ilike(pattern, escape="\\")),
    )


async def list_coupons(
    db: AsyncSession, f: CouponFilters, *, user_id: Optional[str] = None
) -> tuple[list[CouponListItem], int]:
    conds = [Coupon.is_active.is_(True)]
    if f.q:
        conds.append(text_match(f.q))
    if f.category_id:
        conds.append(Coupon.category_id == f.category_id)
    if f.brand_id:
        conds.append(Coupon.brand_id == f.brand_id)
    if f.type:
        conds.append(Coupon.type == f.type)
    if f.discount_type:
        conds.append(Coupon.discount_type == f.discount_type)
    if f.min_discount is not None:
        conds.append(Coupon.discount_value >= f.min_discount)
    if f.max_discount is not None:
        conds.append(Coupon.discount_value <= f.max_discount)
    if f.verified is not None:
        conds.append(Coupon.is_verified.is_(f.verified))
    if f.exclusive is not None:
        conds.append(Coupon.is_exclusive.is_(f.exclusive))

    sort_col = {
        "newest": Coupon.created_at,
        "popular": Coupon.used_count,
        "discount": Coupon.discount_value,
        "expiry": Coupon.end_date,
    }[f.sort_by]
    order = sort_col.asc() if f.sort_order == "asc" else sort_col.desc()
    if f.sort_by == "expiry":
        order = order.nullslast()

    total = (await db.execute(select(func.count()).select_from(Coupon).where(*conds))).scalar_one()

    res = await db.execute(
        select(Coupon, _usage_count(), _favorite_count())
        .where(*conds)
        .order_by(order, Coupon.id)
        .offset((f.page - 1) * f.limit)
        .limit(f.limit)
    )
    rows = res.all()
    favorites = await favorite_ids(db, user_id, (c.id for c, _, _ in rows))
    return [_list_item(c, u, n, favorites) for c, u, n in rows], int(total)


async def popular(db: AsyncSession, *, timeframe: str = "7d", limit: int = 10) -> PopularResult:
    window = TIMEFRAMES.get(timeframe)
    since: Optional[datetime] = utcnow() - window if window else None

    live = and_(Coupon.is_active.is_(True), Coupon.is_verified.is_(True))
    if since is not None:
        used_recently = exists().where(CouponUsage.coupon_id == Coupon.id, CouponUsage.used_at >= since)
        live = and_(live, used_recently)

    fav_count = _favorite_count()
    res = await db.execute(
        select(Coupon, _usage_count(), fav_count)
        .where(live)
        .order_by(Coupon.is_exclusive.desc(), Coupon.used_count.desc(), fav_count.desc())
        .limit(limit)
    )
    coupons = [_list_item(c, u, n, set()) for c, u, n in res.all()]

    brand_count = func.count(Coupon.id).label("n")
    brands = await db.execute(
        select(Brand, brand_count)
        .join(Coupon, Coupon.brand_id == Brand.id)
        .where(Brand.is_active.is_(True), live)
        .group_by(Brand.id)
        .order_by(brand_count.desc(), Brand.name)
        .limit(5)
    )
    cat_count = func.count(Coupon.id).label("n")
    categories = await db.execute(
        select(Category, cat_count)
        .join(Coupon, Coupon.category_id == Category.id)
        .where(Category.is_active.is_(True), live)
        .group_by(Category.id)
        .order_by(cat_count.desc(), Category.name)
        .limit(5)
    )

    return PopularResult(
        coupons=coupons,
        trending_brands=[
            TrendingBrand(id=b.id, name=b.name, slug=b.slug, logo=b.logo, active_coupon_count=n)
            for b, n in brands.all()
        ],
        trending_categories=[
            TrendingCategory(id=c.id, name=c.name, slug=c.slug, icon=c.icon, color=c.color, active_coupon_count=n)
            for c, n in categories.all()
        ],
        timeframe=timeframe if timeframe in TIMEFRAMES else "all",
    )


async def sponsored(db: AsyncSession, *, brand_id: Optional[str] = None, limit: int = 8) -> list[CouponListItem]:
    conds = [Coupon.is_active.is_(True), Coupon.sponsored.is_(True)]
    if brand_id:
        conds.append(Coupon.brand_id == brand_id)
    res = await db.execute(
        select(Coupon, _usage_count(), _favorite_count())
        .where(*conds)
        .order_by(Coupon.sponsor_weight.desc(), Coupon.used_count.desc(), Coupon.created_at.desc())
        .limit(limit)
    )
    return [_list_item(c, u, n, set()) for c, u, n in res.all()]


async def get_coupon(db: AsyncSession, coupon_id: str) -> Coupon:
    res = await db.execute(
        select(Coupon).where(Coupon.id == coupon_id).execution_options(populate_existing=True)
    )
    coupon = res.scalar_one_or_none()
    if coupon is None:
        raise NotFound("Coupon not found")
    return coupon


async def ensure_refs(db: AsyncSession, *, brand_id: Optional[str], category_id: Optional[str]) -> None:
    """400 unless the referenced brand and category both exist."""
    if brand_id is not None and await db.get(Brand, brand_id) is None:
        raise ValidationFailed("Brand not found", errors=[{"field": "brandId", "message": "Brand not found"}])
    if category_id is not None and await db.get(Category, category_id) is None:
        raise ValidationFailed(
            "Category not found", errors=[{"field": "categoryId", "message": "Category not found"}]
        )


async def create_coupon(db: AsyncSession, data: CouponCreate) -> Coupon:
    await ensure_refs(db, brand_id=data.brand_id, category_id=data.category_id)

    coupon = Coupon(**data.model_dump())
    try:
        db.add(coupon)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("Coupon created: %s (%s)", coupon.title, coupon.id)
    return await get_coupon(db, coupon.id)


async def update_coupon(db: AsyncSession, coupon_id: str, data: CouponUpdate) -> tuple[dict, Coupon]:
    coupon = await get_coupon(db, coupon_id)
    old = {f: getattr(coupon, f) for f in AUDIT_FIELDS}

    changes = data.model_dump(exclude_unset=True, exclude={"id"})
    await ensure_refs(db, brand_id=changes.get("brand_id"), category_id=changes.get("category_id"))

    start = changes.get("start_date", coupon.start_date)
    end = changes.get("end_date", coupon.end_date)
    if start and end and not start < end:
        raise ValidationFailed("Start date must be before end date")

    required = {"title", "type", "discount_type", "discount_value", "brand_id", "category_id"}
    required |= {"is_active", "is_verified", "is_exclusive", "sponsored", "sponsor_weight"}
    for field, value in changes.items():
        if field in required and value is None:
            continue
        setattr(coupon, field, value)

    try:
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    return old, await get_coupon(db, coupon_id)


async def delete_coupon(db: AsyncSession, coupon_id: str) -> Coupon:
    coupon = await get_coupon(db, coupon_id)
    try:
        await db.execute(delete(CouponUsage).where(CouponUsage.coupon_id == coupon_id))
        await db.execute(delete(FavoriteCoupon).where(FavoriteCoupon.coupon_id == coupon_id))
        await db.execute(delete(Coupon).where(Coupon.id == coupon_id))
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("Coupon deleted: %s (%s)", coupon.title, coupon.id)
    return coupon
