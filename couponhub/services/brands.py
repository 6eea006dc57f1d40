from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from couponhub.core.errors import Conflict, NotFound
from couponhub.models.brand import Brand
from couponhub.models.coupon import Coupon
from couponhub.schemas.brands import BrandCreate, BrandUpdate
from couponhub.services.text import contains_pattern, slugify

logger = logging.getLogger(__name__)

AUDIT_FIELDS = ("name", "slug", "description", "logo", "website", "is_active", "sponsored", "sponsor_weight")


def _coupon_count():
    return (
        select(func.count(Coupon.id))
        .where(Coupon.brand_id == Brand.id)
        .correlate(Brand)
        .scalar_subquery()
        .label("coupon_count")
    )


async def list_brands(
    db: AsyncSession,
    *,
    page: int,
    limit: int,
    search: Optional[str] = None,
    active_only: bool = True,
) -> tuple[list[tuple[Brand, int]], int]:
    conds = []
    if active_only:
        conds.append(Brand.is_active.is_(True))
    if search:
        pattern = contains_pattern(search)
        conds.append(or_(Brand.name.ilike(pattern, escape="\\"), Brand.description.ilike(pattern, escape="\\")))

    total = (await db.execute(select(func.count()).select_from(Brand).where(*conds))).scalar_one()

    res = await db.execute(
        select(Brand, _coupon_count())
        .where(*conds)
        .order_by(Brand.sponsored.desc(), Brand.sponsor_weight.desc(), Brand.name.asc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return [(b, int(n)) for b, n in res.all()], int(total)


async def list_sponsored(db: AsyncSession, *, limit: int = 8) -> list[tuple[Brand, int]]:
    res = await db.execute(
        select(Brand, _coupon_count())
        .where(Brand.is_active.is_(True), Brand.sponsored.is_(True))
        .order_by(Brand.sponsor_weight.desc(), Brand.name.asc())
        .limit(limit)
    )
    return [(b, int(n)) for b, n in res.all()]


async def get_brand(db: AsyncSession, brand_id: str) -> tuple[Brand, int]:
    res = await db.execute(select(Brand, _coupon_count()).where(Brand.id == brand_id))
    row = res.first()
    if row is None:
        raise NotFound("Brand not found")
    return row[0], int(row[1])


async def get_brand_by_slug(db: AsyncSession, slug: str) -> tuple[Brand, int]:
    res = await db.execute(select(Brand, _coupon_count()).where(Brand.slug == slug))
    row = res.first()
    if row is None:
        raise NotFound("Brand not found")
    return row[0], int(row[1])


async def _ensure_unique(db: AsyncSession, name: str, slug: str, *, exclude_id: Optional[str] = None) -> None:
    q = select(Brand).where(or_(Brand.name == name, Brand.slug == slug))
    if exclude_id:
        q = q.where(Brand.id != exclude_id)
    clash = (await db.execute(q.limit(1))).scalar_one_or_none()
    if clash is None:
        return
    if clash.name == name:
        raise Conflict("Brand already exists")
    raise Conflict(f"Brand slug '{slug}' is already used by '{clash.name}'")


async def create_brand(db: AsyncSession, data: BrandCreate) -> Brand:
    slug = slugify(data.name)
    if not slug:
        raise Conflict("Brand name must contain letters or numbers")
    await _ensure_unique(db, data.name, slug)

    brand = Brand(slug=slug, **data.model_dump())
    try:
        db.add(brand)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    await db.refresh(brand)
    logger.info("Brand created: %s (%s)", brand.name, brand.id)
    return brand


async def update_brand(db: AsyncSession, brand_id: str, data: BrandUpdate) -> tuple[dict, Brand]:
    """Apply a partial update. Returns (previous values, updated brand)."""
    brand = await db.get(Brand, brand_id)
    if brand is None:
        raise NotFound("Brand not found")

    old = {f: getattr(brand, f) for f in AUDIT_FIELDS}
    changes = data.model_dump(exclude_unset=True, exclude={"id"})

    if "name" in changes and changes["name"] is None:
        changes.pop("name")
    if "name" in changes and changes["name"] != brand.name:
        slug = slugify(changes["name"])
        await _ensure_unique(db, changes["name"], slug, exclude_id=brand.id)
        brand.slug = slug

    for field, value in changes.items():
        if field in ("is_active", "sponsored", "sponsor_weight") and value is None:
            continue
        setattr(brand, field, value)

    try:
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    await db.refresh(brand)
    return old, brand


async def delete_brand(db: AsyncSession, brand_id: str) -> Brand:
    """Delete a brand together with all of its coupons."""
    brand = await db.get(Brand, brand_id)
    if brand is None:
        raise NotFound("Brand not found")

    try:
        res = await db.execute(delete(Coupon).where(Coupon.brand_id == brand_id))
        await db.execute(delete(Brand).where(Brand.id == brand_id))
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("Brand deleted: %s (%s), %d coupon(s) removed", brand.name, brand.id, res.rowcount or 0)
    return brand
