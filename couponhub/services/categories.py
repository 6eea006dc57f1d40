from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from couponhub.core.errors import Conflict, NotFound, ValidationFailed
from couponhub.models.category import Category
from couponhub.models.coupon import Coupon
from couponhub.schemas.categories import CategoryCreate, CategoryUpdate
from couponhub.services.text import contains_pattern, slugify

logger = logging.getLogger(__name__)

AUDIT_FIELDS = ("name", "slug", "description", "icon", "color", "is_active")


def _coupon_count():
    return (
        select(func.count(Coupon.id))
        .where(Coupon.category_id == Category.id)
        .correlate(Category)
        .scalar_subquery()
        .label("coupon_count")
    )


async def list_categories(
    db: AsyncSession,
    *,
    page: int,
    limit: int,
    search: Optional[str] = None,
    active_only: bool = True,
) -> tuple[list[tuple[Category, int]], int]:
    conds = []
    if active_only:
        conds.append(Category.is_active.is_(True))
    if search:
        pattern = contains_pattern(search)
        conds.append(
            or_(Category.name.ilike(pattern, escape="\\"), Category.description.ilike(pattern, escape="\\"))
        )

    total = (await db.execute(select(func.count()).select_from(Category).where(*conds))).scalar_one()
    res = await db.execute(
        select(Category, _coupon_count())
        .where(*conds)
        .order_by(Category.name.asc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return [(c, int(n)) for c, n in res.all()], int(total)


async def get_category(db: AsyncSession, category_id: str) -> tuple[Category, int]:
    row = (await db.execute(select(Category, _coupon_count()).where(Category.id == category_id))).first()
    if row is None:
        raise NotFound("Category not found")
    return row[0], int(row[1])


async def get_category_by_slug(db: AsyncSession, slug: str) -> tuple[Category, int]:
    row = (await db.execute(select(Category, _coupon_count()).where(Category.slug == slug))).first()
    if row is None:
        raise NotFound("Category not found")
    return row[0], int(row[1])


async def _ensure_unique(db: AsyncSession, name: str, slug: str, *, exclude_id: Optional[str] = None) -> None:
    q = select(Category).where(or_(Category.name == name, Category.slug == slug))
    if exclude_id:
        q = q.where(Category.id != exclude_id)
    if (await db.execute(q.limit(1))).scalar_one_or_none() is not None:
        raise Conflict("Category already exists")


async def create_category(db: AsyncSession, data: CategoryCreate) -> Category:
    slug = slugify(data.name)
    if not slug:
        raise ValidationFailed("Category name must contain letters or numbers")
    await _ensure_unique(db, data.name, slug)

    cat = Category(slug=slug, **data.model_dump())
    try:
        db.add(cat)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    await db.refresh(cat)
    logger.info("Category created: %s (%s)", cat.name, cat.id)
    return cat


async def update_category(db: AsyncSession, category_id: str, data: CategoryUpdate) -> tuple[dict, Category]:
    cat = await db.get(Category, category_id)
    if cat is None:
        raise NotFound("Category not found")

    old = {f: getattr(cat, f) for f in AUDIT_FIELDS}
    changes = data.model_dump(exclude_unset=True, exclude={"id"})

    if changes.get("name") and changes["name"] != cat.name:
        slug = slugify(changes["name"])
        await _ensure_unique(db, changes["name"], slug, exclude_id=cat.id)
        cat.slug = slug

    for field, value in changes.items():
        if field in ("name", "is_active") and value is None:
            continue
        setattr(cat, field, value)

    try:
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    await db.refresh(cat)
    return old, cat


async def delete_category(db: AsyncSession, category_id: str) -> Category:
    """Delete a category. Refused while any coupon still references it."""
    cat = await db.get(Category, category_id)
    if cat is None:
        raise NotFound("Category not found")

    in_use = (
        await db.execute(select(func.count(Coupon.id)).where(Coupon.category_id == category_id))
    ).scalar_one()
    if in_use:
        raise ValidationFailed(f"Cannot delete category with {in_use} existing coupon(s)")

    try:
        await db.execute(delete(Category).where(Category.id == category_id))
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("Category deleted: %s (%s)", cat.name, cat.id)
    return cat
