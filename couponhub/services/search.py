from __future__ import annotations

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from couponhub.models.brand import Brand
from couponhub.models.category import Category
from couponhub.models.coupon import Coupon
from couponhub.schemas.brands import BrandSummary
from couponhub.schemas.categories import CategorySummary
from couponhub.schemas.coupons import CouponOut
from couponhub.schemas.search import SearchResults
from couponhub.services.coupons import text_match
from couponhub.services.text import contains_pattern


async def search(db: AsyncSession, q: str, *, type_: str = "all", limit: int = 10) -> SearchResults:
    """Case-insensitive substring search over active coupons, brands and categories."""
    term = (q or "").strip()
    if not term:
        return SearchResults()

    pattern = contains_pattern(term)
    out = SearchResults()

    if type_ in ("all", "coupons"):
        res = await db.execute(
            select(Coupon)
            .where(Coupon.is_active.is_(True), text_match(term))
            .order_by(Coupon.created_at.desc())
            .limit(limit)
        )
        out.coupons = [CouponOut.model_validate(c) for c in res.scalars().all()]

    if type_ in ("all", "brands"):
        res = await db.execute(
            select(Brand)
            .where(
                Brand.is_active.is_(True),
                or_(Brand.name.ilike(pattern, escape="\\"), Brand.description.ilike(pattern, escape="\\")),
            )
            .order_by(Brand.name.asc())
            .limit(limit)
        )
        out.brands = [BrandSummary.model_validate(b) for b in res.scalars().all()]

    if type_ in ("all", "categories"):
        res = await db.execute(
            select(Category)
            .where(
                Category.is_active.is_(True),
                or_(Category.name.ilike(pattern, escape="\\"), Category.description.ilike(pattern, escape="\\")),
            )
            .order_by(Category.name.asc())
            .limit(limit)
        )
        out.categories = [CategorySummary.model_validate(c) for c in res.scalars().all()]

    out.total = len(out.coupons) + len(out.brands) + len(out.categories)
    return out
