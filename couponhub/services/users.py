from __future__ import annotations

import logging

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from couponhub.core.errors import Conflict, NotFound
from couponhub.models.coupon import Coupon
from couponhub.models.coupon_usage import CouponUsage
from couponhub.models.favorite import FavoriteCoupon
from couponhub.models.user import User
from couponhub.schemas.users import ProfileUpdate, UserStats
from couponhub.services.auth import get_user_by_email, normalize_email

logger = logging.getLogger(__name__)

# order value assumed for percentage coupons without a minimum order
DEFAULT_ORDER_VALUE = 50.0


async def update_profile(db: AsyncSession, user: User, data: ProfileUpdate) -> User:
    email = normalize_email(data.email)
    if email != user.email:
        other = await get_user_by_email(db, email)
        if other is not None and other.id != user.id:
            raise Conflict("Email is already in use")

    user.name = data.name.strip()
    user.email = email
    try:
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    await db.refresh(user)
    return user


async def save_settings(db: AsyncSession, user: User, new_settings: dict) -> dict:
    user.settings = dict(new_settings)
    try:
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    return user.settings


# -------------------------
# Favorites
# -------------------------
async def list_favorites(db: AsyncSession, user_id: str) -> list[Coupon]:
    res = await db.execute(
        select(Coupon)
        .join(FavoriteCoupon, FavoriteCoupon.coupon_id == Coupon.id)
        .where(FavoriteCoupon.user_id == user_id)
        .order_by(FavoriteCoupon.created_at.desc())
    )
    return list(res.scalars().all())


async def add_favorite(db: AsyncSession, user_id: str, coupon_id: str) -> Coupon:
    coupon = await db.get(Coupon, coupon_id)
    if coupon is None:
        raise NotFound("Coupon not found")

    existing = await db.execute(
        select(FavoriteCoupon.id).where(FavoriteCoupon.user_id == user_id, FavoriteCoupon.coupon_id == coupon_id)
    )
    if existing.scalar_one_or_none() is not None:
        raise Conflict("Coupon already favorited")

    try:
        db.add(FavoriteCoupon(user_id=user_id, coupon_id=coupon_id))
        await db.commit()
    except IntegrityError as e:
        # lost a race with a concurrent add of the same pair
        await db.rollback()
        raise Conflict("Coupon already favorited") from e
    except Exception:
        await db.rollback()
        raise

    return coupon


async def remove_favorite(db: AsyncSession, user_id: str, coupon_id: str) -> None:
    try:
        res = await db.execute(
            delete(FavoriteCoupon).where(FavoriteCoupon.user_id == user_id, FavoriteCoupon.coupon_id == coupon_id)
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    if not res.rowcount:
        raise NotFound("Favorite not found")


# -------------------------
# Stats
# -------------------------
def estimate_savings(discount_type: str, discount_value: float, min_order_value: float | None) -> float:
    if discount_type == "PERCENTAGE":
        order_value = min_order_value or DEFAULT_ORDER_VALUE
        return order_value * discount_value / 100
    if discount_type == "FIXED_AMOUNT":
        return discount_value
    return 0.0


async def user_stats(db: AsyncSession, user_id: str) -> UserStats:
    favorites = (
        await db.execute(select(func.count(FavoriteCoupon.id)).where(FavoriteCoupon.user_id == user_id))
    ).scalar_one()

    res = await db.execute(
        select(Coupon.discount_type, Coupon.discount_value, Coupon.min_order_value)
        .join(CouponUsage, CouponUsage.coupon_id == Coupon.id)
        .where(CouponUsage.user_id == user_id)
    )
    rows = res.all()
    savings = sum(estimate_savings(t, v, m) for t, v, m in rows)

    return UserStats(favorite_coupons=int(favorites), used_coupons=len(rows), total_savings=round(savings, 2))
