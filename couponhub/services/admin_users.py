from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from couponhub.core.errors import NotFound, ValidationFailed
from couponhub.core.sessions import session_manager
from couponhub.models.coupon import Coupon
from couponhub.models.coupon_usage import CouponUsage
from couponhub.models.favorite import FavoriteCoupon
from couponhub.models.user import User
from couponhub.schemas.admin import AdminUserOut, CouponUsageOut
from couponhub.services.text import contains_pattern

logger = logging.getLogger(__name__)


async def list_users(
    db: AsyncSession,
    *,
    page: int,
    limit: int,
    search: Optional[str] = None,
    role: str = "all",
    status: str = "all",
) -> tuple[list[AdminUserOut], int]:
    conds = []
    if search:
        pattern = contains_pattern(search)
        conds.append(or_(User.name.ilike(pattern, escape="\\"), User.email.ilike(pattern, escape="\\")))
    if role != "all":
        conds.append(User.role == role)
    if status != "all":
        conds.append(User.is_active.is_(status == "active"))

    favorites = (
        select(func.count(FavoriteCoupon.id)).where(FavoriteCoupon.user_id == User.id).correlate(User).scalar_subquery()
    )
    usages = select(func.count(CouponUsage.id)).where(CouponUsage.user_id == User.id).correlate(User).scalar_subquery()

    total = (await db.execute(select(func.count()).select_from(User).where(*conds))).scalar_one()
    res = await db.execute(
        select(User, favorites, usages)
        .where(*conds)
        .order_by(User.created_at.desc(), User.id)
        .offset((page - 1) * limit)
        .limit(limit)
    )

    items = []
    for user, fav_n, use_n in res.all():
        item = AdminUserOut.model_validate(user)
        item.favorites_count = int(fav_n or 0)
        item.usages_count = int(use_n or 0)
        items.append(item)
    return items, int(total)


async def get_user(db: AsyncSession, user_id: str) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFound("User not found")
    return user


async def set_user_status(db: AsyncSession, admin: User, user_id: str, is_active: bool) -> tuple[bool, User, int]:
    """
    Activate or deactivate an account. Admins cannot change their own status.
    Deactivation also ends every live session of that user.
    Returns (previous is_active, user, sessions revoked).
    """
    if admin.id == user_id:
        raise ValidationFailed("Cannot modify your own account status")

    user = await get_user(db, user_id)
    previous = user.is_active
    user.is_active = is_active
    try:
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    revoked = 0
    if not is_active:
        revoked = session_manager.force_logout_user(user.id, f"Account deactivated by {admin.email}")

    logger.info("User %s %s by %s", user.email, "activated" if is_active else "deactivated", admin.email)
    return previous, user, revoked


async def list_coupon_usages(
    db: AsyncSession,
    *,
    page: int,
    limit: int,
    coupon_id: Optional[str] = None,
    user_id: Optional[str] = None,
) -> tuple[list[CouponUsageOut], int]:
    conds = []
    if coupon_id:
        conds.append(CouponUsage.coupon_id == coupon_id)
    if user_id:
        conds.append(CouponUsage.user_id == user_id)

    total = (await db.execute(select(func.count()).select_from(CouponUsage).where(*conds))).scalar_one()
    res = await db.execute(
        select(CouponUsage)
        .where(*conds)
        .order_by(CouponUsage.used_at.desc(), CouponUsage.id)
        .offset((page - 1) * limit)
        .limit(limit)
    )

    items = []
    for u in res.scalars().all():
        coupon: Optional[Coupon] = u.coupon
        items.append(
            CouponUsageOut(
                id=u.id,
                coupon_id=u.coupon_id,
                coupon_title=coupon.title if coupon else None,
                brand_name=coupon.brand.name if coupon and coupon.brand else None,
                user_id=u.user_id,
                user_email=u.user.email if u.user else None,
                ip_address=u.ip_address,
                user_agent=u.user_agent,
                used_at=u.used_at,
            )
        )
    return items, int(total)
