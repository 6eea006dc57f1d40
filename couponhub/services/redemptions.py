from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from couponhub.core.errors import NotFound, ValidationFailed
from couponhub.models.coupon import Coupon
from couponhub.models.coupon_usage import CouponUsage
from couponhub.schemas.coupons import RedeemedCoupon

logger = logging.getLogger(__name__)


async def _load_coupon(db: AsyncSession, coupon_id: str) -> Optional[Coupon]:
    res = await db.execute(select(Coupon).where(Coupon.id == coupon_id))
    return res.scalar_one_or_none()


async def _claim_use(db: AsyncSession, coupon_id: str) -> bool:
    """
    Increment used_count only while it is still below usage_limit.
    One conditional UPDATE, so concurrent redemptions cannot push the count past the limit.
    Returns False when the limit was already reached.
    """
    stmt = (
        update(Coupon)
        .where(
            Coupon.id == coupon_id,
            or_(Coupon.usage_limit.is_(None), Coupon.used_count < Coupon.usage_limit),
        )
        .values(used_count=Coupon.used_count + 1)
        .execution_options(synchronize_session=False)
    )
    res = await db.execute(stmt)
    await db.commit()
    return res.rowcount == 1


async def _record_usage(
    db: AsyncSession, coupon_id: str, *, user_id: Optional[str], ip_address: str, user_agent: str
) -> None:
    try:
        db.add(CouponUsage(coupon_id=coupon_id, user_id=user_id, ip_address=ip_address, user_agent=user_agent))
        await db.commit()
    except Exception:
        await db.rollback()
        logger.exception("Non-blocking: failed to create coupon usage record for %s", coupon_id)


async def redeem(
    db: AsyncSession,
    coupon_id: str,
    *,
    user_id: Optional[str],
    ip_address: str,
    user_agent: str,
) -> RedeemedCoupon:
    """
    Record one redemption of a coupon.

    Checked in order: exists (404), active (400), aggregate usage limit (400).
    There is no per-user cap; the same caller may redeem repeatedly.
    """
    coupon = await _load_coupon(db, coupon_id)
    if coupon is None:
        raise NotFound("Coupon not found")
    if not coupon.is_active:
        raise ValidationFailed("Coupon is not active")
    if coupon.usage_limit is not None and coupon.used_count >= coupon.usage_limit:
        raise ValidationFailed("Coupon usage limit reached")

    # read before any write; a rollback below expires the loaded coupon
    redeemed = RedeemedCoupon(
        id=coupon.id,
        title=coupon.title,
        code=coupon.code,
        brand=coupon.brand.name if coupon.brand else "",
        affiliate_url=coupon.affiliate_url,
    )

    try:
        claimed = await _claim_use(db, coupon_id)
    except Exception:
        await db.rollback()
        logger.exception("Non-blocking: failed to increment used_count for coupon %s", coupon_id)
    else:
        if not claimed:
            raise ValidationFailed("Coupon usage limit reached")

    await _record_usage(db, coupon_id, user_id=user_id, ip_address=ip_address, user_agent=user_agent)
    return redeemed
