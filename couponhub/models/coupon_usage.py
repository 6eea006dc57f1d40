from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from couponhub.core.db import Base, new_id, utcnow


class CouponUsage(Base):
    """Append-only redemption event. Repeat redemptions by the same user are allowed."""

    __tablename__ = "coupon_usages"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)

    user_id: Mapped[Optional[str]] = mapped_column(
        String(32), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    coupon_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("coupons.id", ondelete="CASCADE"), nullable=False
    )

    ip_address: Mapped[str] = mapped_column(String(255), nullable=False, default="unknown")
    user_agent: Mapped[str] = mapped_column(String(500), nullable=False, default="unknown")

    used_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    user = relationship("User", lazy="selectin")
    coupon = relationship("Coupon", lazy="selectin")


Index("ix_coupon_usages_coupon_used", CouponUsage.coupon_id, CouponUsage.used_at)
Index("ix_coupon_usages_user", CouponUsage.user_id)
