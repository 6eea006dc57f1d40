from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from couponhub.core.db import Base, new_id, utcnow


class FavoriteCoupon(Base):
    __tablename__ = "favorite_coupons"
    __table_args__ = (
        UniqueConstraint("user_id", "coupon_id", name="uq_favorite_coupons_user_coupon"),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    coupon_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("coupons.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    coupon = relationship("Coupon", lazy="selectin")
