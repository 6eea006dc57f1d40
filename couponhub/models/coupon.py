# couponhub/models/coupon.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from couponhub.core.db import Base, new_id, utcnow


class Coupon(Base):
    __tablename__ = "coupons"
    __table_args__ = (
        CheckConstraint(
            "type IN ('COUPON_CODE','DEAL','CASHBACK','FREE_SHIPPING')",
            name="coupons_type_check",
        ),
        CheckConstraint(
            "discount_type IN ('PERCENTAGE','FIXED_AMOUNT','FREE_SHIPPING','BUY_ONE_GET_ONE')",
            name="coupons_discount_type_check",
        ),
        CheckConstraint("used_count >= 0", name="coupons_used_count_check"),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    type: Mapped[str] = mapped_column(String(20), nullable=False, default="COUPON_CODE")
    discount_type: Mapped[str] = mapped_column(String(20), nullable=False, default="PERCENTAGE")
    discount_value: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    min_order_value: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    max_discount: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # usage_limit is the aggregate cap across all users; NULL = unlimited
    usage_limit: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    used_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    start_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    end_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    terms: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    affiliate_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_exclusive: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    sponsored: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    sponsor_weight: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    brand_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("brands.id", ondelete="CASCADE"), nullable=False, index=True
    )
    category_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("categories.id"), nullable=False, index=True
    )

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    brand = relationship("Brand", back_populates="coupons", lazy="selectin")
    category = relationship("Category", back_populates="coupons", lazy="selectin")
