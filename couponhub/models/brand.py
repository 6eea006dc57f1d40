from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from couponhub.core.db import Base, new_id, utcnow


class Brand(Base):
    __tablename__ = "brands"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    slug: Mapped[str] = mapped_column(String(120), unique=True, nullable=False, index=True)

    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    logo: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    website: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    sponsored: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    sponsor_weight: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # SEO
    seo_title: Mapped[Optional[str]] = mapped_column(String(70), nullable=True)
    seo_description: Mapped[Optional[str]] = mapped_column(String(160), nullable=True)
    seo_keywords: Mapped[Optional[str]] = mapped_column(String(300), nullable=True)
    og_image: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    coupons = relationship("Coupon", back_populates="brand", passive_deletes=True)
