from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import Field

from couponhub.schemas.common import CamelIn, CamelModel, OptionalText, OptionalUrl

NAME_PATTERN = r"^[a-zA-Z0-9\s\-_&.]+$"


class BrandCreate(CamelIn):
    name: str = Field(..., min_length=1, max_length=100, pattern=NAME_PATTERN)
    description: OptionalText = Field(None, max_length=500)
    logo: OptionalUrl = None
    website: OptionalUrl = None

    seo_title: OptionalText = Field(None, max_length=70)
    seo_description: OptionalText = Field(None, max_length=160)
    seo_keywords: OptionalText = Field(None, max_length=300)
    og_image: OptionalUrl = None

    is_active: bool = True
    sponsored: bool = False
    sponsor_weight: int = Field(0, ge=0)


class BrandUpdate(CamelIn):
    id: Optional[str] = Field(None, max_length=50)
    name: Optional[str] = Field(None, min_length=1, max_length=100, pattern=NAME_PATTERN)
    description: OptionalText = Field(None, max_length=500)
    logo: OptionalUrl = None
    website: OptionalUrl = None

    seo_title: OptionalText = Field(None, max_length=70)
    seo_description: OptionalText = Field(None, max_length=160)
    seo_keywords: OptionalText = Field(None, max_length=300)
    og_image: OptionalUrl = None

    is_active: Optional[bool] = None
    sponsored: Optional[bool] = None
    sponsor_weight: Optional[int] = Field(None, ge=0)


class BrandOut(CamelModel):
    id: str
    name: str
    slug: str
    description: Optional[str] = None
    logo: Optional[str] = None
    website: Optional[str] = None
    is_active: bool
    sponsored: bool
    sponsor_weight: int
    seo_title: Optional[str] = None
    seo_description: Optional[str] = None
    seo_keywords: Optional[str] = None
    og_image: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class BrandSummary(CamelModel):
    id: str
    name: str
    slug: str
    logo: Optional[str] = None


class BrandWithCount(BrandOut):
    coupon_count: int = 0
