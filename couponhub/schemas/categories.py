from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import Field

from couponhub.schemas.common import CamelIn, CamelModel, OptionalText

NAME_PATTERN = r"^[a-zA-Z0-9\s\-_&.]+$"
HEX_COLOR_PATTERN = r"^#[0-9A-Fa-f]{6}$"


class CategoryCreate(CamelIn):
    name: str = Field(..., min_length=1, max_length=100, pattern=NAME_PATTERN)
    description: OptionalText = Field(None, max_length=500)
    icon: OptionalText = Field(None, max_length=10)
    color: OptionalText = Field(None, pattern=HEX_COLOR_PATTERN)
    is_active: bool = True


class CategoryUpdate(CamelIn):
    id: Optional[str] = Field(None, max_length=50)
    name: Optional[str] = Field(None, min_length=1, max_length=100, pattern=NAME_PATTERN)
    description: OptionalText = Field(None, max_length=500)
    icon: OptionalText = Field(None, max_length=10)
    color: OptionalText = Field(None, pattern=HEX_COLOR_PATTERN)
    is_active: Optional[bool] = None


class CategoryOut(CamelModel):
    id: str
    name: str
    slug: str
    description: Optional[str] = None
    icon: Optional[str] = None
    color: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class CategorySummary(CamelModel):
    id: str
    name: str
    slug: str
    icon: Optional[str] = None
    color: Optional[str] = None


class CategoryWithCount(CategoryOut):
    coupon_count: int = 0
