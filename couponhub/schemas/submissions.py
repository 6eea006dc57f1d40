from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Literal, Optional

from pydantic import Field

from couponhub.schemas.common import CamelIn, CamelModel, OptionalText, OptionalUrl
from couponhub.schemas.coupons import CouponType, DiscountType

SubmissionType = Literal["BRAND", "COUPON"]
SubmissionStatus = Literal["PENDING", "APPROVED", "REJECTED"]


class SubmissionCreate(CamelIn):
    type: SubmissionType
    payload: Dict[str, Any]


class SubmissionAction(CamelIn):
    id: str = Field(..., min_length=1, max_length=50)
    action: Literal["status", "move"]
    status: Optional[SubmissionStatus] = None


class SubmissionOut(CamelModel):
    id: str
    type: str
    payload: Dict[str, Any]
    status: str
    user_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class MoveResult(CamelModel):
    moved_to: Literal["brand", "coupon"]
    id: str
    status: str
    note: Optional[str] = None


class BrandDraft(CamelModel):
    """Fields read from a BRAND submission payload when it is promoted. Unknown keys are ignored."""

    name: str = Field(..., min_length=1, max_length=100)
    description: OptionalText = Field(None, max_length=500)
    logo: OptionalUrl = None
    website: OptionalUrl = None


class CouponDraft(CamelModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: OptionalText = Field(None, max_length=1000)
    code: OptionalText = Field(None, max_length=50)
    type: CouponType = "COUPON_CODE"
    discount_type: DiscountType = "PERCENTAGE"
    discount_value: float = Field(0, ge=0, le=10000)
    brand_id: str = Field(..., min_length=1, max_length=50)
    category_id: str = Field(..., min_length=1, max_length=50)
