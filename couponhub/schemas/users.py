from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import EmailStr, Field, model_validator

from couponhub.schemas.common import CamelIn, CamelModel

NAME_PATTERN = r"^[a-zA-Z\s\-'.]+$"


class UserOut(CamelModel):
    id: str
    email: str
    name: Optional[str] = None
    phone: Optional[str] = None
    image: Optional[str] = None
    role: str
    is_active: bool
    created_at: datetime
    updated_at: datetime


class ProfileUpdate(CamelIn):
    name: str = Field(..., min_length=1, max_length=100, pattern=NAME_PATTERN)
    email: EmailStr = Field(..., max_length=255)


class ChangePassword(CamelIn):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8, max_length=100)

    @model_validator(mode="after")
    def _check_new_password(self):
        p = self.new_password
        if not (any(c.islower() for c in p) and any(c.isupper() for c in p) and any(c.isdigit() for c in p)):
            raise ValueError(
                "Password must contain at least one lowercase letter, one uppercase letter, and one number"
            )
        if p == self.current_password:
            raise ValueError("New password must be different from current password")
        return self


class SettingsUpdate(CamelIn):
    settings: Dict[str, Any]


class SettingsOut(CamelModel):
    settings: Dict[str, Any] = {}


class FavoriteIn(CamelIn):
    coupon_id: str = Field(..., min_length=1, max_length=50)


class UserStats(CamelModel):
    favorite_coupons: int
    used_coupons: int
    total_savings: float
