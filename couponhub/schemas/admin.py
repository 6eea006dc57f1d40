from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import Field

from couponhub.schemas.common import CamelIn, CamelModel


class AdminUserOut(CamelModel):
    id: str
    email: str
    name: Optional[str] = None
    role: str
    is_active: bool
    created_at: datetime
    favorites_count: int = 0
    usages_count: int = 0


class ToggleStatusResult(CamelModel):
    id: str
    email: str
    is_active: bool
    sessions_revoked: int = 0


class ForceLogoutIn(CamelIn):
    user_id: str = Field(..., min_length=1, max_length=50)
    reason: str = Field(..., min_length=1, max_length=200)


class UnlockIn(CamelIn):
    user_id: str = Field(..., min_length=1, max_length=50)


class SessionInfo(CamelModel):
    user_id: str
    active_sessions: int
    last_activity: Optional[datetime] = None
    is_locked: bool
    lockout_until: Optional[datetime] = None


class SessionStats(CamelModel):
    active_sessions: int
    failed_attempts: int
    locked_users: int


class CouponUsageOut(CamelModel):
    id: str
    coupon_id: str
    coupon_title: Optional[str] = None
    brand_name: Optional[str] = None
    user_id: Optional[str] = None
    user_email: Optional[str] = None
    ip_address: str
    user_agent: str
    used_at: datetime


class ToggleStatusIn(CamelIn):
    is_active: bool
