from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import EmailStr, Field

from couponhub.schemas.common import CamelIn, CamelModel

ContactType = Literal["CONTACT", "PARTNER"]


class ContactCreate(CamelIn):
    type: ContactType
    name: str = Field(..., min_length=2, max_length=255)
    email: EmailStr
    company: Optional[str] = Field(None, max_length=255)
    message: str = Field(..., min_length=1, max_length=5000)
    budget: Optional[str] = Field(None, max_length=255)
    goals: Optional[str] = Field(None, max_length=2000)


class ContactOut(CamelModel):
    id: str
    type: str
    name: str
    email: str
    company: Optional[str] = None
    message: str
    budget: Optional[str] = None
    goals: Optional[str] = None
    created_at: datetime
