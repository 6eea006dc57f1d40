from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from couponhub.core.db import Base

PASSWORD_RESET_PREFIX = "pw:"


class VerificationToken(Base):
    """Single-use tokens. Password reset rows use identifier `pw:<user_id>`."""

    __tablename__ = "verification_tokens"

    token: Mapped[str] = mapped_column(String(128), primary_key=True)
    identifier: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    expires: Mapped[datetime] = mapped_column(DateTime, nullable=False)
